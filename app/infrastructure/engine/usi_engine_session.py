from __future__ import annotations

import asyncio
import contextlib
import os
import subprocess
from typing import Dict, Mapping, Optional, Sequence

from loguru import logger

from app.application.ports.engine_port import EnginePort
from app.domain.entities.analysis import AnalysisRequest, EngineHealth, EngineState
from app.domain.errors import (
    EngineDegradedError,
    EngineError,
    EngineNotFoundError,
    EngineNotReadyError,
    EngineTerminatedError,
)
from app.infrastructure.engine import usi_codec
from app.infrastructure.engine.request_queue import RequestQueue


class UsiEngineSession(asyncio.SubprocessProtocol, EnginePort):
    """Owns one USI engine process and everything written to or read from it.

    All state changes happen on the event loop that spawned the process:
    stdout is framed into lines in :meth:`pipe_data_received`, parsed by the
    codec and applied immediately, so no locking is needed around the queue.
    The process is never restarted; once it exits the session stays
    terminated.
    """

    def __init__(
        self,
        engine_path: str,
        engine_args: Sequence[str] = (),
        options: Optional[Mapping[str, usi_codec.ConfigValue]] = None,
        startup_timeout: float = 30.0,
    ) -> None:
        self._engine_path = engine_path
        self._engine_args = list(engine_args)
        self._options: Dict[str, usi_codec.ConfigValue] = dict(options or {})
        self._startup_timeout = startup_timeout

        self._transport: Optional[asyncio.SubprocessTransport] = None
        self._buffers = {1: bytearray(), 2: bytearray()}
        self._startup: Optional["asyncio.Future[None]"] = None
        self._handshake_acked = False
        self._ready_acked = False

        self._state = EngineState.NOT_STARTED
        self._has_evaluation_data = True
        self._queue = RequestQueue(self.send_line)

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def has_evaluation_data(self) -> bool:
        return self._has_evaluation_data

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    def health(self) -> EngineHealth:
        return EngineHealth(
            state=self._state,
            has_evaluation_data=self._has_evaluation_data,
            queue_depth=len(self._queue),
        )

    async def start(self) -> None:
        """Spawn the engine and wait until it answers ``readyok``."""
        if self._state is not EngineState.NOT_STARTED:
            raise EngineError(f"Engine session cannot be started from state {self._state.value}.")
        if not os.path.isfile(self._engine_path):
            raise EngineNotFoundError(f"Engine not found: {self._engine_path}")

        loop = asyncio.get_running_loop()
        self._startup = loop.create_future()
        logger.info(f"Starting engine: {self._engine_path}")
        try:
            await loop.subprocess_exec(
                lambda: self,
                self._engine_path,
                *self._engine_args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=os.path.dirname(os.path.abspath(self._engine_path)),
            )
        except OSError as exc:
            self._state = EngineState.TERMINATED
            raise EngineNotFoundError(f"Engine could not be spawned: {exc}") from exc

        try:
            await asyncio.wait_for(self._startup, self._startup_timeout)
        except asyncio.TimeoutError as exc:
            logger.error(f"Engine did not become ready within {self._startup_timeout}s")
            self.shutdown()
            raise EngineNotReadyError("Engine did not finish its USI handshake in time.") from exc

        logger.info(
            f"Engine ready (state={self._state.value}, evaluation data={self._has_evaluation_data})"
        )

    def shutdown(self) -> None:
        """Send ``quit`` and kill the process. Safe to call in any state."""
        if self._state is EngineState.TERMINATED:
            return
        logger.info("Shutting down engine...")
        transport = self._transport
        self._state = EngineState.TERMINATED
        if transport is not None and not transport.is_closing():
            stdin = transport.get_pipe_transport(0)
            if stdin is not None and not stdin.is_closing():
                stdin.write(usi_codec.quit_engine().encode("utf-8"))
            with contextlib.suppress(ProcessLookupError):
                transport.kill()
            transport.close()
        self._terminate_pending(EngineTerminatedError("Engine has been shut down."))

    def submit(self, position: str, depth: int) -> AnalysisRequest:
        if self._state is EngineState.TERMINATED:
            raise EngineTerminatedError("Engine process is not running.")
        if not self._has_evaluation_data:
            raise EngineDegradedError("Engine is running without evaluation data.")
        if self._state is not EngineState.READY:
            raise EngineNotReadyError("Engine not ready.")

        request = AnalysisRequest(position=position, depth=depth)
        self._queue.submit(request)
        return request

    def withdraw(self, request: AnalysisRequest) -> bool:
        return self._queue.withdraw(request)

    def send_line(self, line: str) -> None:
        transport = self._transport
        if transport is None or self._state is EngineState.TERMINATED:
            raise EngineTerminatedError("Engine process is not running.")
        stdin = transport.get_pipe_transport(0)
        if stdin is None or stdin.is_closing():
            raise EngineTerminatedError("Engine stdin is closed.")
        logger.debug(f"engine << {line.rstrip()}")
        stdin.write(line.encode("utf-8"))

    # asyncio.SubprocessProtocol

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]
        self._state = EngineState.HANDSHAKING
        self.send_line(usi_codec.usi())

    def pipe_data_received(self, fd: int, data: bytes) -> None:
        buffer = self._buffers[fd]
        buffer.extend(data)
        while b"\n" in buffer:
            line_bytes, _, rest = bytes(buffer).partition(b"\n")
            buffer[:] = rest
            line = line_bytes.rstrip(b"\r").decode("utf-8", errors="replace")
            if fd == 1:
                self._line_received(line)
            else:
                logger.warning(f"engine stderr >> {line}")

    def process_exited(self) -> None:
        code = self._transport.get_returncode() if self._transport is not None else None
        if self._state is not EngineState.TERMINATED:
            logger.warning(f"Engine exited with code {code}")
        self._state = EngineState.TERMINATED

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._state = EngineState.TERMINATED
        code = self._transport.get_returncode() if self._transport is not None else None
        self._terminate_pending(EngineTerminatedError(f"Engine exited (code {code})."))

    # engine output

    def _line_received(self, line: str) -> None:
        logger.debug(f"engine >> {line}")
        for event in usi_codec.parse_line(line):
            self._handle_event(event)

    def _handle_event(self, event: usi_codec.Event) -> None:
        if isinstance(event, usi_codec.HandshakeAck):
            self._handshake_acknowledged()
        elif isinstance(event, usi_codec.InitError):
            self._has_evaluation_data = False
            if self._state in (
                EngineState.HANDSHAKING,
                EngineState.AWAITING_READY,
                EngineState.READY,
            ):
                self._state = EngineState.DEGRADED
            logger.error(f"Engine reported an initialization error: {event.message}")
        elif isinstance(event, usi_codec.ReadyAck):
            self._ready_acknowledged()
        elif isinstance(event, usi_codec.ScoreUpdate):
            self._queue.record_score(event.score)
        elif isinstance(event, usi_codec.BestMove):
            self._queue.record_best_move(event.move)

    def _handshake_acknowledged(self) -> None:
        if self._handshake_acked or self._state is EngineState.TERMINATED:
            return
        self._handshake_acked = True
        if self._state is EngineState.HANDSHAKING:
            self._state = EngineState.AWAITING_READY
        for name, value in self._options.items():
            self.send_line(usi_codec.setoption(name, value))
        self.send_line(usi_codec.isready())

    def _ready_acknowledged(self) -> None:
        if self._ready_acked or not self._handshake_acked or self._state is EngineState.TERMINATED:
            return
        self._ready_acked = True
        self._state = EngineState.READY
        if self._startup is not None and not self._startup.done():
            self._startup.set_result(None)

    def _terminate_pending(self, exc: EngineTerminatedError) -> None:
        if self._startup is not None and not self._startup.done():
            self._startup.set_exception(exc)
        failed = self._queue.fail_all(exc)
        if failed:
            logger.warning(f"Failed {failed} pending analysis request(s): {exc}")
