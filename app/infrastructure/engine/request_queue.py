from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Iterator, Optional

from loguru import logger

from app.domain.entities.analysis import AnalysisRequest
from app.domain.errors import EngineError
from app.infrastructure.engine import usi_codec


class RequestQueue:
    """FIFO of analysis requests sharing a single engine process.

    USI output carries no request identifier, so only the head of the queue is
    ever sent to the engine. Scores and best moves are always attributed to the
    head; a best move settles it and dispatches the next one.
    """

    def __init__(self, send_line: Callable[[str], None]) -> None:
        self._send_line = send_line
        self._pending: Deque[AnalysisRequest] = deque()

    def __len__(self) -> int:
        return len(self._pending)

    def __iter__(self) -> Iterator[AnalysisRequest]:
        return iter(self._pending)

    @property
    def head(self) -> Optional[AnalysisRequest]:
        return self._pending[0] if self._pending else None

    def submit(self, request: AnalysisRequest) -> None:
        self._pending.append(request)
        if len(self._pending) == 1:
            self._dispatch_head()

    def record_score(self, score: int) -> None:
        head = self.head
        if head is None:
            logger.debug(f"Dropping score {score}: no request in flight")
            return
        head.score = score

    def record_best_move(self, move: str) -> Optional[AnalysisRequest]:
        if not self._pending:
            logger.debug(f"Dropping bestmove {move}: no request in flight")
            return None
        request = self._pending.popleft()
        request.resolve(move)
        if self._pending:
            self._dispatch_head()
        return request

    def withdraw(self, request: AnalysisRequest) -> bool:
        """Remove a request that ran out of time.

        Returns ``False`` when the request had already left the queue.
        """
        try:
            self._pending.remove(request)
        except ValueError:
            return False
        request.time_out()
        return True

    def fail_all(self, exc: EngineError) -> int:
        failed = 0
        while self._pending:
            if self._pending.popleft().fail(exc):
                failed += 1
        return failed

    def _dispatch_head(self) -> None:
        request = self._pending[0]
        try:
            self._send_line(usi_codec.position_sfen(request.position))
            self._send_line(usi_codec.go_depth(request.depth))
        except EngineError as exc:
            logger.error(f"Could not dispatch analysis request: {exc}")
            self.fail_all(exc)
