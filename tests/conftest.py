"""Shared fixtures for the analysis service tests."""

import asyncio
from typing import List, Optional

import pytest

from app.infrastructure.engine.usi_engine_session import UsiEngineSession


class FakePipe:
    """Stands in for the engine's stdin pipe and records every write."""

    def __init__(self) -> None:
        self.writes: List[bytes] = []
        self.closed = False

    def write(self, data: bytes) -> None:
        assert not self.closed, "write to a closed pipe"
        self.writes.append(data)

    def is_closing(self) -> bool:
        return self.closed

    @property
    def lines(self) -> List[str]:
        return [chunk.decode("utf-8").rstrip("\n") for chunk in self.writes]


class FakeTransport:
    """In-memory replacement for an asyncio subprocess transport."""

    def __init__(self) -> None:
        self.stdin = FakePipe()
        self.killed = False
        self.closed = False
        self.returncode: Optional[int] = None

    def get_pipe_transport(self, fd: int) -> Optional[FakePipe]:
        return self.stdin if fd == 0 else None

    def is_closing(self) -> bool:
        return self.closed

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    def close(self) -> None:
        self.closed = True
        self.stdin.closed = True

    def get_returncode(self) -> Optional[int]:
        return self.returncode

    def get_pid(self) -> int:
        return 4242


def feed(session: UsiEngineSession, *lines: str) -> None:
    """Deliver engine stdout lines to the session."""
    for line in lines:
        session.pipe_data_received(1, (line + "\n").encode("utf-8"))


def handshake(session: UsiEngineSession, transport: FakeTransport, *extra: str) -> None:
    """Drive a session through usiok/readyok on a fake transport."""
    session.connection_made(transport)
    feed(session, "id name FakeEngine", "usiok", *extra, "readyok")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(transport):
    """A session that has completed its handshake and is ready to analyze."""
    engine = UsiEngineSession("/opt/engines/fake", options={"USI_Hash": 256, "Threads": 1})
    handshake(engine, transport)
    transport.stdin.writes.clear()
    return engine


class ScriptedPipe(FakePipe):
    """Answers every ``go`` with a score and best move, except for silent positions."""

    def __init__(self, silent=(), scores=None):
        super().__init__()
        self.session = None
        self.silent = set(silent)
        self.scores = dict(scores or {})
        self.position = None

    def write(self, data: bytes) -> None:
        super().write(data)
        line = data.decode("utf-8").strip()
        if line.startswith("position sfen "):
            self.position = line[len("position sfen "):]
        elif line.startswith("go depth") and self.session is not None:
            if self.position in self.silent:
                return
            score = self.scores.get(self.position, 50)
            asyncio.get_running_loop().call_soon(
                feed, self.session, f"info depth 4 score cp {score} pv 7g7f", "bestmove 7g7f"
            )


def scripted_session(silent=(), scores=None, engine=None, extra=()):
    """Hand back a ready session whose fake engine answers searches on its own."""
    transport = FakeTransport()
    transport.stdin = ScriptedPipe(silent, scores)
    if engine is None:
        engine = UsiEngineSession("/opt/engines/fake")
    handshake(engine, transport, *extra)
    transport.stdin.session = engine
    transport.stdin.writes.clear()
    return engine, transport
