from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from app.domain.errors import EngineError


class EngineState(str, Enum):
    NOT_STARTED = "not_started"
    HANDSHAKING = "handshaking"
    AWAITING_READY = "awaiting_ready"
    READY = "ready"
    DEGRADED = "degraded"
    TERMINATED = "terminated"


class RequestOutcome(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class AnalysisResult:
    score: int
    best_move: str
    depth: int


@dataclass(frozen=True)
class EngineHealth:
    state: EngineState
    has_evaluation_data: bool
    queue_depth: int

    @property
    def is_ready(self) -> bool:
        return self.state is EngineState.READY and self.has_evaluation_data


def _new_future() -> "asyncio.Future[AnalysisResult]":
    return asyncio.get_running_loop().create_future()


@dataclass(eq=False)
class AnalysisRequest:
    """A single position submitted for analysis.

    The request is settled exactly once: resolved from engine output, failed
    explicitly, or timed out. Later settle attempts return ``False`` and leave
    the request untouched.
    """

    position: str
    depth: int
    score: Optional[int] = None
    best_move: Optional[str] = None
    outcome: RequestOutcome = RequestOutcome.PENDING
    future: "asyncio.Future[AnalysisResult]" = field(default_factory=_new_future, repr=False)

    @property
    def is_pending(self) -> bool:
        return self.outcome is RequestOutcome.PENDING

    def resolve(self, best_move: str) -> bool:
        if not self.is_pending:
            return False
        self.best_move = best_move
        self.outcome = RequestOutcome.RESOLVED
        self.future.set_result(
            AnalysisResult(
                score=self.score if self.score is not None else 0,
                best_move=best_move,
                depth=self.depth,
            )
        )
        return True

    def fail(self, exc: EngineError) -> bool:
        if not self.is_pending:
            return False
        self.outcome = RequestOutcome.FAILED
        self.future.set_exception(exc)
        return True

    def time_out(self) -> bool:
        if not self.is_pending:
            return False
        self.outcome = RequestOutcome.TIMED_OUT
        # Nobody awaits a timed out request any more.
        self.future.cancel()
        return True
