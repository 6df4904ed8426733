from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from app.application.ports.engine_port import EnginePort
from app.domain.entities.analysis import AnalysisResult
from app.domain.errors import RequestTimeoutError

DEFAULT_DEPTH = 15
DEFAULT_TIMEOUT = 30.0


class AnalyzePositionService:
    """Runs one position through the engine queue and waits for its result.

    Each call settles exactly once: with the engine's answer, with the
    failure the engine reported for it, or with a timeout.
    """

    def __init__(
        self,
        engine: EnginePort,
        timeout: float = DEFAULT_TIMEOUT,
        default_depth: int = DEFAULT_DEPTH,
    ) -> None:
        self._engine = engine
        self._timeout = timeout
        self._default_depth = default_depth

    async def execute(self, position: str, depth: Optional[int] = None) -> AnalysisResult:
        if not position or not position.strip():
            raise ValueError("position must not be empty")
        if depth is None:
            depth = self._default_depth
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 1:
            raise ValueError(f"depth must be a positive integer, got {depth!r}")

        request = self._engine.submit(position.strip(), depth)
        try:
            done, _ = await asyncio.wait({request.future}, timeout=self._timeout)
        except asyncio.CancelledError:
            self._engine.withdraw(request)
            raise
        if not done:
            # Output for a withdrawn request that was already sent to the
            # engine will be attributed to the next request in line.
            self._engine.withdraw(request)
            logger.warning(f"Analysis timed out after {self._timeout}s (depth {depth})")
            raise RequestTimeoutError("Analysis timeout")
        return request.future.result()
