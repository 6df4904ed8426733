from __future__ import annotations

from abc import ABC, abstractmethod

from app.domain.entities.analysis import AnalysisRequest, EngineHealth


class EnginePort(ABC):
    """Abstraction for an engine that evaluates positions one request at a time."""

    @abstractmethod
    def submit(self, position: str, depth: int) -> AnalysisRequest:
        """Queue a position for analysis, or raise if the engine cannot take it."""

    @abstractmethod
    def withdraw(self, request: AnalysisRequest) -> bool:
        """Drop a request that is no longer awaited. Returns whether it was still queued."""

    @abstractmethod
    def health(self) -> EngineHealth:
        ...
