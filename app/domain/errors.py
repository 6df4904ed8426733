from __future__ import annotations


class EngineError(Exception):
    """Base class for engine session and analysis errors."""


class EngineNotFoundError(EngineError):
    """Raised when the engine executable cannot be found or spawned."""


class EngineNotReadyError(EngineError):
    """Raised when analysis is requested before the engine has finished its handshake."""


class EngineDegradedError(EngineError):
    """Raised when the engine is running but cannot evaluate positions."""


class EngineTerminatedError(EngineDegradedError):
    """Raised when the engine process has exited and will not come back."""


class RequestTimeoutError(EngineError):
    """Raised when an analysis request is not answered in time."""
