"""
Service configuration.

Values come from environment variables; every field has a default so the
service starts with no configuration at all.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


def _parse_engine_options(raw: str) -> Dict[str, str]:
    """Parse ``Name=Value;Name=Value`` into an ordered mapping of USI options."""
    options: Dict[str, str] = {}
    for item in raw.split(";"):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Invalid engine option {item!r}, expected Name=Value")
        options[name.strip()] = value.strip()
    return options


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y")


@dataclass
class Settings:
    """Analysis service settings"""

    # Engine
    engine_path: str = os.path.join("engines", "YaneuraOu-by-gcc")
    engine_options: Dict[str, str] = field(default_factory=dict)
    startup_timeout: float = 30.0
    require_engine: bool = False  # abort instead of serving degraded

    # Analysis
    analysis_timeout: float = 30.0
    default_depth: int = 15
    kifu_default_depth: int = 12

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.startup_timeout <= 0 or self.analysis_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.default_depth < 1 or self.kifu_default_depth < 1:
            raise ValueError("Default depths must be positive")

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables"""
        return cls(
            engine_path=os.environ.get("ENGINE_PATH", cls.engine_path),
            engine_options=_parse_engine_options(os.environ.get("ENGINE_OPTIONS", "")),
            startup_timeout=float(os.environ.get("ENGINE_STARTUP_TIMEOUT", "30")),
            require_engine=_env_bool("REQUIRE_ENGINE"),
            analysis_timeout=float(os.environ.get("ANALYSIS_TIMEOUT", "30")),
            default_depth=int(os.environ.get("ANALYSIS_DEFAULT_DEPTH", "15")),
            kifu_default_depth=int(os.environ.get("KIFU_DEFAULT_DEPTH", "12")),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "3000")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_file=os.environ.get("LOG_FILE") or None,
        )
