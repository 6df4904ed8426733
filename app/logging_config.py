"""
Logging setup for the analysis service, using loguru.
"""

import sys
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure console logging and, when a path is given, a rotating log file.

    Args:
        level: Minimum level for both sinks
        log_file: Optional path of the log file
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            level=level,
            format=FILE_FORMAT,
            rotation="50 MB",
            retention="7 days",
            encoding="utf-8",
            mode="a",
        )
