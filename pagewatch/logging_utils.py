"""Internal logging setup.

Diagnostic lines from the page are the tool's output and are printed
directly; loguru carries pagewatch's own debug trail (CDP traffic,
swallowed handler errors) on stderr.
"""

from __future__ import annotations

import os
import sys

from loguru import logger

LOG_FORMAT = "{time:HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"
_CONFIGURED_LEVEL: str | None = None


def configure_logging(level: str | None = None) -> None:
    """Configure process-level logging once per level."""
    global _CONFIGURED_LEVEL
    level = (level or os.getenv("PAGEWATCH_LOG_LEVEL", "WARNING")).upper()
    if level == _CONFIGURED_LEVEL:
        return

    logger.remove()
    try:
        logger.add(sys.stderr, level=level, format=LOG_FORMAT, backtrace=False, diagnose=False)
    except ValueError:
        # Unknown level name
        level = "WARNING"
        logger.add(sys.stderr, level=level, format=LOG_FORMAT, backtrace=False, diagnose=False)
    _CONFIGURED_LEVEL = level
