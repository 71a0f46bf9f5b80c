"""Utility functions for stacklens."""

from __future__ import annotations

from .logging_config import LOG_LEVELS, normalize_level, setup_logging
from .timing import time_code, timed


__all__ = [
    "LOG_LEVELS",
    "normalize_level",
    "setup_logging",
    "time_code",
    "timed",
]
