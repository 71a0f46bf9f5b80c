"""
Logging setup for the stacklens command line.

Library modules only emit records through loguru; nothing is configured on
import. The CLI entry point calls ``setup_logging`` once, and again when a
viewer config file sets its own level. Each call replaces every sink.

Console lines share the terminal with rich trees and tables, so they stay
short: level and message, plus the emitting module at DEBUG and below so
timing lines can be traced back to a transform. The optional log file gets
the full context of every record.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Optional, TextIO

from loguru import logger


LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def normalize_level(level: str) -> str:
    """Upper-case ``level`` and check loguru knows it."""
    normalized = level.upper()
    if normalized not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}, expected one of {', '.join(LOG_LEVELS)}")
    return normalized


def console_format(level: str, show_time: bool = False, show_level: bool = True) -> str:
    parts = []
    if show_time:
        parts.append("<green>{time:HH:mm:ss.SSS}</green>")
    if show_level:
        parts.append("<level>{level: <8}</level>")
    if level in ("TRACE", "DEBUG"):
        parts.append("<cyan>{name}</cyan>:<cyan>{function}</cyan>")
    parts.append("<level>{message}</level>")
    return " | ".join(parts)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    show_time: bool = False,
    show_level: bool = True,
    sink: TextIO = sys.stderr,
) -> Any:
    """
    Route stacklens logging to the console and, optionally, a file.

    Parameters
    ----------
    level : str, default="INFO"
        Minimum level for both sinks, case-insensitive
    log_file : Path | None, default=None
        Also write records here, rotated at 10 MB and kept for 7 days
    show_time : bool, default=False
        Prefix console lines with the time of day
    show_level : bool, default=True
        Prefix console lines with the level name
    sink : TextIO, default=sys.stderr
        Console stream; colors are used only when it is a terminal

    Returns
    -------
    logger
        The configured loguru logger

    Raises
    ------
    ValueError
        If ``level`` is not a loguru level name

    Examples
    --------
    >>> setup_logging(level="debug", log_file=Path("stacklens.log"))
    >>> logger.debug("focus_subtree took 0.40 ms")
    """
    level = normalize_level(level)
    logger.remove()

    logger.add(sink, format=console_format(level, show_time, show_level), level=level)

    if log_file:
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=level,
            rotation="10 MB",
            retention="7 days",
            encoding="utf-8",
        )

    return logger
