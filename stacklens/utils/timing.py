# stacklens/utils/timing.py
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Generator, TypeVar

from loguru import logger


T = TypeVar("T")

# Operations slower than this are reported at INFO instead of DEBUG.
SLOW_OPERATION_MS = 50.0


@contextmanager
def timed(label: str) -> Generator[None, None, None]:
    """Log the wall-clock duration of the enclosed block."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        level = "INFO" if elapsed_ms > SLOW_OPERATION_MS else "DEBUG"
        logger.log(level, f"{label} took {elapsed_ms:.2f} ms")


def time_code(label: str, fn: Callable[[], T]) -> T:
    """Run ``fn`` and log how long it took under ``label``."""
    with timed(label):
        return fn()
