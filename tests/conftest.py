"""Shared test fixtures for stacklens unit tests."""

from __future__ import annotations

import logging

import pytest
from loguru import logger

from stacklens.profiling.builder import get_func_names_dict, thread_from_text_samples


@pytest.fixture
def caplog(caplog):
    """Route loguru records into pytest's caplog."""

    class PropagateHandler(logging.Handler):
        def emit(self, record):
            logging.getLogger(record.name).handle(record)

    handler_id = logger.add(PropagateHandler(), format="{message}")
    yield caplog
    logger.remove(handler_id)


@pytest.fixture
def simple_thread():
    """Four samples: A→B→C, A→B→D, A→B→C→E and A→F."""
    return thread_from_text_samples(
        """
        A  A  A  A
        B  B  B  F
        C  D  C
              E
        """
    )


@pytest.fixture
def simple_funcs(simple_thread):
    return get_func_names_dict(simple_thread)


@pytest.fixture
def mixed_thread():
    """JS and native frames interleaved, including a probable JIT address."""
    return thread_from_text_samples(
        """
        A[lib:libxul.so]  A[lib:libxul.so]  A[lib:libxul.so]
        Bjs               Bjs               0x1f00
        N[lib:libxul.so]  Cjs               Djs
        Cjs               Ejs
        """
    )


@pytest.fixture
def mixed_funcs(mixed_thread):
    return get_func_names_dict(mixed_thread)


@pytest.fixture
def text_profile_file(tmp_path):
    """A two-thread text samples file."""
    path = tmp_path / "profile.txt"
    path.write_text(
        "A  A  A\n"
        "B  B  C\n"
        "D  E\n"
        "---\n"
        "X  X\n"
        "Y  Z\n"
    )
    return path
