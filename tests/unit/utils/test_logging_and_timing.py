"""Unit tests for loguru setup and the timing helpers."""

from __future__ import annotations

import io
import logging
import sys

import pytest
from loguru import logger

from stacklens.utils import normalize_level, setup_logging, time_code, timed
from stacklens.utils import timing
from stacklens.utils.logging_config import LOG_LEVELS, console_format


class TestTiming:
    """Test timed and time_code."""

    def test_time_code_returns_result_and_logs(self, caplog):
        with caplog.at_level(logging.DEBUG):
            assert time_code("sum", lambda: sum([1, 2, 3])) == 6
        assert "sum took" in caplog.text

    def test_slow_operations_log_at_info(self, caplog, monkeypatch):
        monkeypatch.setattr(timing, "SLOW_OPERATION_MS", -1.0)
        with caplog.at_level(logging.DEBUG):
            with timed("merge_call_node"):
                pass
        (record,) = [r for r in caplog.records if "merge_call_node took" in r.getMessage()]
        assert record.levelname == "INFO"

    def test_exceptions_propagate(self, caplog):
        with caplog.at_level(logging.DEBUG):
            with pytest.raises(RuntimeError):
                with timed("failing"):
                    raise RuntimeError("boom")
        assert "failing took" in caplog.text


class TestSetupLogging:
    """Test setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        yield
        logger.remove()
        logger.add(sys.stderr, level="WARNING")

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "stacklens.log"
        setup_logging(level="DEBUG", log_file=log_file, show_time=False)
        logger.debug("focus_subtree took 0.40 ms")
        logger.remove()
        content = log_file.read_text()
        assert "focus_subtree took 0.40 ms" in content
        assert "DEBUG" in content

    def test_level_filters_file_output(self, tmp_path):
        log_file = tmp_path / "stacklens.log"
        setup_logging(level="WARNING", log_file=log_file, show_level=False)
        logger.info("hidden")
        logger.warning("shown")
        logger.remove()
        content = log_file.read_text()
        assert "shown" in content
        assert "hidden" not in content

    def test_console_shows_module_at_debug(self):
        stream = io.StringIO()
        setup_logging(level="debug", sink=stream)
        logger.debug("invert_thread took 1.00 ms")
        output = stream.getvalue()
        assert "invert_thread took 1.00 ms" in output
        assert "test_logging_and_timing" in output
        assert "test_console_shows_module_at_debug" in output

    def test_console_is_short_at_info(self):
        stream = io.StringIO()
        setup_logging(sink=stream, show_level=False)
        logger.debug("hidden")
        logger.info("Loaded 1 thread(s)")
        assert stream.getvalue() == "Loaded 1 thread(s)\n"

    def test_unknown_level_raises(self):
        with pytest.raises(ValueError, match="Unknown log level 'loud'"):
            setup_logging(level="loud", sink=io.StringIO())


class TestLevels:
    """Test level names and console formats."""

    @pytest.mark.parametrize("level,expected", [("info", "INFO"), ("Warning", "WARNING"), ("TRACE", "TRACE")])
    def test_normalize_level(self, level, expected):
        assert normalize_level(level) == expected
        assert expected in LOG_LEVELS

    def test_console_format_parts(self):
        assert console_format("INFO") == "<level>{level: <8}</level> | <level>{message}</level>"
        assert "{time:HH:mm:ss.SSS}" in console_format("INFO", show_time=True)
        assert "{name}" in console_format("TRACE")
        assert "{level" not in console_format("DEBUG", show_level=False)
