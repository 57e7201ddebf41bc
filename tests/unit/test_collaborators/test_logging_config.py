"""Unit tests for the logging setup."""

import io
import logging

import pytest

from siteaudit.logging_config import PROGRESS_LOGGER, get_progress_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    """Put back the handlers pytest installed once each test is done."""
    root = logging.getLogger()
    progress = logging.getLogger(PROGRESS_LOGGER)
    saved = (list(root.handlers), root.level, list(progress.handlers), progress.propagate)
    yield
    for handler in root.handlers:
        if handler not in saved[0]:
            handler.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    progress.handlers[:] = saved[2]
    progress.propagate = saved[3]


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_progress_goes_to_its_own_stream(self):
        """Test progress lines are bare messages kept out of the diagnostic log."""
        stream = io.StringIO()
        setup_logging(level="INFO", progress_stream=stream)

        get_progress_logger().info("[1] completed: https://example.com/")
        logging.getLogger("siteaudit.controller").info("diagnostic line")

        assert stream.getvalue() == "[1] completed: https://example.com/\n"
        assert not get_progress_logger().propagate

    def test_progress_ignores_diagnostic_level(self):
        """Test a quiet log level still shows progress."""
        stream = io.StringIO()
        setup_logging(level="ERROR", progress_stream=stream)

        get_progress_logger().info("[2] fetching - Loading page")

        assert "[2] fetching - Loading page" in stream.getvalue()
        assert logging.getLogger().level == logging.ERROR

    def test_repeated_setup_keeps_one_progress_handler(self):
        """Test calling setup twice does not print progress twice."""
        first, second = io.StringIO(), io.StringIO()
        setup_logging(progress_stream=first)
        setup_logging(progress_stream=second)

        get_progress_logger().info("once")

        assert first.getvalue() == ""
        assert second.getvalue() == "once\n"

    def test_log_file_receives_diagnostics_only(self, tmp_path):
        log_file = tmp_path / "logs" / "audit.log"
        setup_logging(level="INFO", log_file=str(log_file), progress_stream=io.StringIO())

        logging.getLogger("siteaudit.scheduler").warning("page timed out")
        get_progress_logger().info("[1] failed: https://example.com/")
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = log_file.read_text()
        assert "siteaudit.scheduler - WARNING - page timed out" in content
        assert "[1] failed" not in content

    def test_noisy_libraries_quieted(self):
        setup_logging(level="DEBUG", progress_stream=io.StringIO())

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
