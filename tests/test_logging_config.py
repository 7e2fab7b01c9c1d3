"""
Unit tests for logging configuration.

Tests structured JSON logging, file rotation, and context propagation.
"""

import json
import logging
import logging.handlers
import sys
from unittest.mock import MagicMock
import pytest

from testing_agent.core.logging_config import (
    ContextAdapter,
    StructuredFormatter,
    TextFormatter,
    setup_logging,
    get_logger,
    log_performance,
)
from testing_agent.core.config import Config


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test.component",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """Test cases for StructuredFormatter."""

    def test_format_basic_log_record(self):
        """Test formatting basic log record."""
        formatter = StructuredFormatter("session-123")

        log_data = json.loads(formatter.format(make_record()))

        assert log_data["level"] == "INFO"
        assert log_data["component"] == "test.component"
        assert log_data["session_id"] == "session-123"
        assert log_data["message"] == "Test message"
        assert log_data["timestamp"].endswith("Z")

    def test_format_with_metadata(self):
        """Test formatting log record with metadata."""
        formatter = StructuredFormatter("session-123")
        record = make_record("Run finished", logging.ERROR)
        record.metadata = {"critical_errors": 2, "duration": 2.5}

        log_data = json.loads(formatter.format(record))

        assert log_data["metadata"]["critical_errors"] == 2
        assert log_data["metadata"]["duration"] == 2.5

    def test_format_with_exception(self):
        """Test formatting log record with exception information."""
        formatter = StructuredFormatter("session-123")

        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record("Exception occurred", logging.ERROR, sys.exc_info())

        log_data = json.loads(formatter.format(record))

        assert "ValueError: Test exception" in log_data["exception"]

    def test_format_with_context_fields(self):
        """Test formatting log record with run context fields."""
        formatter = StructuredFormatter("session-123")
        record = make_record("Step completed")
        record.run_id = "2024-01-15-10-30-00"
        record.step = "login"
        record.duration = 1.23
        record.status = "PASS"

        log_data = json.loads(formatter.format(record))

        assert log_data["run_id"] == "2024-01-15-10-30-00"
        assert log_data["step"] == "login"
        assert log_data["duration"] == 1.23
        assert log_data["status"] == "PASS"


class TestTextFormatter:
    def test_includes_short_session_and_metadata(self):
        formatter = TextFormatter("abcdef1234567890")
        record = make_record("Launching chromium")
        record.metadata = {"mode": "headless"}

        formatted = formatter.format(record)

        assert "Launching chromium" in formatted
        assert "(session: abcdef12)" in formatted
        assert "mode=headless" in formatted


class TestLoggingSetup:
    """Test cases for logging setup functions."""

    def test_setup_logging_development_mode(self, tmp_path, restore_root_logger):
        """Test logging setup writes a rotating log file outside CI."""
        config = Config(logs_dir=tmp_path / "logs")
        config.ci_mode = False
        config.log_format = "text"
        config.log_level = "DEBUG"

        root = setup_logging(config, "session-123")
        logging.getLogger("test").info("Test message")

        assert root.level == logging.DEBUG
        assert config.get_log_file_path().exists()
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)

    def test_setup_logging_ci_mode(self, tmp_path, restore_root_logger):
        """Test logging setup for CI environment: stderr only, JSON."""
        config = Config(logs_dir=tmp_path / "logs")
        config.log_format = "json"
        config.log_level = "INFO"
        config.ci_mode = True

        root = setup_logging(config, "session-123")

        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert not (tmp_path / "logs").exists()

    def test_logs_go_to_stderr(self, tmp_path, capsys, restore_root_logger):
        config = Config(logs_dir=tmp_path / "logs")
        config.ci_mode = True
        config.log_format = "json"

        setup_logging(config, "session-456")
        logging.getLogger("test.component").warning("to stderr")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert json.loads(captured.err.strip().splitlines()[-1])["session_id"] == "session-456"

    def test_get_logger(self):
        """Test getting logger instance."""
        logger = get_logger("test.component")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "test.component"

    def test_get_logger_with_context(self):
        logger = get_logger("test.component", run_id="2024-01-15-10-30-00")

        assert isinstance(logger, ContextAdapter)
        _, kwargs = logger.process("msg", {"extra": {"step": "login"}})
        assert kwargs["extra"] == {"step": "login", "run_id": "2024-01-15-10-30-00"}

    def test_log_performance(self):
        """Test performance logging."""
        mock_logger = MagicMock()

        log_performance(mock_logger, "run_x", 1.5, status="PASS")

        level, message = mock_logger.log.call_args[0]
        assert level == logging.INFO
        assert "run_x completed in 1.50s" in message
        metadata = mock_logger.log.call_args[1]["extra"]["metadata"]
        assert metadata["duration"] == 1.5
        assert metadata["status"] == "PASS"

    def test_log_performance_custom_level(self):
        mock_logger = MagicMock()

        log_performance(mock_logger, "cleanup", 0.1, level=logging.DEBUG)

        assert mock_logger.log.call_args[0][0] == logging.DEBUG
