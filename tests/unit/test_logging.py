"""Unit tests for logging configuration."""

from __future__ import annotations

import json
import logging
import logging.handlers
from io import StringIO
from pathlib import Path
from typing import Any

import pytest
import structlog

from projectdock.config import LoggingConfig
from projectdock.logging import (
    add_correlation_id,
    bind_project_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging() -> None:
    """Reset logging configuration before each test."""
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    set_correlation_id(None)


@pytest.fixture
def capture_stream() -> StringIO:
    return StringIO()


@pytest.fixture
def json_config() -> LoggingConfig:
    """Create a LoggingConfig for JSON output to stdout."""
    return LoggingConfig(level="INFO", format="json", file=None)


def _capture(stream: StringIO) -> None:
    logging.getLogger().handlers[0].stream = stream  # type: ignore[attr-defined]


def test_json_output_format(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    """Test that JSON format produces valid JSON output."""
    setup_logging(json_config)
    _capture(capture_stream)

    logger = get_logger("test.module")
    logger.info("project_transition", from_status="Open", to_status="Ready")

    log_entry = json.loads(capture_stream.getvalue().strip())
    assert log_entry["event"] == "project_transition"
    assert log_entry["from_status"] == "Open"
    assert log_entry["to_status"] == "Ready"
    assert log_entry["level"] == "info"
    assert log_entry["logger"] == "test.module"
    assert "timestamp" in log_entry


def test_console_output_format(capture_stream: StringIO) -> None:
    """Test that console format produces human-readable output."""
    setup_logging(LoggingConfig(level="DEBUG", format="console"))
    _capture(capture_stream)

    get_logger("test.module").debug("phase_status_changed", to_status="completed")

    output = capture_stream.getvalue()
    assert "phase_status_changed" in output
    assert "completed" in output
    with pytest.raises(json.JSONDecodeError):
        json.loads(output.strip())


def test_log_level_filtering(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    """Test that INFO level filters out DEBUG."""
    setup_logging(json_config)
    _capture(capture_stream)
    logger = get_logger("test.module")

    logger.debug("debug_message")
    assert capture_stream.getvalue() == ""

    logger.warning("warning_message")
    assert "warning_message" in capture_stream.getvalue()


def test_correlation_id_binding(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    """Test that correlation ID is added to log entries while set."""
    setup_logging(json_config)
    _capture(capture_stream)
    logger = get_logger("test.module")

    set_correlation_id("corr-12345")
    assert get_correlation_id() == "corr-12345"
    logger.info("with_correlation")
    assert json.loads(capture_stream.getvalue().strip())["correlation_id"] == "corr-12345"

    set_correlation_id(None)
    capture_stream.truncate(0)
    capture_stream.seek(0)
    logger.info("without_correlation")
    assert "correlation_id" not in json.loads(capture_stream.getvalue().strip())


def test_correlation_id_processor() -> None:
    """Test the correlation ID processor directly."""
    event_dict: dict[str, Any] = {"event": "test"}

    assert "correlation_id" not in add_correlation_id(None, "", event_dict.copy())

    set_correlation_id("test-id")
    assert add_correlation_id(None, "", event_dict.copy())["correlation_id"] == "test-id"


def test_project_context_binding(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    """Test that project and actor ids are attached to every later entry."""
    setup_logging(json_config)
    _capture(capture_stream)

    bind_project_context(project_id="7f0c-project", actor_id="u-42")
    get_logger("module1").info("event1")
    first = json.loads(capture_stream.getvalue().strip())

    capture_stream.truncate(0)
    capture_stream.seek(0)
    get_logger("module2").info("event2")
    second = json.loads(capture_stream.getvalue().strip())

    for entry in (first, second):
        assert entry["project_id"] == "7f0c-project"
        assert entry["actor_id"] == "u-42"


def test_file_rotation_handler_configuration(tmp_path: Path) -> None:
    """Test that file rotation handler is configured correctly."""
    log_file = tmp_path / "logs" / "projectdock.log"
    config = LoggingConfig(
        level="INFO",
        format="json",
        file=log_file,
        rotation_size_mb=10,
        retention_count=3,
    )

    setup_logging(config)
    assert log_file.parent.exists()

    handler = logging.getLogger().handlers[0]
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.maxBytes == 10 * 1024 * 1024
    assert handler.backupCount == 3

    get_logger("test.module").info("file_write", data="test")
    handler.flush()

    log_entry = json.loads(log_file.read_text().strip())
    assert log_entry["event"] == "file_write"
    assert log_entry["data"] == "test"


def test_exception_formatting(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    """Test that exceptions are rendered into the entry."""
    setup_logging(json_config)
    _capture(capture_stream)

    try:
        raise ValueError("Test exception")
    except ValueError:
        get_logger("test.module").exception("error_occurred")

    log_entry = json.loads(capture_stream.getvalue().strip())
    assert log_entry["level"] == "error"
    assert "ValueError: Test exception" in log_entry["exception"]
