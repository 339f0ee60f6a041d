"""Tests for diagnostic logging setup."""

import io
import json
import logging

import pytest

from stackshift.config import Config
from stackshift.utils.logging import ROOT_LOGGER, configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Restore the stackshift logger after each test."""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_get_logger_namespace():
    """Test component loggers live under the stackshift logger."""
    assert get_logger("state").name == "stackshift.state"


def test_json_lines():
    """Test that the JSON format writes one object per line."""
    stream = io.StringIO()
    configure_logging(Config(log_format="json", log_level="debug"), stream=stream)

    get_logger("security").warning("Path rejected", extra={"context": {"path": "../etc"}})
    get_logger("state").debug("Loaded state")

    lines = stream.getvalue().splitlines()
    assert len(lines) == 2

    first = json.loads(lines[0])
    assert first["level"] == "warning"
    assert first["component"] == "security"
    assert first["message"] == "Path rejected"
    assert first["context"] == {"path": "../etc"}
    assert "ts" in first

    second = json.loads(lines[1])
    assert second["component"] == "state"
    assert "context" not in second


def test_level_filtering():
    """Test that records below the configured level are dropped."""
    stream = io.StringIO()
    configure_logging(Config(log_format="json", log_level="warning"), stream=stream)

    get_logger("state").info("hidden")
    get_logger("state").error("shown")

    lines = stream.getvalue().splitlines()
    assert [json.loads(line)["message"] for line in lines] == ["shown"]


def test_pretty_format_includes_context():
    """Test that the pretty format renders context pairs."""
    stream = io.StringIO()
    configure_logging(Config(log_format="pretty"), stream=stream)

    get_logger("batch").info("Created batch session", extra={"context": {"session_id": "batch-1"}})

    output = stream.getvalue()
    assert "Created batch session" in output
    assert "session_id=batch-1" in output


def test_silent_mode():
    """Test that silent mode discards everything."""
    logger = configure_logging(Config(log_silent=True))

    assert not logger.isEnabledFor(logging.CRITICAL)
    assert all(isinstance(h, logging.NullHandler) for h in logger.handlers)


def test_reconfigure_replaces_handler():
    """Test that configuring twice leaves a single handler."""
    configure_logging(Config(log_format="json"), stream=io.StringIO())
    logger = configure_logging(Config(log_format="json"), stream=io.StringIO())

    assert len(logger.handlers) == 1
