"""Diagnostic logging utilities.

Full error details (attempted paths, authorized paths, raw I/O errors) are
only ever written here, never returned to external callers.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from stackshift.config import Config

ROOT_LOGGER = "stackshift"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_logger(component: str) -> logging.Logger:
    """Get the diagnostic logger for a component.

    Args:
        component: Component name (e.g. "state", "security")

    Returns:
        Logger named ``stackshift.<component>``
    """
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


class JsonLinesFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "component": record.name.removeprefix(f"{ROOT_LOGGER}."),
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ContextFormatter(logging.Formatter):
    """Appends ``key=value`` pairs from the record context to the message."""

    def format(self, record: logging.LogRecord) -> str:
        message = escape(super().format(record))
        context = getattr(record, "context", None)
        if not context:
            return message
        pairs = escape(" ".join(f"{key}={value}" for key, value in context.items()))
        return f"{message} [dim]{pairs}[/dim]"


def configure_logging(
    config: Optional[Config] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach a single handler to the ``stackshift`` logger.

    Args:
        config: Configuration (loaded from the environment if not provided)
        stream: Output stream override (defaults to stderr)

    Returns:
        The configured root ``stackshift`` logger
    """
    config = config or Config.load()
    logger = logging.getLogger(ROOT_LOGGER)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if config.log_silent:
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.CRITICAL + 1)
        logger.propagate = False
        return logger

    if config.log_format == "json":
        handler: logging.Handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonLinesFormatter())
    else:
        console = Console(file=stream, stderr=stream is None)
        handler = RichHandler(console=console, show_path=False, markup=True)
        handler.setFormatter(ContextFormatter("%(message)s"))

    logger.addHandler(handler)
    logger.setLevel(_LEVELS.get(config.log_level, logging.INFO))
    logger.propagate = False
    return logger
