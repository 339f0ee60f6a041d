"""Configuration loading and management."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from stackshift.constants import (
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_LEVEL,
    ENV_LOG_FORMAT,
    ENV_LOG_LEVEL,
    ENV_LOG_SILENT,
    ENV_TEST_MODE,
    LOG_FORMATS,
    LOG_LEVELS,
)

TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in TRUTHY


@dataclass
class Config:
    """StackShift configuration.

    Loads from .env and the process environment. ``test_mode`` widens the
    authorized paths to the temp directory and must never be set outside a
    test run.
    """

    # Diagnostic logging
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = DEFAULT_LOG_FORMAT
    log_silent: bool = False

    # Test harness signal
    test_mode: bool = False

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> "Config":
        """Load configuration from the environment.

        Args:
            project_root: Project root directory (for its .env file)

        Returns:
            Config instance
        """
        if project_root and (project_root / ".env").is_file():
            load_dotenv(project_root / ".env")
        else:
            load_dotenv()

        return cls(
            log_level=os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).strip().lower(),
            log_format=os.getenv(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT).strip().lower(),
            log_silent=_env_flag(ENV_LOG_SILENT),
            test_mode=_env_flag(ENV_TEST_MODE),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if self.log_level not in LOG_LEVELS:
            errors.append(
                f"Invalid log level: {self.log_level}. Must be one of {', '.join(LOG_LEVELS)}"
            )

        if self.log_format not in LOG_FORMATS:
            errors.append(
                f"Invalid log format: {self.log_format}. Must be one of {', '.join(LOG_FORMATS)}"
            )

        return errors

    def to_dict(self) -> dict:
        """Convert config to dictionary (for logging/display)."""
        return {
            "log_level": self.log_level,
            "log_format": self.log_format,
            "log_silent": self.log_silent,
            "test_mode": self.test_mode,
        }
