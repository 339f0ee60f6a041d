"""Path containment and input validation.

Guards against path traversal (CWE-22) and against paths carrying shell
metacharacters (CWE-78). The validator never touches the process working
directory: relative inputs resolve against an explicit working directory.
"""

import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

from stackshift.constants import (
    CLARIFICATIONS_STRATEGIES,
    IMPLEMENTATION_SCOPES,
    ROUTE_DESCRIPTIONS,
    SHELL_METACHARACTERS,
)
from stackshift.errors import ErrorType, ValidationError
from stackshift.utils.logging import get_logger

logger = get_logger("security")

PathLike = Union[str, os.PathLike]


def _has_unsafe_characters(value: str) -> bool:
    return "\x00" in value or any(char in SHELL_METACHARACTERS for char in value)


class PathValidator:
    """Validates paths against a set of authorized base paths."""

    def __init__(
        self,
        allowed_base_paths: Iterable[PathLike],
        working_directory: Optional[PathLike] = None,
    ):
        """Initialize validator.

        Args:
            allowed_base_paths: Directories treated as containment boundaries
            working_directory: Base for relative inputs (default: first base path)
        """
        self.allowed_base_paths = [Path(p).resolve() for p in allowed_base_paths]
        if not self.allowed_base_paths:
            raise ValueError("At least one authorized base path is required")

        self.working_directory = (
            Path(working_directory).resolve()
            if working_directory is not None
            else self.allowed_base_paths[0]
        )

    def validate_directory(self, directory: PathLike) -> Path:
        """Validate that a directory lies inside an authorized base path.

        Args:
            directory: Directory path (relative or absolute)

        Returns:
            Absolute, normalized path

        Raises:
            ValidationError: invalidInput for unsafe characters,
                pathTraversal when outside every base path
        """
        return self.validate_path(directory)

    def validate_path(self, path: PathLike) -> Path:
        """Validate any file or directory path.

        The path does not need to exist.

        Args:
            path: Path to validate (relative or absolute)

        Returns:
            Absolute, normalized path
        """
        raw = os.fspath(path)

        if not raw:
            raise ValidationError(ErrorType.INVALID_INPUT, "Path must not be empty")

        if _has_unsafe_characters(raw):
            logger.warning(
                "Rejected path with shell metacharacters",
                extra={"context": {"path": repr(raw)}},
            )
            raise ValidationError(
                ErrorType.INVALID_INPUT,
                "Invalid path: contains shell metacharacters",
                details={"path": raw},
            )

        resolved = self._resolve(raw)

        if not self.is_allowed(resolved):
            details = {
                "path": raw,
                "resolved": str(resolved),
                "allowed": [str(p) for p in self.allowed_base_paths],
                "parent_escape": Path(raw).parts[:1] == ("..",),
            }
            logger.warning("Path outside authorized workspace", extra={"context": details})
            raise ValidationError(ErrorType.PATH_TRAVERSAL, details=details)

        return resolved

    def validate_file_path(self, directory: PathLike, filename: str) -> Path:
        """Validate a file name inside a validated directory.

        Args:
            directory: Containing directory
            filename: Bare file name (no separators)

        Returns:
            Absolute path to the file
        """
        valid_dir = self.validate_directory(directory)

        if (
            not filename
            or filename in (".", "..")
            or "/" in filename
            or os.sep in filename
            or (os.altsep is not None and os.altsep in filename)
            or _has_unsafe_characters(filename)
        ):
            raise ValidationError(
                ErrorType.INVALID_INPUT,
                "Invalid filename",
                details={"filename": filename},
            )

        # Re-check the composed path in case the name still escapes
        file_path = self.validate_path(valid_dir / filename)
        if file_path.parent != valid_dir:
            raise ValidationError(
                ErrorType.PATH_TRAVERSAL,
                details={"directory": str(valid_dir), "filename": filename},
            )

        return file_path

    def is_allowed(self, path: Path) -> bool:
        """Check if an absolute path equals or descends from a base path.

        Args:
            path: Resolved absolute path

        Returns:
            True if the path is inside an authorized base path
        """
        for base in self.allowed_base_paths:
            try:
                path.relative_to(base)
                return True
            except ValueError:
                continue
        return False

    def _resolve(self, raw: str) -> Path:
        p = Path(raw).expanduser() if raw.startswith("~") else Path(raw)
        if not p.is_absolute():
            p = self.working_directory / p
        return p.resolve()


def create_default_validator(
    working_directory: PathLike,
    *,
    test_mode: bool = False,
    extra_paths: Iterable[PathLike] = (),
) -> PathValidator:
    """Create the standard validator for a working directory.

    Args:
        working_directory: The invoking process's working directory
        test_mode: Also authorize the temp directory (test runs only)
        extra_paths: Additional base paths (test harnesses only)

    Returns:
        PathValidator
    """
    base_paths: list[PathLike] = [working_directory]

    if test_mode:
        base_paths.append(tempfile.gettempdir())

    base_paths.extend(extra_paths)
    return PathValidator(base_paths, working_directory=working_directory)


def validate_route(route: object) -> Optional[str]:
    """Validate a route value (None allowed)."""
    if route is None:
        return None

    if not isinstance(route, str) or route not in ROUTE_DESCRIPTIONS:
        raise ValidationError(
            ErrorType.INVALID_INPUT,
            f"Invalid route. Must be one of: {', '.join(ROUTE_DESCRIPTIONS)}",
            details={"route": repr(route)},
        )
    return route


def validate_clarifications_strategy(strategy: object) -> str:
    """Validate a clarifications strategy."""
    if strategy not in CLARIFICATIONS_STRATEGIES:
        raise ValidationError(
            ErrorType.INVALID_INPUT,
            f"Invalid clarifications_strategy. Must be one of: {', '.join(CLARIFICATIONS_STRATEGIES)}",
            details={"clarifications_strategy": repr(strategy)},
        )
    return strategy


def validate_implementation_scope(scope: object) -> str:
    """Validate an implementation scope."""
    if scope not in IMPLEMENTATION_SCOPES:
        raise ValidationError(
            ErrorType.INVALID_INPUT,
            f"Invalid implementation_scope. Must be one of: {', '.join(IMPLEMENTATION_SCOPES)}",
            details={"implementation_scope": repr(scope)},
        )
    return scope
