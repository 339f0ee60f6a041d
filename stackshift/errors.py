"""Error types shared by the validator, file I/O and stores."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from stackshift.constants import REMEDIATION_HINT


class ErrorType(str, Enum):
    """Closed set of failure kinds."""

    PATH_TRAVERSAL = "pathTraversal"
    FILE_TOO_LARGE = "fileTooLarge"
    INVALID_STRUCTURE = "invalidStructure"
    INVALID_INPUT = "invalidInput"
    NOT_FOUND = "notFound"
    PERMISSION_DENIED = "permissionDenied"


DEFAULT_MESSAGES = {
    ErrorType.PATH_TRAVERSAL: "Path is outside the authorized workspace",
    ErrorType.FILE_TOO_LARGE: "File exceeds the maximum allowed size",
    ErrorType.INVALID_STRUCTURE: "File does not contain a valid state document",
    ErrorType.INVALID_INPUT: "Input contains invalid characters or values",
    ErrorType.NOT_FOUND: "File or directory not found",
    ErrorType.PERMISSION_DENIED: "Permission denied",
}

# Kinds whose message carries the remediation hint
HINTED_ERRORS = frozenset({
    ErrorType.PATH_TRAVERSAL,
    ErrorType.NOT_FOUND,
    ErrorType.PERMISSION_DENIED,
})

# Kinds that callers must never downgrade to "use defaults"
SECURITY_ERRORS = frozenset({
    ErrorType.PATH_TRAVERSAL,
    ErrorType.FILE_TOO_LARGE,
    ErrorType.PERMISSION_DENIED,
})


class ValidationError(Exception):
    """A typed failure with a message that is safe to show outside the process.

    ``message`` names the error kind, with a remediation hint for path and
    permission failures. It never carries resolved paths or authorized base
    paths. ``details`` holds the full diagnostic context and is only meant
    for the local log.

    Attributes:
        error_type: Failure kind
        message: External-safe message
        details: Internal diagnostic context
        timestamp: When the error was raised (UTC)
    """

    def __init__(
        self,
        error_type: ErrorType,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.error_type = error_type
        base = message or DEFAULT_MESSAGES[error_type]
        self.message = f"{base}. {REMEDIATION_HINT}" if error_type in HINTED_ERRORS else base
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    @property
    def is_security_error(self) -> bool:
        """Whether this failure must always reach the caller."""
        return self.error_type in SECURITY_ERRORS

    def to_dict(self) -> dict[str, str]:
        """External representation (no details)."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return f"ValidationError({self.error_type.value!r}, {self.message!r})"


def from_os_error(error: OSError, operation: str, path: Any) -> ValidationError:
    """Map an OSError raised by a file operation onto the error taxonomy.

    Args:
        error: The underlying I/O error
        operation: Operation name for the diagnostic details
        path: Path the operation touched

    Returns:
        ValidationError with the matching kind
    """
    details = {"operation": operation, "path": str(path), "error": str(error)}

    if isinstance(error, FileNotFoundError):
        return ValidationError(ErrorType.NOT_FOUND, details=details)
    if isinstance(error, PermissionError):
        return ValidationError(ErrorType.PERMISSION_DENIED, details=details)
    if isinstance(error, (IsADirectoryError, NotADirectoryError)):
        return ValidationError(
            ErrorType.INVALID_INPUT, "Path is not a regular file", details=details
        )
    return ValidationError(
        ErrorType.PERMISSION_DENIED, "File operation failed", details=details
    )
