"""Tests for the error taxonomy."""

import pytest

from stackshift.constants import REMEDIATION_HINT
from stackshift.errors import ErrorType, ValidationError, from_os_error


@pytest.mark.parametrize("error_type", [
    ErrorType.PATH_TRAVERSAL,
    ErrorType.NOT_FOUND,
    ErrorType.PERMISSION_DENIED,
])
def test_path_errors_carry_hint(error_type):
    """Test that path and permission errors suggest running from the project root."""
    error = ValidationError(error_type)

    assert error.message.endswith(REMEDIATION_HINT)


@pytest.mark.parametrize("error_type", [
    ErrorType.INVALID_INPUT,
    ErrorType.INVALID_STRUCTURE,
    ErrorType.FILE_TOO_LARGE,
])
def test_other_errors_have_no_hint(error_type):
    """Test that input and content errors carry only their own message."""
    error = ValidationError(error_type, "Invalid route. Must be one of: greenfield, brownfield")

    assert error.message == "Invalid route. Must be one of: greenfield, brownfield"
    assert REMEDIATION_HINT not in str(error)


def test_to_dict_omits_details():
    """Test the external representation."""
    error = ValidationError(ErrorType.NOT_FOUND, details={"path": "/secret"})

    external = error.to_dict()

    assert external["type"] == "notFound"
    assert "details" not in external
    assert "/secret" not in external["message"]


@pytest.mark.parametrize("os_error,expected", [
    (FileNotFoundError(2, "missing"), ErrorType.NOT_FOUND),
    (PermissionError(13, "denied"), ErrorType.PERMISSION_DENIED),
    (IsADirectoryError(21, "is a directory"), ErrorType.INVALID_INPUT),
    (OSError(5, "I/O error"), ErrorType.PERMISSION_DENIED),
])
def test_from_os_error(os_error, expected):
    """Test mapping OS errors onto error kinds."""
    error = from_os_error(os_error, "read", "/tmp/state.json")

    assert error.error_type == expected
    assert error.details["operation"] == "read"
