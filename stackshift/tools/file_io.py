"""Size-bounded reads, sanitized JSON parsing and atomic writes."""

import json
import os
import stat
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Union

from stackshift.constants import FORBIDDEN_KEYS, MAX_FILE_BYTES
from stackshift.errors import ErrorType, ValidationError, from_os_error
from stackshift.utils.logging import get_logger
from stackshift.utils.security import PathLike, PathValidator

logger = get_logger("file_io")

_umask_lock = threading.Lock()


def _default_file_mode() -> int:
    """Mode a newly created file gets under the current umask."""
    # os.umask can only be read by setting it
    with _umask_lock:
        umask = os.umask(0o022)
        os.umask(umask)
    return 0o666 & ~umask


def strip_forbidden_keys(document: Any) -> Any:
    """Remove forbidden structural keys from a parsed document root.

    Args:
        document: Parsed JSON value

    Returns:
        The same value, with forbidden keys removed if it is an object
    """
    if isinstance(document, dict):
        for key in FORBIDDEN_KEYS:
            if key in document:
                logger.warning("Stripped forbidden key from document", extra={"context": {"key": key}})
                del document[key]
    return document


class SafeFileIO:
    """Handles state file I/O with size limits and atomic replacement."""

    def __init__(
        self,
        validator: Optional[PathValidator] = None,
        max_bytes: int = MAX_FILE_BYTES,
    ):
        """Initialize SafeFileIO.

        Args:
            validator: Validator applied to every path (None for paths built internally)
            max_bytes: Maximum file size to read
        """
        self.validator = validator
        self.max_bytes = max_bytes

    def read_bounded(self, path: PathLike) -> bytes:
        """Read a whole file after checking its size.

        Args:
            path: File to read

        Returns:
            File content

        Raises:
            ValidationError: fileTooLarge, notFound, permissionDenied or invalidInput
        """
        file_path = self._check_path(path)

        # Check size before buffering anything
        try:
            size = os.stat(file_path).st_size
        except OSError as e:
            raise from_os_error(e, "stat", file_path) from e

        if size > self.max_bytes:
            details = {"path": str(file_path), "size": size, "max": self.max_bytes}
            logger.warning("Refusing to read oversized file", extra={"context": details})
            raise ValidationError(ErrorType.FILE_TOO_LARGE, details=details)

        try:
            with open(file_path, "rb") as f:
                return f.read(self.max_bytes + 1)
        except OSError as e:
            raise from_os_error(e, "read", file_path) from e

    def read_structured_safe(self, path: PathLike) -> Any:
        """Read and parse a JSON document, stripping forbidden keys.

        Args:
            path: File to read

        Returns:
            Parsed document

        Raises:
            ValidationError: invalidStructure on decode or parse failure,
                plus any error from read_bounded
        """
        content = self.read_bounded(path)

        if len(content) > self.max_bytes:
            # File grew between stat and read
            raise ValidationError(ErrorType.FILE_TOO_LARGE, details={"path": str(path)})

        try:
            document = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(
                ErrorType.INVALID_STRUCTURE,
                details={"path": str(path), "error": str(e)},
            ) from e

        return strip_forbidden_keys(document)

    def write_atomic(self, path: PathLike, content: Union[str, bytes]) -> None:
        """Write content so readers see either the old or the new file.

        Writes to a randomly named temp file in the destination directory,
        then renames it over the destination.

        Args:
            path: Destination file
            content: Text (encoded as UTF-8) or bytes
        """
        file_path = self._check_path(path)
        data = content.encode("utf-8") if isinstance(content, str) else content

        # mkstemp creates 0600 files; keep the destination's mode instead
        try:
            mode = stat.S_IMODE(os.stat(file_path).st_mode)
        except FileNotFoundError:
            mode = _default_file_mode()
        except OSError as e:
            raise from_os_error(e, "stat", file_path) from e

        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f"{file_path.name}.", suffix=".tmp", dir=file_path.parent
            )
        except OSError as e:
            raise from_os_error(e, "create temp file", file_path) from e

        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                if hasattr(os, "fchmod"):
                    os.fchmod(f.fileno(), mode)
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, file_path)
        except BaseException as e:
            # Clean up temp file; destination is untouched
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
            if isinstance(e, OSError):
                raise from_os_error(e, "write", file_path) from e
            raise

    def write_json_atomic(self, path: PathLike, document: Any) -> None:
        """Atomically write a pretty-printed JSON document.

        Args:
            path: Destination file
            document: JSON-serializable value
        """
        self.write_atomic(path, json.dumps(document, indent=2) + "\n")

    def remove(self, path: PathLike) -> bool:
        """Delete a single file.

        Args:
            path: File to delete

        Returns:
            True if a file was removed, False if it did not exist
        """
        file_path = self._check_path(path)
        try:
            file_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise from_os_error(e, "remove", file_path) from e

    def exists(self, path: PathLike) -> bool:
        """Check if a regular file exists at path."""
        return self._check_path(path).is_file()

    def _check_path(self, path: PathLike) -> Path:
        if self.validator is not None:
            return self.validator.validate_path(path)
        return Path(path)
