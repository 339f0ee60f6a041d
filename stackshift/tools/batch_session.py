"""Batch sessions shared by sibling working directories.

A batch session file lives in a batch root directory. Any directory below it
finds the session by walking up, so configuration answers collected once are
reused instead of asked again. The walk stops at the first repository root.
"""

import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError as SchemaError

from stackshift.constants import BATCH_SESSION_FILENAME, REPOSITORY_ROOT_MARKERS
from stackshift.errors import ErrorType, ValidationError
from stackshift.state import BatchAnswers, BatchSession, utc_now
from stackshift.tools.file_io import SafeFileIO
from stackshift.utils.logging import get_logger
from stackshift.utils.security import PathLike, PathValidator

logger = get_logger("batch")


def has_repository_marker(directory: Path) -> bool:
    """Check if a directory is a repository root (e.g. contains .git)."""
    return any((directory / marker).exists() for marker in REPOSITORY_ROOT_MARKERS)


class BatchSessionRegistry:
    """Creates, discovers, updates and clears batch sessions."""

    def __init__(
        self,
        validator: PathValidator,
        file_io: Optional[SafeFileIO] = None,
        is_repository_root: Callable[[Path], bool] = has_repository_marker,
    ):
        """Initialize the registry.

        Args:
            validator: Validator for externally supplied directories
            file_io: File I/O helper for session files
            is_repository_root: Check that bounds the upward walk
        """
        self.validator = validator
        # Session paths are built here from validated directories
        self.file_io = file_io or SafeFileIO()
        self.is_repository_root = is_repository_root

    def find(self, start_dir: PathLike) -> Optional[BatchSession]:
        """Find the batch session covering a directory.

        Args:
            start_dir: Directory to start the upward walk from

        Returns:
            BatchSession, or None if no session covers the directory
        """
        found = self._find_session(start_dir)
        return found[1] if found else None

    def has_session(self, start_dir: PathLike) -> bool:
        """Check if a batch session covers a directory."""
        return self.find(start_dir) is not None

    def create(
        self,
        root_dir: PathLike,
        total_repos: int,
        batch_size: int,
        answers: Optional[Mapping[str, Any]] = None,
    ) -> BatchSession:
        """Create a batch session in a root directory.

        Args:
            root_dir: Batch root directory (must exist)
            total_repos: Number of repositories in the batch
            batch_size: Repositories processed per round
            answers: Configuration answers shared by the batch

        Returns:
            The new session
        """
        root = self.validator.validate_directory(root_dir)
        if not root.is_dir():
            raise ValidationError(
                ErrorType.NOT_FOUND,
                "Batch root directory does not exist",
                details={"directory": str(root)},
            )

        try:
            session = BatchSession(
                session_id=f"batch-{int(time.time() * 1000)}",
                started_at=utc_now(),
                batch_root_directory=str(root),
                total_repos=total_repos,
                batch_size=batch_size,
                answers=BatchAnswers.model_validate(dict(answers or {})),
                processed_repos=[],
            )
        except SchemaError as e:
            raise ValidationError(
                ErrorType.INVALID_INPUT,
                "Invalid batch session settings",
                details={"errors": str(e)},
            ) from e

        self.file_io.write_json_atomic(self._session_path(root), session.to_document())
        logger.info(
            "Created batch session",
            extra={"context": {"session_id": session.session_id, "root": str(root)}},
        )
        return session

    def mark_processed(self, repo_id: str, start_dir: PathLike) -> Optional[BatchSession]:
        """Record a repository as processed in the covering session.

        Args:
            repo_id: Repository identifier
            start_dir: Directory to find the session from

        Returns:
            Updated session, or None if no session covers the directory
        """
        if not isinstance(repo_id, str) or not repo_id.strip():
            raise ValidationError(ErrorType.INVALID_INPUT, "Repository identifier is required")

        found = self._find_session(start_dir)
        if found is None:
            logger.debug("No batch session to update", extra={"context": {"start_dir": str(start_dir)}})
            return None

        session_path, session = found
        if repo_id in session.processed_repos:
            return session

        if len(session.processed_repos) >= session.total_repos:
            raise ValidationError(
                ErrorType.INVALID_INPUT,
                "Batch session already has all repositories processed",
                details={"session_id": session.session_id, "repo_id": repo_id},
            )

        session.processed_repos.append(repo_id)
        self.file_io.write_json_atomic(session_path, session.to_document())
        return session

    def clear(self, directory: PathLike) -> bool:
        """Delete the batch session file in exactly this directory.

        Args:
            directory: Batch root directory

        Returns:
            True if a session file was removed
        """
        root = self.validator.validate_directory(directory)
        removed = self.file_io.remove(self._session_path(root))
        if removed:
            logger.info("Cleared batch session", extra={"context": {"root": str(root)}})
        return removed

    def progress(self, start_dir: PathLike) -> str:
        """Describe batch progress for a directory.

        Args:
            start_dir: Directory to find the session from

        Returns:
            Progress line
        """
        session = self.find(start_dir)
        if session is None:
            return "No active batch session"

        processed = len(session.processed_repos)
        total = session.total_repos
        percent = round(processed / total * 100) if total else 100
        return f"Batch Progress: {processed}/{total} repos ({percent}%)"

    def _find_session(self, start_dir: PathLike) -> Optional[tuple[Path, BatchSession]]:
        start = self.validator.validate_directory(start_dir)

        # Bounded by the depth of start; the filesystem root ends the loop
        for directory in (start, *start.parents):
            session_path = self._session_path(directory)
            if session_path.is_file():
                session = self._read_session(session_path)
                return (session_path, session) if session is not None else None

            if self.is_repository_root(directory):
                return None

        return None

    def _read_session(self, session_path: Path) -> Optional[BatchSession]:
        try:
            document = self.file_io.read_structured_safe(session_path)
        except ValidationError as e:
            if e.is_security_error:
                raise
            logger.warning("Unreadable batch session file", extra={"context": e.details})
            return None

        try:
            session = BatchSession.model_validate(document)
        except SchemaError as e:
            logger.warning(
                "Batch session file failed schema validation",
                extra={"context": {"path": str(session_path), "errors": e.error_count()}},
            )
            return None

        if Path(session.batch_root_directory) != session_path.parent:
            logger.warning(
                "Batch session root does not match its location",
                extra={"context": {
                    "path": str(session_path),
                    "batch_root_directory": session.batch_root_directory,
                }},
            )
            return None

        return session

    @staticmethod
    def _session_path(directory: Path) -> Path:
        return directory / BATCH_SESSION_FILENAME
