"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path

import pytest

from stackshift.tools.batch_session import BatchSessionRegistry
from stackshift.tools.file_io import SafeFileIO
from stackshift.tools.state_store import StateStore
from stackshift.utils.security import PathValidator


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def test_project(temp_dir):
    """Create a test project structure."""
    project = temp_dir / "project"
    (project / "src").mkdir(parents=True)
    (project / "src" / "main.py").write_text("def hello():\n    return 'world'\n")
    (project / "README.md").write_text("# Test Project\n")

    yield project


@pytest.fixture
def validator(test_project):
    """Validator authorizing only the test project."""
    return PathValidator([test_project])


@pytest.fixture
def file_io(validator):
    """SafeFileIO bound to the test project validator."""
    return SafeFileIO(validator)


@pytest.fixture
def store(test_project, validator):
    """State store for the test project."""
    return StateStore(test_project, validator)


@pytest.fixture
def batch_root(temp_dir):
    """A batch root holding three repositories."""
    root = temp_dir / "batch"
    for name in ("repo-a", "repo-b", "repo-c"):
        (root / name / "sub" / "deep").mkdir(parents=True)
    yield root


@pytest.fixture
def registry(batch_root):
    """Batch session registry authorized for the batch root."""
    return BatchSessionRegistry(PathValidator([batch_root]))
