"""Tests for batch session discovery and updates."""

import json

import pytest

from stackshift.constants import BATCH_SESSION_FILENAME
from stackshift.errors import ErrorType, ValidationError
from stackshift.tools.batch_session import BatchSessionRegistry, has_repository_marker
from stackshift.utils.security import PathValidator


def test_create_session(registry, batch_root):
    """Test creating a session writes it to the batch root."""
    session = registry.create(batch_root, 3, 2, {"route": "brownfield", "transmission": "cruise-control"})

    assert session.session_id.startswith("batch-")
    assert session.batch_root_directory == str(batch_root)
    assert session.processed_repos == []

    on_disk = json.loads((batch_root / BATCH_SESSION_FILENAME).read_text())
    assert on_disk["sessionId"] == session.session_id
    assert on_disk["batchRootDirectory"] == str(batch_root)
    assert on_disk["totalRepos"] == 3
    assert on_disk["batchSize"] == 2
    assert on_disk["answers"] == {"route": "brownfield", "transmission": "cruise-control"}
    assert on_disk["processedRepos"] == []


def test_find_from_nested_directory(registry, batch_root):
    """Test that the session is found from three levels down."""
    created = registry.create(batch_root, 3, 1, {"route": "greenfield"})

    found = registry.find(batch_root / "repo-a" / "sub" / "deep")

    assert found is not None
    assert found.session_id == created.session_id
    assert found.answers.route == "greenfield"
    assert registry.has_session(batch_root / "repo-b")


def test_find_without_session(registry, batch_root):
    """Test that a directory without a session yields None."""
    assert registry.find(batch_root / "repo-a") is None
    assert not registry.has_session(batch_root)


def test_repository_root_bounds_walk(registry, batch_root):
    """Test that the walk stops at a repository root."""
    registry.create(batch_root, 3, 1)
    (batch_root / "repo-a" / ".git").mkdir()

    assert registry.find(batch_root / "repo-a" / "sub" / "deep") is None
    assert registry.find(batch_root / "repo-b" / "sub") is not None


def test_session_in_repository_root_is_found(registry, batch_root):
    """Test that a session file in the repository root itself is found."""
    repo = batch_root / "repo-a"
    (repo / ".git").mkdir()
    registry.create(repo, 1, 1)

    assert registry.find(repo / "sub" / "deep") is not None


def test_custom_repository_root_check(batch_root):
    """Test that the repository root check can be replaced."""
    registry = BatchSessionRegistry(
        PathValidator([batch_root]),
        is_repository_root=lambda directory: directory.name == "sub",
    )
    registry.create(batch_root, 3, 1)

    assert registry.find(batch_root / "repo-a" / "sub" / "deep") is None
    assert registry.find(batch_root / "repo-a") is not None


def test_has_repository_marker(batch_root):
    """Test the default repository root check."""
    assert not has_repository_marker(batch_root / "repo-a")

    (batch_root / "repo-a" / ".git").write_text("gitdir: elsewhere\n")

    assert has_repository_marker(batch_root / "repo-a")


def test_mark_processed(registry, batch_root):
    """Test recording processed repositories."""
    registry.create(batch_root, 2, 1)

    session = registry.mark_processed("repo-a", batch_root / "repo-a")
    assert session.processed_repos == ["repo-a"]

    session = registry.mark_processed("repo-a", batch_root / "repo-a" / "sub")
    assert session.processed_repos == ["repo-a"]

    registry.mark_processed("repo-b", batch_root / "repo-b")
    on_disk = json.loads((batch_root / BATCH_SESSION_FILENAME).read_text())
    assert on_disk["processedRepos"] == ["repo-a", "repo-b"]


def test_mark_processed_beyond_total(registry, batch_root):
    """Test that processed repositories cannot exceed the total."""
    registry.create(batch_root, 1, 1)
    registry.mark_processed("repo-a", batch_root)

    with pytest.raises(ValidationError) as exc_info:
        registry.mark_processed("repo-b", batch_root)

    assert exc_info.value.error_type == ErrorType.INVALID_INPUT
    assert registry.find(batch_root).processed_repos == ["repo-a"]


def test_mark_processed_without_session(registry, batch_root):
    """Test that marking without a session is a no-op."""
    assert registry.mark_processed("repo-a", batch_root / "repo-a") is None
    assert not (batch_root / BATCH_SESSION_FILENAME).exists()


@pytest.mark.parametrize("repo_id", ["", "   ", None])
def test_mark_processed_requires_identifier(registry, batch_root, repo_id):
    """Test that an empty repository identifier is rejected."""
    registry.create(batch_root, 3, 1)

    with pytest.raises(ValidationError) as exc_info:
        registry.mark_processed(repo_id, batch_root)

    assert exc_info.value.error_type == ErrorType.INVALID_INPUT


def test_clear_is_local(registry, batch_root):
    """Test that clear only removes a session in the given directory."""
    registry.create(batch_root, 3, 1)

    assert registry.clear(batch_root / "repo-a") is False
    assert (batch_root / BATCH_SESSION_FILENAME).exists()

    assert registry.clear(batch_root) is True
    assert not (batch_root / BATCH_SESSION_FILENAME).exists()
    assert registry.find(batch_root / "repo-a") is None


def test_mismatched_root_ignored(registry, batch_root):
    """Test that a session whose recorded root differs from its location is ignored."""
    registry.create(batch_root, 3, 1)
    session_file = batch_root / BATCH_SESSION_FILENAME
    moved = batch_root / "repo-a" / BATCH_SESSION_FILENAME
    moved.write_text(session_file.read_text())
    session_file.unlink()

    assert registry.find(batch_root / "repo-a" / "sub") is None


def test_invalid_session_file_ignored(registry, batch_root):
    """Test that corrupt or schema-invalid session files are ignored."""
    session_file = batch_root / BATCH_SESSION_FILENAME

    session_file.write_text("{not json")
    assert registry.find(batch_root / "repo-a") is None

    session_file.write_text(json.dumps({
        "sessionId": "batch-1",
        "startedAt": "2025-01-01T00:00:00Z",
        "batchRootDirectory": str(batch_root),
        "totalRepos": 1,
        "batchSize": 1,
        "answers": {},
        "processedRepos": ["repo-a", "repo-b"],
    }))
    assert registry.find(batch_root / "repo-a") is None


def test_create_rejects_unknown_answer(registry, batch_root):
    """Test that answers outside the allow-list are rejected."""
    with pytest.raises(ValidationError) as exc_info:
        registry.create(batch_root, 3, 1, {"favorite_color": "blue"})

    assert exc_info.value.error_type == ErrorType.INVALID_INPUT
    assert not (batch_root / BATCH_SESSION_FILENAME).exists()


@pytest.mark.parametrize("total_repos,batch_size", [(-1, 1), (3, 0)])
def test_create_rejects_bad_counts(registry, batch_root, total_repos, batch_size):
    """Test that negative totals and empty batches are rejected."""
    with pytest.raises(ValidationError) as exc_info:
        registry.create(batch_root, total_repos, batch_size)

    assert exc_info.value.error_type == ErrorType.INVALID_INPUT


def test_create_missing_root(registry, batch_root):
    """Test that the batch root must exist."""
    with pytest.raises(ValidationError) as exc_info:
        registry.create(batch_root / "missing", 3, 1)

    assert exc_info.value.error_type == ErrorType.NOT_FOUND


def test_create_outside_workspace(registry, temp_dir):
    """Test that a session cannot be created outside the workspace."""
    with pytest.raises(ValidationError) as exc_info:
        registry.create(temp_dir, 3, 1)

    assert exc_info.value.error_type == ErrorType.PATH_TRAVERSAL


def test_find_outside_workspace(registry, temp_dir):
    """Test that discovery rejects a start directory outside the workspace."""
    with pytest.raises(ValidationError) as exc_info:
        registry.find(temp_dir)

    assert exc_info.value.error_type == ErrorType.PATH_TRAVERSAL


def test_progress(registry, batch_root):
    """Test the progress line."""
    assert registry.progress(batch_root) == "No active batch session"

    registry.create(batch_root, 3, 1)
    registry.mark_processed("repo-a", batch_root / "repo-a")

    assert registry.progress(batch_root / "repo-c") == "Batch Progress: 1/3 repos (33%)"


def test_progress_empty_batch(registry, batch_root):
    """Test progress for a batch with no repositories."""
    registry.create(batch_root, 0, 1)

    assert registry.progress(batch_root) == "Batch Progress: 0/0 repos (100%)"
