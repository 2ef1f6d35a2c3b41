"""Tests for secpipe.artifacts.store."""

from __future__ import annotations

from pathlib import Path

import pytest

from secpipe.artifacts.store import (
    LocalArtifactStore,
    NullArtifactStore,
    find_matches,
    is_pattern,
)
from secpipe.core.errors import ArtifactMissingError


def _touch(path: Path, content: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestFindMatches:
    """Tests for find_matches."""

    def test_is_pattern(self) -> None:
        assert is_pattern("reports/*.html")
        assert not is_pattern("reports/trivy.html")

    def test_plain_path(self, workspace: Path) -> None:
        target = _touch(workspace / "reports" / "trivy.html")
        assert find_matches(workspace, "reports/trivy.html") == [target]

    def test_plain_path_missing(self, workspace: Path) -> None:
        assert find_matches(workspace, "reports/trivy.html") == []

    def test_directory_is_not_a_match(self, workspace: Path) -> None:
        (workspace / "reports").mkdir()
        assert find_matches(workspace, "reports") == []

    def test_glob_pattern(self, workspace: Path) -> None:
        a = _touch(workspace / "reports" / "a.html")
        b = _touch(workspace / "reports" / "nested" / "b.html")
        _touch(workspace / "reports" / "c.json")
        assert find_matches(workspace, "reports/**/*.html") == [a, b]

    def test_excluded_directories_are_skipped(self, workspace: Path) -> None:
        keep = _touch(workspace / "out" / "report.html")
        _touch(workspace / "node_modules" / "pkg" / "report.html")
        _touch(workspace / ".secpipe" / "archive" / "report.html")
        assert find_matches(workspace, "*.html") == [keep]


class TestLocalArtifactStore:
    """Tests for LocalArtifactStore."""

    def test_archive_copies_preserving_relative_path(self, workspace: Path, tmp_path: Path) -> None:
        _touch(workspace / "reports" / "zap.html", "zap")
        store = LocalArtifactStore(workspace, tmp_path / "archive")

        archived = store.archive("reports/zap.html")

        assert archived == [workspace / "reports" / "zap.html"]
        copied = tmp_path / "archive" / "reports" / "zap.html"
        assert copied.read_text() == "zap"
        assert store.archived == [copied]

    def test_missing_allowed_returns_empty(self, workspace: Path, tmp_path: Path) -> None:
        store = LocalArtifactStore(workspace, tmp_path / "archive")
        assert store.archive("missing.html", allow_empty_if_missing=True) == []

    def test_missing_not_allowed_raises(self, workspace: Path, tmp_path: Path) -> None:
        store = LocalArtifactStore(workspace, tmp_path / "archive")
        with pytest.raises(ArtifactMissingError) as exc_info:
            store.archive("missing.html", allow_empty_if_missing=False)
        assert exc_info.value.path == "missing.html"

    def test_file_outside_workspace_archived_by_name(self, workspace: Path, tmp_path: Path) -> None:
        outside = _touch(tmp_path / "elsewhere" / "report.html")
        store = LocalArtifactStore(workspace, tmp_path / "archive")
        store.archive(str(outside))
        assert (tmp_path / "archive" / "report.html").exists()


class TestNullArtifactStore:
    def test_records_calls(self, workspace: Path) -> None:
        store = NullArtifactStore(workspace)
        store.archive("a.html")
        store.archive("b.html")
        assert store.calls == ["a.html", "b.html"]
