"""Artifact stores.

An artifact store archives files a step produced. Declared paths are either
plain paths or gitignore-style glob patterns relative to the workspace.
Archival is best-effort: a missing artifact is only an error when the
declaration does not allow an empty match.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import pathspec

from secpipe.core.errors import ArtifactMissingError
from secpipe.core.logging import get_logger

LOGGER = get_logger(__name__)

_GLOB_CHARS = set("*?[")

# Never descend into these when matching patterns.
DEFAULT_EXCLUDES = [
    ".git/",
    "**/node_modules/",
    "**/__pycache__/",
    "**/.venv/",
    ".secpipe/",
]


def is_pattern(path: str) -> bool:
    return any(ch in _GLOB_CHARS for ch in path)


def find_matches(workspace: Path, path: str) -> List[Path]:
    """Resolve a declared artifact path to the existing files it names.

    Args:
        workspace: Root for relative paths and pattern matching.
        path: Plain path or gitignore-style pattern.

    Returns:
        Sorted list of existing files (absolute paths).
    """
    if not is_pattern(path):
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = workspace / candidate
        return [candidate] if candidate.is_file() else []

    spec = pathspec.PathSpec.from_lines("gitignore", [path])
    excludes = pathspec.PathSpec.from_lines("gitignore", DEFAULT_EXCLUDES)

    matches: List[Path] = []
    for file_path in workspace.rglob("*"):
        if not file_path.is_file():
            continue
        rel = file_path.relative_to(workspace).as_posix()
        if excludes.match_file(rel):
            continue
        if spec.match_file(rel):
            matches.append(file_path)
    return sorted(matches)


class ArtifactStore(ABC):
    """Archives declared artifact files."""

    @abstractmethod
    def archive(self, path: str, allow_empty_if_missing: bool = True) -> List[Path]:
        """Archive the files named by ``path``.

        Args:
            path: Plain path or pattern, relative to the workspace.
            allow_empty_if_missing: If False, a missing artifact raises.

        Returns:
            The source files that were archived (empty if none matched).

        Raises:
            ArtifactMissingError: If nothing matched and empty is not allowed.
        """


class LocalArtifactStore(ArtifactStore):
    """Copies artifacts into an archive directory, preserving relative paths."""

    def __init__(self, workspace: Path, archive_dir: Path) -> None:
        self._workspace = Path(workspace)
        self._archive_dir = Path(archive_dir)
        self._archived: List[Path] = []

    @property
    def archive_dir(self) -> Path:
        return self._archive_dir

    @property
    def archived(self) -> List[Path]:
        """Destination paths of everything archived so far."""
        return list(self._archived)

    def archive(self, path: str, allow_empty_if_missing: bool = True) -> List[Path]:
        matches = find_matches(self._workspace, path)
        if not matches:
            if allow_empty_if_missing:
                LOGGER.warning(f"No artifacts found matching '{path}'")
                return []
            raise ArtifactMissingError(path)

        for source in matches:
            destination = self._archive_dir / self._relative(source)
            destination.parent.mkdir(parents=True, exist_ok=True)
            if source.resolve() != destination.resolve():
                shutil.copy2(source, destination)
            self._archived.append(destination)
            LOGGER.debug(f"Archived {source} -> {destination}")
        return matches

    def _relative(self, source: Path) -> Path:
        try:
            return source.resolve().relative_to(self._workspace.resolve())
        except ValueError:
            return Path(source.name)


class NullArtifactStore(ArtifactStore):
    """Records archive calls without copying anything."""

    def __init__(self, workspace: Optional[Path] = None) -> None:
        self._workspace = Path(workspace) if workspace else Path.cwd()
        self.calls: List[str] = []

    def archive(self, path: str, allow_empty_if_missing: bool = True) -> List[Path]:
        self.calls.append(path)
        matches = find_matches(self._workspace, path)
        if not matches and not allow_empty_if_missing:
            raise ArtifactMissingError(path)
        return matches
