"""Artifact archival and aggregate report generation."""

from secpipe.artifacts.store import (
    ArtifactStore,
    LocalArtifactStore,
    NullArtifactStore,
    find_matches,
)

__all__ = [
    "ArtifactStore",
    "LocalArtifactStore",
    "NullArtifactStore",
    "find_matches",
]
