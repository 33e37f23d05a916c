"""Artifact storage for generated HTML.

Example:
    >>> from vibe.artifacts import create_artifact_store, variant_path
    >>> store = create_artifact_store()
    >>> url = await store.put(variant_path(None, session_id, 1), html.encode())
"""

from .lib import (
    ArtifactStore,
    HttpArtifactStore,
    LocalArtifactStore,
    create_artifact_store,
    iteration_path,
    revert_path,
    variant_path,
)

__all__ = [
    "ArtifactStore",
    "LocalArtifactStore",
    "HttpArtifactStore",
    "create_artifact_store",
    "variant_path",
    "iteration_path",
    "revert_path",
]
