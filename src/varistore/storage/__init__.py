"""varistore artifact storage.

Provides the ArtifactStore interface consumed by uploaders, with SHA256
tracking, path traversal protection and tracing hooks.

Backends:
- FilesystemArtifactStore: Local filesystem
- InMemoryArtifactStore: Process memory (tests, development)

Environment Variables:
    VARISTORE_STORE_BASE_DIR: Base directory for the filesystem backend
        (default: OS temp dir / varistore_artifacts)
"""

from varistore.storage.artifact_store import ArtifactStore, is_path_traversal, validate_path
from varistore.storage.errors import (
    ArtifactNotFoundError,
    PathTraversalError,
    StorageBackendError,
    StorageError,
)
from varistore.storage.filesystem_store import FilesystemArtifactStore
from varistore.storage.memory_store import InMemoryArtifactStore
from varistore.storage.models import StoredArtifactMetadata

__all__ = [
    "ArtifactStore",
    "is_path_traversal",
    "validate_path",
    "FilesystemArtifactStore",
    "InMemoryArtifactStore",
    "StoredArtifactMetadata",
    "StorageError",
    "ArtifactNotFoundError",
    "PathTraversalError",
    "StorageBackendError",
]
