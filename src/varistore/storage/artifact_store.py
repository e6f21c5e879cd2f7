"""varistore artifact storage interface.

Provides the ArtifactStore base class that all storage backends implement,
and the path validation shared by them.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from varistore.models import Artifact
from varistore.storage.errors import PathTraversalError
from varistore.storage.models import StoredArtifactMetadata

_SAFE_PATH_PATTERN = re.compile(r"^[a-zA-Z0-9_\-./]+$")


def is_path_traversal(path: str) -> bool:
    """Check if a storage path contains traversal sequences or unsafe characters.

    Detects:
    - Empty paths and null bytes
    - Backslashes (Windows path separators)
    - Absolute paths (leading / or ~) and drive letters (C:)
    - ".." segments
    """
    if not path or "\x00" in path or "\\" in path:
        return True

    if path.startswith("/") or path.startswith("~"):
        return True

    if len(path) >= 2 and path[1] == ":":
        return True

    if any(segment == ".." for segment in path.split("/")):
        return True

    return not bool(_SAFE_PATH_PATTERN.match(path))


def validate_path(path: str, backend: str) -> None:
    """Raise PathTraversalError if path is unsafe."""
    if is_path_traversal(path):
        raise PathTraversalError(
            message="Invalid path: path traversal or unsafe characters detected",
            path=path,
            backend=backend,
        )


class ArtifactStore(ABC):
    """Abstract base class for artifact storage backends.

    Paths are logical, slash-separated and relative. Implementations must
    reject traversal sequences and record SHA256 metadata for each write.

    Implementations:
    - FilesystemArtifactStore: Local filesystem
    - InMemoryArtifactStore: Process memory (tests, development)
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability."""
        ...

    @abstractmethod
    def store(self, artifact: Artifact, path: str) -> str:
        """Write an artifact, replacing any artifact at the same path.

        Args:
            artifact: Artifact to write.
            path: Logical storage path.

        Returns:
            The path the artifact was written to.

        Raises:
            PathTraversalError: If path contains traversal sequences.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def retrieve(self, path: str) -> Artifact:
        """Read the artifact stored at path.

        Raises:
            ArtifactNotFoundError: If nothing is stored at path.
            PathTraversalError: If path contains traversal sequences.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    @abstractmethod
    def remove(self, path: str) -> None:
        """Delete the artifact stored at path.

        Raises:
            ArtifactNotFoundError: If nothing is stored at path.
            PathTraversalError: If path contains traversal sequences.
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    @abstractmethod
    def head(self, path: str) -> StoredArtifactMetadata:
        """Return metadata of the artifact at path without reading its content.

        Raises:
            ArtifactNotFoundError: If nothing is stored at path.
            PathTraversalError: If path contains traversal sequences.
        """
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if an artifact is stored at path.

        Raises:
            PathTraversalError: If path contains traversal sequences.
        """
        ...
