"""In-memory artifact store for tests and development (no disk writes)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from varistore.models import Artifact
from varistore.storage.artifact_store import ArtifactStore, validate_path
from varistore.storage.errors import ArtifactNotFoundError
from varistore.storage.models import StoredArtifactMetadata
from varistore.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)


class InMemoryArtifactStore(ArtifactStore):
    """Artifact store keeping every artifact in a dict keyed by path.

    Records the sequence of writes and removals so tests can assert ordering.
    """

    def __init__(self) -> None:
        self._artifacts: dict[str, tuple[Artifact, StoredArtifactMetadata]] = {}
        self._operations: list[tuple[str, str]] = []

    @property
    def backend_name(self) -> str:
        return "memory"

    @property
    def paths(self) -> list[str]:
        """Return all stored paths, sorted."""
        return sorted(self._artifacts)

    @property
    def operations(self) -> list[tuple[str, str]]:
        """Return (operation, path) pairs for every store and remove, in order."""
        return list(self._operations)

    def clear(self) -> None:
        """Drop all artifacts and recorded operations."""
        self._artifacts.clear()
        self._operations.clear()

    @traced_storage_operation("store")
    def store(self, artifact: Artifact, path: str) -> str:
        validate_path(path, self.backend_name)
        metadata = StoredArtifactMetadata(
            path=path,
            filename=artifact.filename,
            sha256=artifact.sha256,
            size_bytes=artifact.size_bytes,
            content_type=artifact.content_type,
            created_at=datetime.now(UTC),
        )
        self._artifacts[path] = (artifact, metadata)
        self._operations.append(("store", path))
        return path

    @traced_storage_operation("retrieve")
    def retrieve(self, path: str) -> Artifact:
        validate_path(path, self.backend_name)
        entry = self._artifacts.get(path)
        if entry is None:
            raise ArtifactNotFoundError(path=path, backend=self.backend_name)
        return entry[0]

    @traced_storage_operation("head")
    def head(self, path: str) -> StoredArtifactMetadata:
        validate_path(path, self.backend_name)
        entry = self._artifacts.get(path)
        if entry is None:
            raise ArtifactNotFoundError(path=path, backend=self.backend_name)
        return entry[1]

    @traced_storage_operation("remove")
    def remove(self, path: str) -> None:
        validate_path(path, self.backend_name)
        if path not in self._artifacts:
            raise ArtifactNotFoundError(path=path, backend=self.backend_name)
        del self._artifacts[path]
        self._operations.append(("remove", path))

    @traced_storage_operation("exists")
    def exists(self, path: str) -> bool:
        validate_path(path, self.backend_name)
        return path in self._artifacts
