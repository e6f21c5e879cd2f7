"""varistore filesystem artifact storage backend.

Provides local filesystem storage with:
- Path traversal protection
- SHA256 content hashing in a metadata sidecar
- Atomic writes via temp file + rename

Environment Variables:
    VARISTORE_STORE_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / varistore_artifacts)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from datetime import UTC, datetime
from pathlib import Path

from varistore.models import Artifact
from varistore.storage.artifact_store import ArtifactStore, validate_path
from varistore.storage.errors import (
    ArtifactNotFoundError,
    PathTraversalError,
    StorageBackendError,
)
from varistore.storage.models import StoredArtifactMetadata
from varistore.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

VARISTORE_STORE_BASE_DIR_ENV = "VARISTORE_STORE_BASE_DIR"

_METADATA_SUFFIX = ".meta.json"


class FilesystemArtifactStore(ArtifactStore):
    """Filesystem-based artifact storage.

    Artifacts are stored at their logical path below the base directory:
        {base_dir}/{path}             # content
        {base_dir}/{path}.meta.json   # metadata
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses
                VARISTORE_STORE_BASE_DIR env var or OS temp directory.
        """
        if base_dir is None:
            base_dir = os.environ.get(VARISTORE_STORE_BASE_DIR_ENV)

        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / "varistore_artifacts"
        else:
            base_dir = Path(base_dir)

        self._base_dir = base_dir.resolve()
        logger.debug("FilesystemArtifactStore initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def _content_file(self, path: str) -> Path:
        """Map a logical path to its content file, validating it."""
        validate_path(path, self.backend_name)
        target = self._base_dir / path
        try:
            target.resolve().relative_to(self._base_dir)
        except ValueError as e:
            raise PathTraversalError(
                message="Path resolves outside storage base directory",
                path=path,
                backend=self.backend_name,
            ) from e
        return target

    def _write_atomic(self, target: Path, data: bytes, path: str) -> None:
        tmp_file = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_file.write_bytes(data)
            tmp_file.replace(target)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write {target.name}: {e}",
                path=path,
                backend=self.backend_name,
                cause=e,
            ) from e

    def _read_metadata(self, content_file: Path) -> StoredArtifactMetadata | None:
        meta_file = content_file.with_name(content_file.name + _METADATA_SUFFIX)
        if not meta_file.exists():
            return None
        try:
            data = json.loads(meta_file.read_text(encoding="utf-8"))
            return StoredArtifactMetadata.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError) as e:
            logger.warning("Failed to read metadata %s: %s", meta_file.name, e)
            return None

    @traced_storage_operation("store")
    def store(self, artifact: Artifact, path: str) -> str:
        """Write an artifact and its metadata sidecar."""
        content_file = self._content_file(path)

        try:
            content_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create directory: {e}",
                path=path,
                backend=self.backend_name,
                cause=e,
            ) from e

        metadata = StoredArtifactMetadata(
            path=path,
            filename=artifact.filename,
            sha256=artifact.sha256,
            size_bytes=artifact.size_bytes,
            content_type=artifact.content_type,
            created_at=datetime.now(UTC),
        )

        self._write_atomic(content_file, artifact.data, path)
        self._write_atomic(
            content_file.with_name(content_file.name + _METADATA_SUFFIX),
            json.dumps(metadata.to_dict(), indent=2).encode("utf-8"),
            path,
        )

        logger.debug("Stored artifact: path=%s sha256=%s", path, metadata.sha256)
        return path

    @traced_storage_operation("retrieve")
    def retrieve(self, path: str) -> Artifact:
        """Read an artifact."""
        content_file = self._content_file(path)
        if not content_file.is_file():
            raise ArtifactNotFoundError(path=path, backend=self.backend_name)

        try:
            data = content_file.read_bytes()
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read content: {e}",
                path=path,
                backend=self.backend_name,
                cause=e,
            ) from e

        metadata = self._read_metadata(content_file)
        if metadata is None:
            return Artifact(data=data, filename=content_file.name)
        return Artifact(data=data, filename=metadata.filename, content_type=metadata.content_type)

    @traced_storage_operation("head")
    def head(self, path: str) -> StoredArtifactMetadata:
        """Read the metadata sidecar of an artifact."""
        content_file = self._content_file(path)
        if not content_file.is_file():
            raise ArtifactNotFoundError(path=path, backend=self.backend_name)

        metadata = self._read_metadata(content_file)
        if metadata is None:
            raise ArtifactNotFoundError(
                message="Artifact metadata not found",
                path=path,
                backend=self.backend_name,
            )
        return metadata

    @traced_storage_operation("remove")
    def remove(self, path: str) -> None:
        """Delete an artifact and its metadata sidecar."""
        content_file = self._content_file(path)
        if not content_file.is_file():
            raise ArtifactNotFoundError(path=path, backend=self.backend_name)

        try:
            content_file.unlink()
            content_file.with_name(content_file.name + _METADATA_SUFFIX).unlink(missing_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete artifact: {e}",
                path=path,
                backend=self.backend_name,
                cause=e,
            ) from e

        logger.debug("Removed artifact: path=%s", path)

    @traced_storage_operation("exists")
    def exists(self, path: str) -> bool:
        """Return True if an artifact is stored at path."""
        return self._content_file(path).is_file()
