"""varistore storage error types.

Typed exceptions raised by ArtifactStore backends. The lifecycle never
catches them: a storage failure aborts the tree operation unchanged.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base exception for artifact storage operations.

    Attributes:
        message: Human-readable error message.
        path: Storage path associated with the operation (if applicable).
        backend: Backend name associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        backend: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.backend = backend

    def __str__(self) -> str:
        parts = [self.message]
        if self.backend:
            parts.append(f"backend={self.backend}")
        if self.path:
            parts.append(f"path={self.path}")
        return " ".join(parts)


class ArtifactNotFoundError(StorageError):
    """Raised when no artifact exists at the requested path."""

    def __init__(
        self,
        message: str = "Artifact not found",
        *,
        path: str | None = None,
        backend: str | None = None,
    ) -> None:
        super().__init__(message, path=path, backend=backend)


class PathTraversalError(StorageError):
    """Raised when a storage path contains traversal sequences.

    Paths like "../x", "/abs" or "C:x" would escape the storage sandbox.
    """

    def __init__(
        self,
        message: str = "Invalid path: path traversal detected",
        *,
        path: str | None = None,
        backend: str | None = None,
    ) -> None:
        super().__init__(message, path=path, backend=backend)


class StorageBackendError(StorageError):
    """Raised when the backend itself fails (disk full, permission denied, I/O error)."""

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        path: str | None = None,
        backend: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, path=path, backend=backend)
        self.cause = cause
