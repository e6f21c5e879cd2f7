"""varistore storage data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class StoredArtifactMetadata:
    """Metadata recorded next to a stored artifact.

    Attributes:
        path: Logical storage path of the artifact.
        filename: Original filename of the artifact.
        sha256: SHA256 hash of the content (hex string).
        size_bytes: Size of the content in bytes.
        content_type: MIME type of the content.
        created_at: Timestamp when the artifact was written.
    """

    path: str
    filename: str
    sha256: str
    size_bytes: int
    content_type: str | None
    created_at: datetime

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert metadata to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "filename": self.filename,
            "sha256": self.sha256,
            "size_bytes": self.size_bytes,
            "content_type": self.content_type,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, str | int | None]) -> StoredArtifactMetadata:
        """Create metadata from dictionary."""
        created_at_raw = data.get("created_at")
        if isinstance(created_at_raw, str):
            created_at = datetime.fromisoformat(created_at_raw)
        else:
            created_at = datetime.now(UTC)

        size_bytes_raw = data.get("size_bytes")
        size_bytes = int(size_bytes_raw) if size_bytes_raw is not None else 0

        content_type_raw = data.get("content_type")
        content_type = str(content_type_raw) if content_type_raw else None

        return cls(
            path=str(data["path"]),
            filename=str(data["filename"]),
            sha256=str(data["sha256"]),
            size_bytes=size_bytes,
            content_type=content_type,
            created_at=created_at,
        )
