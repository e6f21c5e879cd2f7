"""varistore data models.

Provides the artifact value type passed between processing steps and
storage backends, and the lifecycle state of an uploader.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from enum import StrEnum


class UploaderState(StrEnum):
    """Lifecycle state of one uploader or variant instance.

    EMPTY -> CACHED -> STORED; CACHED/STORED -> REMOVED.
    EMPTY -> RETRIEVED when loading an existing cached or stored artifact.
    RETRIEVED behaves like CACHED for subsequent store operations.
    """

    EMPTY = "EMPTY"
    CACHED = "CACHED"
    STORED = "STORED"
    RETRIEVED = "RETRIEVED"
    REMOVED = "REMOVED"


@dataclass(frozen=True)
class Artifact:
    """An artifact held in memory.

    Attributes:
        data: Artifact content as bytes.
        filename: Original filename, used to derive storage paths.
        content_type: MIME type of the content (e.g., "image/png").
    """

    data: bytes
    filename: str
    content_type: str | None = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def sha256(self) -> str:
        """SHA256 hash of the content (hex string)."""
        return hashlib.sha256(self.data).hexdigest()

    def renamed(self, filename: str) -> Artifact:
        """Return the same content under another filename."""
        return replace(self, filename=filename)

    def with_data(self, data: bytes, *, content_type: str | None = None) -> Artifact:
        """Return a copy holding new content, keeping the filename."""
        return replace(
            self,
            data=data,
            content_type=content_type if content_type is not None else self.content_type,
        )
