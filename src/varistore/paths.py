"""Path naming and version-qualified location lookup.

PathResolver routes url("thumb", "small") to the nested variant instance and
asks it for its own base location. Storage paths are built from the
qualified variant name, the sanitized original filename and, for cached
artifacts, the cache id.
"""

from __future__ import annotations

import itertools
import logging
import os
import re
import secrets
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from varistore.errors import UnknownVariantError

if TYPE_CHECKING:
    from varistore.uploader import Uploader

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_\-.]")
_cache_counter = itertools.count()


def generate_cache_id() -> str:
    """Return a new cache id: unix time, pid, counter and a random suffix."""
    counter = next(_cache_counter) % 10000
    return f"{int(time.time())}-{os.getpid()}-{counter:04d}-{secrets.randbelow(10000):04d}"


def sanitize_filename(filename: str) -> str:
    """Reduce a filename to a safe basename.

    Directory components are dropped and unsafe characters replaced by "_".
    """
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    sanitized = _UNSAFE_FILENAME_CHARS.sub("_", basename).lstrip(".")
    return sanitized or "file"


def full_filename(version_name: str | None, filename: str, separator: str = "_") -> str:
    """Prefix a sanitized filename with the qualified variant name, if any."""
    return separator.join(part for part in (version_name, sanitize_filename(filename)) if part)


def split_path(args: tuple[Any, ...]) -> tuple[list[str], Mapping[str, Any] | None]:
    """Split url() arguments into variant name segments and an optional query bag.

    Dotted strings ("thumb.small") are expanded into segments. Resolution
    stops at the first argument that is not a string; a mapping there is the
    query bag.
    """
    segments: list[str] = []
    for index, arg in enumerate(args):
        if isinstance(arg, str):
            segments.extend(part for part in arg.split(".") if part)
            continue
        if isinstance(arg, Mapping) and index == len(args) - 1:
            return segments, arg
        raise TypeError(f"Unsupported location argument: {type(arg).__name__}")
    return segments, None


class PathResolver:
    """Resolves nested variant paths to locations for one uploader."""

    def __init__(self, uploader: Uploader) -> None:
        self._uploader = uploader

    def resolve_variant(self, *path: str) -> Uploader:
        """Return the variant instance addressed by path (self for an empty path).

        Raises:
            UnknownVariantError: If a segment does not name a variant.
        """
        segments, _query = split_path(path)
        current = self._uploader
        for segment in segments:
            variants = current.variants()
            if segment not in variants:
                raise UnknownVariantError(
                    message=f"Version {segment} doesn't exist",
                    variant=segment,
                    uploader=current.display_name,
                )
            current = variants[segment]
        return current

    def resolve(self, *args: Any) -> str | None:
        """Return the location of the variant addressed by args.

        String arguments are variant names (dotted paths allowed); a trailing
        mapping is passed to the base location as query parameters.
        """
        segments, query = split_path(args)
        target = self.resolve_variant(*segments)
        return target.path_resolver.base_location(query)

    def base_location(self, query: Mapping[str, Any] | None = None) -> str | None:
        """Return this uploader's own location, or None when it holds no file."""
        path = self._uploader.path
        if path is None:
            return None

        base_url = self._uploader.settings.base_url
        location = f"{base_url.rstrip('/')}/{path}"
        if query:
            location = f"{location}?{urlencode(sorted(query.items()), doseq=True)}"
        return location
