"""Tests for filename handling and version-qualified locations."""

from __future__ import annotations

import pytest

from varistore.config import VariantSettings
from varistore.definitions import UploaderType
from varistore.errors import UnknownVariantError
from varistore.models import Artifact
from varistore.paths import full_filename, sanitize_filename, split_path
from varistore.storage.memory_store import InMemoryArtifactStore
from varistore.uploader import Uploader


@pytest.fixture
def stored(
    memory_store: InMemoryArtifactStore, settings: VariantSettings, photo: Artifact
) -> Uploader:
    """Uploader with thumb/small and preview, stored."""
    avatar = UploaderType("avatar")
    avatar.version("thumb", lambda v: v.version("small"))
    avatar.version("preview")
    uploader = Uploader(avatar, storage=memory_store, settings=settings)
    uploader.store(photo)
    return uploader


class TestSanitizeFilename:
    """Tests for sanitize_filename."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("photo.png", "photo.png"),
            ("My Photo.png", "My_Photo.png"),
            ("../../etc/passwd", "passwd"),
            ("C:\\Users\\me\\photo.png", "photo.png"),
            (".hidden", "hidden"),
            ("résumé.pdf", "r_sum_.pdf"),
            ("", "file"),
            ("...", "file"),
        ],
    )
    def test_sanitize(self, raw: str, expected: str) -> None:
        assert sanitize_filename(raw) == expected


class TestFullFilename:
    """Tests for full_filename."""

    def test_root_has_no_prefix(self) -> None:
        assert full_filename(None, "photo.png") == "photo.png"

    def test_variant_prefix(self) -> None:
        assert full_filename("thumb_small", "photo.png") == "thumb_small_photo.png"

    def test_custom_separator(self) -> None:
        assert full_filename("thumb", "photo.png", "-") == "thumb-photo.png"


class TestSplitPath:
    """Tests for split_path."""

    def test_segments_and_query(self) -> None:
        assert split_path(("thumb", "small", {"download": "1"})) == (
            ["thumb", "small"],
            {"download": "1"},
        )

    def test_dotted_segments(self) -> None:
        assert split_path(("thumb.small",)) == (["thumb", "small"], None)

    def test_empty(self) -> None:
        assert split_path(()) == ([], None)

    def test_mapping_must_be_last(self) -> None:
        with pytest.raises(TypeError):
            split_path(({"a": "b"}, "thumb"))

    def test_unsupported_argument(self) -> None:
        with pytest.raises(TypeError):
            split_path((42,))


class TestUrl:
    """Tests for url() / PathResolver."""

    def test_own_location(self, stored: Uploader) -> None:
        assert stored.url() == "/uploads/photo.png"

    def test_variant_location(self, stored: Uploader) -> None:
        assert stored.url("thumb") == "/uploads/thumb_photo.png"

    def test_nested_variant_location(self, stored: Uploader) -> None:
        """url("thumb", "small") routes to the nested variant's own location."""
        assert stored.url("thumb", "small") == "/uploads/thumb_small_photo.png"
        assert stored.url("thumb.small") == stored.thumb.small.url()
        assert stored.thumb.url("small") == stored.thumb.small.url()

    def test_query_parameters(self, stored: Uploader) -> None:
        assert (
            stored.url("thumb", {"download": "1", "a": "b"})
            == "/uploads/thumb_photo.png?a=b&download=1"
        )

    def test_base_url_prefix(
        self, memory_store: InMemoryArtifactStore, photo: Artifact
    ) -> None:
        avatar = UploaderType("avatar")
        avatar.version("thumb")
        settings = VariantSettings(base_url="https://cdn.example.com/")
        uploader = Uploader(avatar, storage=memory_store, settings=settings)
        uploader.store(photo)

        assert uploader.url("thumb") == "https://cdn.example.com/uploads/thumb_photo.png"

    def test_cached_location(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings, photo: Artifact
    ) -> None:
        avatar = UploaderType("avatar")
        avatar.version("thumb")
        uploader = Uploader(avatar, storage=memory_store, settings=settings)
        uploader.cache(photo)

        assert uploader.url("thumb") == f"/uploads/tmp/{uploader.cache_id}/thumb_photo.png"

    def test_unknown_variant(self, stored: Uploader) -> None:
        with pytest.raises(UnknownVariantError, match="Version banner doesn't exist"):
            stored.url("banner")

    def test_unknown_nested_variant(self, stored: Uploader) -> None:
        with pytest.raises(UnknownVariantError) as exc_info:
            stored.url("thumb", "tiny")

        assert exc_info.value.variant == "tiny"
        assert exc_info.value.uploader == "thumb"

    def test_unknown_variant_names_root_uploader(self, stored: Uploader) -> None:
        with pytest.raises(UnknownVariantError) as exc_info:
            stored.url("banner")

        assert exc_info.value.variant == "banner"
        assert exc_info.value.uploader == "avatar"
        assert "uploader=avatar" in str(exc_info.value)

    def test_variant_without_file(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings, photo: Artifact
    ) -> None:
        avatar = UploaderType("avatar")
        avatar.version("preview", condition=lambda host, name, file: False)
        uploader = Uploader(avatar, storage=memory_store, settings=settings)
        uploader.store(photo)

        assert uploader.url("preview") is None

    def test_resolve_variant(self, stored: Uploader) -> None:
        assert stored.path_resolver.resolve_variant("thumb", "small") is stored.thumb.small
        assert stored.path_resolver.resolve_variant() is stored
