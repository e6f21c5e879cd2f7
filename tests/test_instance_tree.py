"""Tests for runtime uploader trees.

Covers:
- Lazy, memoized variant instances mirroring the definition tree
- Attribute access to variants, parent links, qualified version names
- Dynamic (instance-scoped) variants
- Cache id generation and cache name parsing
"""

from __future__ import annotations

import re
from types import SimpleNamespace

import pytest

from varistore.config import VariantSettings
from varistore.definitions import UploaderType
from varistore.errors import InvalidCacheNameError, VariantDeclarationError
from varistore.models import Artifact, UploaderState
from varistore.paths import generate_cache_id
from varistore.storage.memory_store import InMemoryArtifactStore
from varistore.uploader import Uploader, parse_cache_name


def _avatar() -> UploaderType:
    avatar = UploaderType("avatar")
    avatar.version("thumb", lambda v: v.version("small"))
    avatar.version("preview")
    return avatar


class TestVariantInstances:
    """Tests for variants() and the instance tree."""

    def test_variants_follow_declaration(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        assert list(uploader.variants()) == ["thumb", "preview"]
        assert list(uploader.thumb.variants()) == ["small"]
        assert dict(uploader.preview.variants()) == {}

    def test_variants_are_memoized(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        assert uploader.variants()["thumb"] is uploader.variants()["thumb"]
        assert uploader.thumb is uploader.variants()["thumb"]

    def test_variants_mapping_is_read_only(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        with pytest.raises(TypeError):
            uploader.variants()["banner"] = uploader  # type: ignore[index]

    def test_variants_share_context(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        model = SimpleNamespace(id=3)
        uploader = Uploader(
            _avatar(), storage=memory_store, model=model, mounted_as="avatar", settings=settings
        )

        small = uploader.thumb.small
        assert small.model is model
        assert small.mounted_as == "avatar"
        assert small.storage is memory_store
        assert small.settings is settings

    def test_parent_links(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        assert uploader.parent is None
        assert uploader.thumb.parent is uploader
        assert uploader.thumb.small.parent is uploader.thumb

    def test_instances_of_subclass(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        class AvatarUploader(Uploader):
            pass

        uploader = AvatarUploader(_avatar(), storage=memory_store, settings=settings)

        assert type(uploader.thumb.small) is AvatarUploader

    def test_unknown_attribute(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        with pytest.raises(AttributeError, match="banner"):
            _ = uploader.banner

    def test_new_instance_state(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        assert uploader.state is UploaderState.EMPTY
        assert uploader.blank is True
        assert uploader.cached is False
        assert uploader.cache_name is None
        assert uploader.url() is None


class TestNames:
    """Tests for version names and display names."""

    def test_version_names(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        assert uploader.version_name is None
        assert uploader.thumb.version_name == "thumb"
        assert uploader.thumb.small.version_name == "thumb_small"

    def test_custom_separator(self, memory_store: InMemoryArtifactStore) -> None:
        settings = VariantSettings(version_separator="-")
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        assert uploader.thumb.small.version_name == "thumb-small"
        assert uploader.thumb.small.full_filename("photo.png") == "thumb-small-photo.png"

    def test_display_name(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        assert uploader.display_name == "avatar"
        assert uploader.thumb.small.display_name == "thumb_small"
        assert repr(uploader.thumb) == "<Uploader thumb state=EMPTY>"

    def test_version_options(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        avatar = UploaderType("avatar")
        avatar.version("thumb", quality=80)
        uploader = Uploader(avatar, storage=memory_store, settings=settings)

        assert uploader.thumb.version_options.extra["quality"] == 80

    def test_settings_loaded_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, memory_store: InMemoryArtifactStore
    ) -> None:
        monkeypatch.setenv("VARISTORE_VERSION_SEPARATOR", "__")
        uploader = Uploader(_avatar(), storage=memory_store)

        assert uploader.thumb.small.version_name == "thumb__small"


class TestActiveVariants:
    """Tests for active_variants()."""

    def test_conditions_are_reevaluated(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        model = SimpleNamespace(id=None, wants_preview=False)
        avatar = UploaderType("avatar")
        avatar.version("thumb")
        avatar.version("preview", condition=lambda host, name, file: host.model.wants_preview)
        uploader = Uploader(avatar, storage=memory_store, model=model, settings=settings)

        assert list(uploader.active_variants()) == ["thumb"]

        model.wants_preview = True
        assert list(uploader.active_variants()) == ["thumb", "preview"]

    def test_condition_sees_current_file(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings, photo: Artifact
    ) -> None:
        avatar = UploaderType("avatar")
        avatar.version("thumb", condition=lambda host, name, file: file is not None)
        uploader = Uploader(avatar, storage=memory_store, settings=settings)

        assert list(uploader.active_variants()) == []

        uploader.cache(photo)
        assert list(uploader.active_variants()) == ["thumb"]


class DynamicUploader(Uploader):
    """Adds one width-based variant per size listed on the model."""

    def add_dynamic_variants(self, variants: dict[str, Uploader]) -> None:
        if self.parent is not None:
            return
        for size in self.model.sizes:
            name = f"w{size}"
            variants[name] = self.add_dynamic_variant(
                name,
                lambda v, s=size: v.process(
                    lambda artifact: artifact.with_data(artifact.data + f"|w{s}".encode())
                ),
            )


class TestDynamicVariants:
    """Tests for add_dynamic_variants / add_dynamic_variant."""

    def test_dynamic_variants_are_added(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        model = SimpleNamespace(id=None, sizes=[100, 200])
        uploader = DynamicUploader(_avatar(), storage=memory_store, model=model, settings=settings)

        assert list(uploader.variants()) == ["thumb", "preview", "w100", "w200"]
        assert uploader.w100.version_name == "w100"
        assert uploader.w100.parent is uploader

    def test_dynamic_variant_is_memoized(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        model = SimpleNamespace(id=None, sizes=[100])
        uploader = DynamicUploader(_avatar(), storage=memory_store, model=model, settings=settings)

        variant = uploader.variants()["w100"]

        assert uploader.add_dynamic_variant("w100") is variant

    def test_dynamic_variant_not_declared_on_type(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        avatar = _avatar()
        model = SimpleNamespace(id=None, sizes=[100])
        uploader = DynamicUploader(avatar, storage=memory_store, model=model, settings=settings)
        uploader.variants()

        assert "w100" not in avatar.children

    def test_dynamic_variants_take_part_in_lifecycle(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings, photo: Artifact
    ) -> None:
        model = SimpleNamespace(id=None, sizes=[100])
        uploader = DynamicUploader(_avatar(), storage=memory_store, model=model, settings=settings)

        uploader.store(photo)

        assert uploader.w100.file is not None
        assert uploader.w100.file.data == b"raw-image|w100"
        assert "uploads/w100_photo.png" in memory_store.paths

    def test_dynamic_variant_added_outside_hook(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)

        banner = uploader.add_dynamic_variant("banner", quality=90)

        assert uploader.banner is banner
        assert banner.version_options.extra["quality"] == 90
        assert list(uploader.variants()) == ["thumb", "preview", "banner"]

    def test_dynamic_variant_added_after_materialization(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)
        uploader.variants()

        banner = uploader.add_dynamic_variant("banner")

        assert uploader.variants()["banner"] is banner

    def test_dynamic_variant_outside_hook_takes_part_in_lifecycle(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings, photo: Artifact
    ) -> None:
        uploader = Uploader(_avatar(), storage=memory_store, settings=settings)
        uploader.add_dynamic_variant("banner")

        uploader.store(photo)

        assert "uploads/banner_photo.png" in memory_store.paths

        uploader.remove()

        assert memory_store.paths == []

    def test_removing_declared_variant_raises(
        self, memory_store: InMemoryArtifactStore, settings: VariantSettings
    ) -> None:
        class DroppingUploader(Uploader):
            def add_dynamic_variants(self, variants: dict[str, Uploader]) -> None:
                variants.pop("thumb", None)

        uploader = DroppingUploader(_avatar(), storage=memory_store, settings=settings)

        with pytest.raises(VariantDeclarationError, match="thumb"):
            uploader.variants()


class TestCacheIds:
    """Tests for cache id generation and parsing."""

    def test_generated_format(self) -> None:
        assert re.match(r"^\d+-\d+-\d{4}-\d{4}$", generate_cache_id())

    def test_generated_ids_are_unique(self) -> None:
        ids = {generate_cache_id() for _ in range(100)}

        assert len(ids) == 100

    def test_parse_cache_name(self) -> None:
        assert parse_cache_name("1700000000-42-0001-1234/photo.png") == (
            "1700000000-42-0001-1234",
            "photo.png",
        )

    def test_parse_generated_cache_name(self) -> None:
        cache_id = generate_cache_id()

        assert parse_cache_name(f"{cache_id}/photo.png") == (cache_id, "photo.png")

    def test_parse_rejects_nested_filename(self) -> None:
        with pytest.raises(InvalidCacheNameError, match="Invalid original filename"):
            parse_cache_name("1700000000-42-0001-1234/dir/photo.png")
