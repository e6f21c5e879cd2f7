"""Uploader instances and their variant trees.

An Uploader binds a VariantDefinition to one artifact. The root uploader of
an UploaderType materializes one child Uploader per declared variant, on
first access, and each child does the same for its nested variants.

Base operations (cache, store, remove, retrieve_from_cache,
retrieve_from_store) act on the uploader's own artifact and then call the
matching after_* hook, which propagates the event to the variants through
the uploader's LifecycleDriver. Hosts that own the base operations can call
the after_* hooks directly.

Example:
    uploader = Uploader(avatar, storage=store, model=user, mounted_as="avatar")
    uploader.cache(Artifact(data=png_bytes, filename="me.png"))
    uploader.store()
    uploader.url("thumb", "small")
"""

from __future__ import annotations

import logging
import re
import weakref
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from varistore.config import VariantSettings, load_settings
from varistore.definitions import VariantBody, VariantDefinition, VariantOptions
from varistore.errors import InvalidCacheNameError, VariantDeclarationError
from varistore.lifecycle import LifecycleDriver
from varistore.models import Artifact, UploaderState
from varistore.observability.tracing import lifecycle_span
from varistore.paths import PathResolver, full_filename, generate_cache_id, sanitize_filename
from varistore.storage.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)

_CACHE_ID_PATTERN = re.compile(r"^\d+-\d+-\d{4}-\d{4}$")


def parse_cache_name(cache_name: str) -> tuple[str, str]:
    """Split "cache_id/original_filename" into its parts.

    Raises:
        InvalidCacheNameError: If the cache id or filename is malformed.
    """
    cache_id, _, original_filename = cache_name.partition("/")
    if not _CACHE_ID_PATTERN.match(cache_id):
        raise InvalidCacheNameError(message="Invalid cache id", cache_name=cache_name)
    if not original_filename or original_filename != sanitize_filename(original_filename):
        raise InvalidCacheNameError(message="Invalid original filename", cache_name=cache_name)
    return cache_id, original_filename


class Uploader:
    """One node of a runtime variant tree.

    Attributes:
        definition: The VariantDefinition this uploader embodies.
        storage: Backend receiving cached and stored artifacts.
        model: Opaque host record the artifact belongs to.
        mounted_as: Host attribute name the uploader is mounted on.
        settings: Runtime settings, shared with every variant.
        state: Current lifecycle state.
        path: Storage path of the current artifact, if any.
        original_filename: Sanitized filename of the uploaded artifact.
        cache_id: Caching session id while cached.
        parent_cache_id: Session id assigned by the parent before caching.
        lifecycle: Driver propagating events to variants.
        path_resolver: Resolver for version-qualified locations.
    """

    def __init__(
        self,
        definition: VariantDefinition,
        *,
        storage: ArtifactStore,
        model: Any = None,
        mounted_as: str | None = None,
        parent: Uploader | None = None,
        settings: VariantSettings | None = None,
    ) -> None:
        self._variants: dict[str, Uploader] | None = None
        self._dynamic_definitions: dict[str, VariantDefinition] = {}
        self._dynamic_variants: dict[str, Uploader] = {}
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._file: Artifact | None = None

        self.definition = definition
        self.storage = storage
        self.model = model
        self.mounted_as = mounted_as
        if settings is None:
            settings = parent.settings if parent is not None else load_settings()
        self.settings = settings

        self.state = UploaderState.EMPTY
        self.path: str | None = None
        self.original_filename: str | None = None
        self.cache_id: str | None = None
        self.parent_cache_id: str | None = None

        self.lifecycle = LifecycleDriver(self)
        self.path_resolver = PathResolver(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.display_name} state={self.state}>"

    def __getattr__(self, name: str) -> Uploader:
        # Only reached when normal lookup fails: exposes variants as attributes.
        if name.startswith("_") or "_variants" not in self.__dict__:
            raise AttributeError(name)
        variants = self.variants()
        if name in variants:
            return variants[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    # -- tree -----------------------------------------------------------------

    @property
    def parent(self) -> Uploader | None:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def version_name(self) -> str | None:
        """Qualified variant name (e.g. "thumb_small"), None for a root uploader."""
        return self.definition.qualified_name(self.settings.version_separator)

    @property
    def version_options(self) -> VariantOptions:
        return self.definition.options

    @property
    def display_name(self) -> str:
        label = getattr(self.definition, "label", None)
        return self.version_name or label or type(self).__name__

    def variants(self) -> Mapping[str, Uploader]:
        """Return every variant of this uploader, keyed by name.

        Instances are created on first call and memoized. Declared variants
        come first, then those added by the add_dynamic_variants() hook, then
        any added earlier with add_dynamic_variant().

        Raises:
            VariantDeclarationError: If add_dynamic_variants() removed a declared variant.
        """
        if self._variants is None:
            variants = {
                name: self._build_variant(definition)
                for name, definition in self.definition.children.items()
            }
            self.add_dynamic_variants(variants)

            missing = [name for name in self.definition.children if name not in variants]
            if missing:
                raise VariantDeclarationError(
                    message=f"add_dynamic_variants removed declared variants: {missing}",
                    uploader=self.display_name,
                )
            for name, variant in self._dynamic_variants.items():
                variants.setdefault(name, variant)
            self._variants = variants
        return MappingProxyType(self._variants)

    def add_dynamic_variants(self, variants: dict[str, Uploader]) -> None:
        """Hook for adding variants computed from the host context.

        Override to add entries, typically with add_dynamic_variant(), e.g.:

            def add_dynamic_variants(self, variants):
                for size in self.model.thumbnail_sizes:
                    name = f"w{size}"
                    variants[name] = self.add_dynamic_variant(
                        name, lambda v, s=size: v.process(resize(s))
                    )

        Entries must not be removed.
        """

    def add_dynamic_variant(
        self,
        name: str,
        body: VariantBody | None = None,
        *,
        condition: Any = None,
        depends_on: str | None = None,
        **extra: Any,
    ) -> Uploader:
        """Create (once) an instance-scoped variant and return its uploader.

        The definition and the uploader are both memoized by name; repeated
        calls return the identical uploader. The variant takes part in
        every lifecycle operation and is reachable as an attribute.
        """
        definition = self._dynamic_definitions.get(name)
        if definition is None:
            options = VariantOptions.build(condition=condition, depends_on=depends_on, **extra)
            definition = self.definition.generate_variant_type(name, options)
            if body is not None:
                body(definition)
            self._dynamic_definitions[name] = definition
            logger.debug("Added dynamic variant %s to %s", name, self.display_name)

        variant = self._dynamic_variants.get(name)
        if variant is None:
            variant = self._build_variant(definition)
            self._dynamic_variants[name] = variant
            if self._variants is not None:
                self._variants.setdefault(name, variant)
        return variant

    def active_variants(self) -> dict[str, Uploader]:
        """Return the variants whose condition currently holds.

        Conditions are evaluated on every call against this uploader and its
        current file.
        """
        file = self.file
        return {
            name: variant
            for name, variant in self.variants().items()
            if variant.definition.condition.evaluate(self, name, file)
        }

    def _build_variant(self, definition: VariantDefinition) -> Uploader:
        return type(self)(
            definition,
            storage=self.storage,
            model=self.model,
            mounted_as=self.mounted_as,
            parent=self,
            settings=self.settings,
        )

    # -- file and paths ---------------------------------------------------------

    @property
    def file(self) -> Artifact | None:
        """The current artifact, loaded from storage on first access after a retrieve."""
        if (
            self._file is None
            and self.path is not None
            and self.state is UploaderState.RETRIEVED
            and self.storage.exists(self.path)
        ):
            self._file = self.storage.retrieve(self.path)
        return self._file

    @property
    def cached(self) -> bool:
        return self.cache_id is not None and self.state in (
            UploaderState.CACHED,
            UploaderState.RETRIEVED,
        )

    @property
    def blank(self) -> bool:
        return self.file is None

    @property
    def cache_name(self) -> str | None:
        """Name accepted by retrieve_from_cache(), while cached."""
        if self.cache_id is None or self.original_filename is None:
            return None
        return f"{self.cache_id}/{self.original_filename}"

    def full_filename(self, for_file: str) -> str:
        return full_filename(self.version_name, for_file, self.settings.version_separator)

    def store_dir(self) -> str:
        """Directory prefix for stored artifacts. Override for custom layouts."""
        parts = [self.settings.store_dir]
        if self.mounted_as:
            parts.append(sanitize_filename(self.mounted_as))
        model_id = getattr(self.model, "id", None)
        if model_id is not None:
            parts.append(sanitize_filename(str(model_id)))
        return "/".join(parts)

    def cache_dir(self) -> str:
        """Directory prefix for cached artifacts. Override for custom layouts."""
        return self.settings.cache_dir

    def cache_path(self) -> str:
        if self.cache_id is None or self.original_filename is None:
            raise ValueError(f"{self.display_name} is not cached")
        return f"{self.cache_dir()}/{self.cache_id}/{self.full_filename(self.original_filename)}"

    def store_path(self, for_file: str | None = None) -> str:
        filename = for_file or self.original_filename
        if filename is None:
            raise ValueError(f"{self.display_name} has no filename to store")
        return f"{self.store_dir()}/{self.full_filename(filename)}"

    def url(self, *args: Any) -> str | None:
        """Return the location of this uploader or of a nested variant.

        Example:
            uploader.url()                  # own location
            uploader.url("thumb", "small")  # nested variant
            uploader.url("thumb.small")     # same
            uploader.url("thumb", {"response-content-disposition": "attachment"})

        Raises:
            UnknownVariantError: If a named variant does not exist.
        """
        return self.path_resolver.resolve(*args)

    # -- base operations -----------------------------------------------------------

    def _span_attributes(self) -> dict[str, Any]:
        return {
            "varistore.uploader": self.display_name,
            "varistore.variant": self.version_name,
            "varistore.state": str(self.state),
            "storage.backend": self.storage.backend_name,
        }

    def cache_base(self, new_file: Artifact, *, process: bool = True) -> None:
        """Process new_file and write it to the cache, without touching variants.

        A root uploader starts a new caching session on every call; a variant
        keeps the session id assigned by its parent.
        """
        if self.parent is None or self.cache_id is None:
            self.cache_id = generate_cache_id()

        self.original_filename = sanitize_filename(new_file.filename)
        artifact = new_file.renamed(self.original_filename)
        if process:
            pipeline = self.definition.pipeline(default_enable=self.settings.enable_processing)
            artifact = pipeline.process(artifact)

        self.path = self.cache_path()
        self.storage.store(artifact, self.path)
        self._file = artifact
        self.state = UploaderState.CACHED
        logger.debug("Cached %s at %s", self.display_name, self.path)

    def cache(self, new_file: Artifact) -> None:
        """Cache new_file, then cache the active variants."""
        with lifecycle_span("cache", self._span_attributes()):
            self.cache_base(new_file)
            self.after_cache(new_file)
        if self.parent is None:
            logger.info("Cached %s (session %s)", self.display_name, self.cache_id)

    def store(self, new_file: Artifact | None = None) -> None:
        """Move the cached artifact to its store path, then store the active variants.

        When new_file is given and this uploader is not cached for its
        parent's session, new_file is cached first.
        """
        with lifecycle_span("store", self._span_attributes()):
            if new_file is not None and (
                self.cache_id is None or self.cache_id != self.parent_cache_id or not self.cached
            ):
                if self.parent is not None:
                    self.cache_id = self.parent.cache_id or self.parent_cache_id
                self.cache(new_file)

            artifact = self.file
            if artifact is None or self.state not in (
                UploaderState.CACHED,
                UploaderState.RETRIEVED,
            ):
                logger.debug("Nothing to store for %s (state %s)", self.display_name, self.state)
                return

            previous_path = self.path
            self.path = self.store_path()
            self.storage.store(artifact, self.path)
            if (
                self.settings.delete_cache_after_store
                and previous_path is not None
                and previous_path != self.path
                and self.storage.exists(previous_path)
            ):
                self.storage.remove(previous_path)

            self.cache_id = None
            self.state = UploaderState.STORED
            self.after_store(new_file)

        if self.parent is None:
            logger.info("Stored %s at %s", self.display_name, self.path)

    def remove(self) -> None:
        """Delete the current artifact, then remove every variant."""
        with lifecycle_span("remove", self._span_attributes()):
            if self.path is not None and self.storage.exists(self.path):
                self.storage.remove(self.path)
            self._file = None
            self.path = None
            self.cache_id = None
            self.state = UploaderState.REMOVED
            self.after_remove()

        if self.parent is None:
            logger.info("Removed %s", self.display_name)

    def retrieve_from_cache(self, cache_name: str) -> None:
        """Point at a previously cached artifact, then do the same for every variant.

        Raises:
            InvalidCacheNameError: If cache_name is malformed.
        """
        with lifecycle_span("retrieve_from_cache", self._span_attributes()):
            cache_id, original_filename = parse_cache_name(cache_name)
            self.cache_id = cache_id
            self.original_filename = original_filename
            self.path = self.cache_path()
            self._file = None
            self.state = UploaderState.RETRIEVED
            self.after_retrieve_from_cache(cache_name)

    def retrieve_from_store(self, identifier: str) -> None:
        """Point at a previously stored artifact, then do the same for every variant."""
        with lifecycle_span("retrieve_from_store", self._span_attributes()):
            self.original_filename = sanitize_filename(identifier)
            self.path = self.store_path()
            self.cache_id = None
            self._file = None
            self.state = UploaderState.RETRIEVED
            self.after_retrieve_from_store(identifier)

    def recreate_variants(self, *names: str) -> None:
        """Reprocess the named variants, or the whole tree when no names are given."""
        self.lifecycle.recreate_variants(*names)

    # -- propagation hooks ---------------------------------------------------------

    def after_cache(self, new_file: Artifact) -> None:
        self.lifecycle.assign_parent_cache_id()
        self.lifecycle.cache_variants(new_file)

    def after_store(self, new_file: Artifact | None = None) -> None:
        self.lifecycle.store_variants(new_file)

    def after_remove(self) -> None:
        self.lifecycle.remove_variants()

    def after_retrieve_from_cache(self, cache_name: str) -> None:
        self.lifecycle.retrieve_variants_from_cache(cache_name)

    def after_retrieve_from_store(self, identifier: str) -> None:
        self.lifecycle.retrieve_variants_from_store(identifier)
