"""Propagation of lifecycle events through an uploader's variant tree.

The LifecycleDriver of an uploader runs after the uploader's own base
operation has completed and forwards the event to its variants:

- cache: only active variants, dependencies first, at most once per session
- store: active variants, optionally restricted to selected names
- remove, retrieve_from_cache, retrieve_from_store: every variant

Variants are processed sequentially in declaration order. The first
failure aborts the operation; completed siblings are not rolled back.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from varistore.errors import (
    CircularDependencyError,
    MissingDependencyError,
    UnknownVariantError,
)
from varistore.paths import generate_cache_id

if TYPE_CHECKING:
    from varistore.models import Artifact
    from varistore.uploader import Uploader

logger = logging.getLogger(__name__)


class LifecycleDriver:
    """Drives cache/store/remove/retrieve across one uploader's variants."""

    def __init__(self, uploader: Uploader) -> None:
        self._uploader = uploader

    def assign_parent_cache_id(self) -> None:
        """Share the uploader's cache id with every active variant before caching them."""
        cache_id = self._uploader.cache_id
        for variant in self._uploader.active_variants().values():
            variant.parent_cache_id = cache_id

    def cache_variants(self, new_file: Artifact, names: Iterable[str] | None = None) -> None:
        """Cache active variants from the uploader's processed file.

        A variant with depends_on=X is cached from X's cached output; X is
        cached first if needed, even when X itself is inactive. A dependency
        that is not itself a target is removed again once its dependents are
        cached.

        Args:
            new_file: The artifact given to the uploader's cache operation.
            names: Restrict caching to these active variants. Dependencies of
                selected variants that already hold a file are reused as-is.

        Raises:
            UnknownVariantError: If a selected name is not an active variant.
            MissingDependencyError: If depends_on names a missing sibling.
            CircularDependencyError: If sibling dependencies form a cycle.
        """
        uploader = self._uploader
        source = uploader.file
        if source is None:
            logger.debug("No file on %s, skipping variant caching", uploader.display_name)
            return

        processed_parent = source.renamed(new_file.filename)
        active = uploader.active_variants()
        targets = active if names is None else self._select(active, names)

        resolving: list[str] = []
        for name, variant in targets.items():
            self._cache_variant(
                name,
                variant,
                processed_parent,
                resolving,
                reuse_existing=names is not None,
            )
        self._discard_pulled_dependencies(targets)

    def _discard_pulled_dependencies(self, targets: Mapping[str, Uploader]) -> None:
        # Dependencies cached only as input for a target are never stored.
        session = self._uploader.cache_id
        for name, variant in self._uploader.variants().items():
            if name not in targets and variant.cached and variant.cache_id == session:
                logger.debug("Discarding dependency cache of %s", variant.display_name)
                variant.remove()

    def _cache_variant(
        self,
        name: str,
        variant: Uploader,
        processed_parent: Artifact,
        resolving: list[str],
        *,
        reuse_existing: bool,
    ) -> None:
        session = self._uploader.cache_id
        if variant.cached and variant.cache_id == session:
            return

        if name in resolving:
            raise CircularDependencyError(
                variant=name,
                uploader=self._uploader.display_name,
                chain=(*resolving, name),
            )

        dependency = variant.definition.depends_on
        if dependency is None:
            input_file = processed_parent
        else:
            resolving.append(name)
            output = self._dependency_output(
                name,
                dependency,
                processed_parent,
                resolving,
                reuse_existing=reuse_existing,
            )
            resolving.pop()
            input_file = output.renamed(processed_parent.filename)

        variant.cache_id = session
        variant.parent_cache_id = session
        logger.debug(
            "Caching %s from %s (session %s)",
            variant.display_name,
            dependency or "parent",
            session,
        )
        variant.cache(input_file)

    def _dependency_output(
        self,
        name: str,
        dependency: str,
        processed_parent: Artifact,
        resolving: list[str],
        *,
        reuse_existing: bool,
    ) -> Artifact:
        source = self._uploader.variants().get(dependency)
        if source is None:
            raise MissingDependencyError(
                variant=name,
                uploader=self._uploader.display_name,
                dependency=dependency,
            )

        in_session = source.cached and source.cache_id == self._uploader.cache_id
        if not in_session:
            existing = source.file if reuse_existing else None
            if existing is not None:
                return existing
            self._cache_variant(
                dependency,
                source,
                processed_parent,
                resolving,
                reuse_existing=reuse_existing,
            )

        output = source.file
        if output is None:
            raise MissingDependencyError(
                message="Dependency produced no output",
                variant=name,
                uploader=self._uploader.display_name,
                dependency=dependency,
            )
        return output

    def store_variants(
        self,
        new_file: Artifact | None,
        names: Iterable[str] | None = None,
    ) -> None:
        """Store active variants, or exactly the selected ones.

        Raises:
            UnknownVariantError: If a selected name is not an active variant.
        """
        active = self._uploader.active_variants()
        targets = active if names is None else self._select(active, names)
        for variant in targets.values():
            variant.store(new_file)

    def remove_variants(self) -> None:
        """Remove every variant, active or not."""
        for variant in self._uploader.variants().values():
            variant.remove()

    def retrieve_variants_from_cache(self, cache_name: str) -> None:
        """Point every variant at its cached copy for cache_name."""
        for variant in self._uploader.variants().values():
            variant.retrieve_from_cache(cache_name)

    def retrieve_variants_from_store(self, identifier: str) -> None:
        """Point every variant at its stored copy for identifier."""
        for variant in self._uploader.variants().values():
            variant.retrieve_from_store(identifier)

    def recreate_variants(self, *names: str) -> None:
        """Reprocess variants from the uploader's current file.

        With names, only the named variants are cached and stored, in a new
        caching session. The uploader's own artifact, path and state are left
        as they are. Without names, the whole tree goes through cache and store.
        """
        uploader = self._uploader
        current = uploader.file
        if current is None:
            logger.warning("Nothing to recreate for %s: no file", uploader.display_name)
            return

        if names:
            previous_session = uploader.cache_id
            uploader.cache_id = generate_cache_id()
            try:
                self.cache_variants(current, names=names)
                self.store_variants(None, names=names)
            finally:
                uploader.cache_id = previous_session
        else:
            if not uploader.cached:
                uploader.cache_base(current, process=False)
                uploader.after_cache(current)
            uploader.store()

        logger.info(
            "Recreated variants of %s: %s",
            uploader.display_name,
            ", ".join(names) if names else "all",
        )

    def _select(
        self,
        active: Mapping[str, Uploader],
        names: Iterable[str],
    ) -> dict[str, Uploader]:
        selected: dict[str, Uploader] = {}
        for name in names:
            if name not in active:
                raise UnknownVariantError(
                    message="Not an active variant",
                    variant=name,
                    uploader=self._uploader.display_name,
                )
            selected[name] = active[name]
        return selected
