"""Variant definitions and the per-type definition registry.

A VariantDefinition describes one named variant independently of any
artifact: its options, its processing steps and its own nested variants.
Every definition owns a DefinitionRegistry holding its children, so the
whole declaration forms a tree rooted at an UploaderType.

Example:
    avatar = UploaderType("avatar")
    avatar.process(strip_metadata)

    def thumb(v: VariantDefinition) -> None:
        v.process(resize(200, 200))
        v.version("small", lambda s: s.process(resize(50, 50)))

    avatar.version("thumb", thumb)
    avatar.version("preview", condition="is_image", depends_on="thumb")
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from varistore.conditions import Condition, NoCondition, as_condition, describe_condition
from varistore.config import RedeclarePolicy, load_settings
from varistore.errors import (
    CircularDependencyError,
    DuplicateVariantError,
    InvalidVariantNameError,
    MissingDependencyError,
    RegistrySealedError,
)
from varistore.processing import ProcessingPipeline, ProcessingStep, step_name

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

VariantBody = Callable[["VariantDefinition"], Any]
DefinitionVisitor = Callable[["VariantDefinition"], Any]


def validate_variant_name(name: str) -> str:
    """Return name if it is a valid variant identifier, raise otherwise."""
    if not isinstance(name, str) or not _NAME_PATTERN.match(name):
        raise InvalidVariantNameError(
            message="Variant names must be identifiers",
            variant=str(name),
        )
    return name


@dataclass(frozen=True)
class VariantOptions:
    """Immutable options of one variant.

    Attributes:
        condition: Activation condition; NoCondition means always active.
        depends_on: Sibling whose cached output becomes this variant's input.
        extra: Any other options, kept for host use.
    """

    condition: Condition = field(default_factory=NoCondition)
    depends_on: str | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(
        cls,
        *,
        condition: Any = None,
        depends_on: str | None = None,
        **extra: Any,
    ) -> VariantOptions:
        """Build options from raw keyword values."""
        if depends_on is not None:
            validate_variant_name(depends_on)
        return cls(
            condition=as_condition(condition),
            depends_on=depends_on,
            extra=MappingProxyType(dict(extra)),
        )

    def conflicts_with(self, explicit: Mapping[str, Any]) -> tuple[str, ...]:
        """Return the explicitly passed option names that differ from these options."""
        conflicts: list[str] = []
        for key, value in explicit.items():
            if key == "condition":
                current: Any = self.condition
                value = as_condition(value)
            elif key == "depends_on":
                current = self.depends_on
            else:
                current = self.extra.get(key)
            if current != value:
                conflicts.append(key)
        return tuple(sorted(conflicts))

    def updated(self, explicit: Mapping[str, Any]) -> VariantOptions:
        """Return options with the explicitly passed values applied on top."""
        changes: dict[str, Any] = {}
        extra = dict(self.extra)
        for key, value in explicit.items():
            if key == "condition":
                changes["condition"] = as_condition(value)
            elif key == "depends_on":
                changes["depends_on"] = validate_variant_name(value)
            else:
                extra[key] = value
        changes["extra"] = MappingProxyType(extra)
        return replace(self, **changes)


class DefinitionRegistry(Mapping[str, "VariantDefinition"]):
    """Ordered table of child definitions of one VariantDefinition.

    Append-only: definitions can be added and reconfigured, never removed.
    After seal() the registry and every definition below it are read-only.
    """

    def __init__(
        self,
        owner: VariantDefinition,
        *,
        policy: RedeclarePolicy | None = None,
    ) -> None:
        self._owner = owner
        self._policy = policy
        self._definitions: dict[str, VariantDefinition] = {}
        self._sealed = False

    @property
    def owner(self) -> VariantDefinition:
        return self._owner

    @property
    def policy(self) -> RedeclarePolicy:
        """Redeclare policy; falls back to the configured default."""
        if self._policy is not None:
            return self._policy
        return load_settings().redeclare_policy

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __getitem__(self, name: str) -> VariantDefinition:
        return self._definitions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def declare(
        self,
        name: str,
        body: VariantBody | None = None,
        **options: Any,
    ) -> VariantDefinition:
        """Declare a child variant, or reconfigure it if already declared.

        Options passed as None count as not passed. On redeclaration the
        existing slot is reused, its options are merged according to the
        registry policy and body is applied to it again.

        Args:
            name: Variant name, unique among siblings.
            body: Optional callable configuring the definition.
            **options: condition, depends_on and any extra options.

        Returns:
            The declared (or existing) definition.

        Raises:
            InvalidVariantNameError: If name is not an identifier.
            RegistrySealedError: If the registry is sealed.
            DuplicateVariantError: If the policy is strict and options conflict.
        """
        validate_variant_name(name)
        qualified = self._owner.qualified_name()
        if self._sealed:
            raise RegistrySealedError(variant=name, uploader=qualified)

        explicit = {key: value for key, value in options.items() if value is not None}
        definition = self._definitions.get(name)

        if definition is None:
            definition = self._owner.generate_variant_type(name, VariantOptions.build(**explicit))
            self._definitions[name] = definition
            logger.debug("Declared variant %s under %s", name, qualified)
        else:
            self._merge(definition, explicit)

        if body is not None:
            body(definition)
        return definition

    def _merge(self, definition: VariantDefinition, explicit: Mapping[str, Any]) -> None:
        conflicts = definition.options.conflicts_with(explicit)
        if not conflicts:
            return

        policy = self.policy
        if policy is RedeclarePolicy.STRICT:
            raise DuplicateVariantError(
                variant=definition.name,
                uploader=self._owner.qualified_name(),
                conflicts=conflicts,
            )
        if policy is RedeclarePolicy.FIRST_WINS:
            logger.debug(
                "Keeping original options of %s, ignoring %s",
                definition.name,
                ", ".join(conflicts),
            )
            return

        definition.options = definition.options.updated(explicit)
        logger.debug("Redeclared %s overriding %s", definition.name, ", ".join(conflicts))

    def for_each_descendant(self, visitor: DefinitionVisitor) -> None:
        """Apply visitor to every definition below the owner, parent before children."""
        for definition in self._definitions.values():
            visitor(definition)
            definition.children.for_each_descendant(visitor)

    def seal(self) -> None:
        """Make this registry and every registry below it read-only."""
        self._sealed = True
        for definition in self._definitions.values():
            definition.children.seal()

    def validate(self) -> None:
        """Check depends_on links among these siblings and recursively below.

        Raises:
            MissingDependencyError: If depends_on names a missing sibling.
            CircularDependencyError: If sibling dependencies form a cycle.
        """
        for name, definition in self._definitions.items():
            dependency = definition.options.depends_on
            if dependency is not None and dependency not in self._definitions:
                raise MissingDependencyError(
                    variant=name,
                    uploader=self._owner.qualified_name(),
                    dependency=dependency,
                )

        for name in self._definitions:
            chain = [name]
            current = self._definitions[name].options.depends_on
            while current is not None:
                if current in chain:
                    raise CircularDependencyError(
                        variant=name,
                        uploader=self._owner.qualified_name(),
                        chain=(*chain, current),
                    )
                chain.append(current)
                current = self._definitions[current].options.depends_on

        for definition in self._definitions.values():
            definition.children.validate()


class VariantDefinition:
    """Description of one variant and its nested variants.

    Attributes:
        name: Variant name, None for a root uploader type.
        parent: Definition this one was generated from.
        options: Immutable VariantOptions.
        processors: Processing steps, in order. Never inherited.
        children: Registry of nested variant definitions.
        version_names: Names from the root down to this definition.
    """

    def __init__(
        self,
        name: str | None = None,
        options: VariantOptions | None = None,
        *,
        parent: VariantDefinition | None = None,
        redeclare_policy: RedeclarePolicy | None = None,
    ) -> None:
        self.name = name
        self.parent = parent
        self.options = options or VariantOptions()
        self.processors: list[ProcessingStep] = []
        self._enable_processing: bool | None = None

        if redeclare_policy is None and parent is not None:
            redeclare_policy = parent.children._policy
        self.children = DefinitionRegistry(self, policy=redeclare_policy)

        parent_names = parent.version_names if parent is not None else ()
        self.version_names: tuple[str, ...] = parent_names + ((name,) if name else ())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.qualified_name() or '(root)'}>"

    @property
    def enable_processing(self) -> bool | None:
        """Locally configured flag; None means inherited."""
        return self._enable_processing

    @enable_processing.setter
    def enable_processing(self, value: bool | None) -> None:
        self._check_writable()
        self._enable_processing = value

    @property
    def depends_on(self) -> str | None:
        return self.options.depends_on

    @property
    def condition(self) -> Condition:
        return self.options.condition

    @property
    def sealed(self) -> bool:
        return self.children.sealed

    def qualified_name(self, separator: str = "_") -> str | None:
        """Return the variant names from the root joined by separator."""
        if not self.version_names:
            return None
        return separator.join(self.version_names)

    def resolve_enable_processing(self, default: bool = True) -> bool:
        """Return the nearest explicitly set enable_processing, walking up parents."""
        node: VariantDefinition | None = self
        while node is not None:
            if node._enable_processing is not None:
                return node._enable_processing
            node = node.parent
        return default

    def pipeline(self, *, default_enable: bool = True) -> ProcessingPipeline:
        """Build the processing pipeline for this definition."""
        return ProcessingPipeline(
            self.processors,
            enabled=self.resolve_enable_processing(default_enable),
        )

    def process(self, *steps: ProcessingStep) -> VariantDefinition:
        """Append processing steps."""
        self._check_writable()
        self.processors.extend(steps)
        return self

    def version(
        self,
        name: str,
        body: VariantBody | None = None,
        *,
        condition: Any = None,
        depends_on: str | None = None,
        **extra: Any,
    ) -> VariantDefinition:
        """Declare a nested variant. See DefinitionRegistry.declare."""
        return self.children.declare(
            name,
            body,
            condition=condition,
            depends_on=depends_on,
            **extra,
        )

    def generate_variant_type(
        self,
        name: str,
        options: VariantOptions | None = None,
    ) -> VariantDefinition:
        """Create a new definition derived from this one, without registering it.

        The new definition starts with no processing steps and inherits
        enable_processing from this definition unless set locally.
        """
        validate_variant_name(name)
        return VariantDefinition(name, options, parent=self)

    def for_each_descendant(self, visitor: DefinitionVisitor) -> None:
        """Apply visitor to every nested definition, depth-first, parent before children."""
        self.children.for_each_descendant(visitor)

    def validate(self) -> None:
        """Statically check depends_on links in the whole subtree."""
        self.children.validate()

    def seal(self) -> None:
        """Make the subtree read-only."""
        self.children.seal()

    def describe(self, *, default_enable: bool = True) -> dict[str, Any]:
        """Return a JSON-safe description of the subtree."""
        return {
            "name": self.name,
            "qualified_name": self.qualified_name(),
            "condition": describe_condition(self.options.condition),
            "depends_on": self.options.depends_on,
            "enable_processing": self.resolve_enable_processing(default_enable),
            "processors": [step_name(step) for step in self.processors],
            "options": {key: _json_safe(value) for key, value in self.options.extra.items()},
            "versions": {
                name: child.describe(default_enable=default_enable)
                for name, child in self.children.items()
            },
        }

    def _check_writable(self) -> None:
        if self.children.sealed:
            raise RegistrySealedError(
                message="Variant definition is sealed",
                variant=self.name,
            )


class UploaderType(VariantDefinition):
    """Root of a variant definition tree.

    Attributes:
        label: Human-readable name used in logs and descriptions.
    """

    def __init__(
        self,
        label: str = "uploader",
        *,
        redeclare_policy: RedeclarePolicy | None = None,
    ) -> None:
        super().__init__(None, None, redeclare_policy=redeclare_policy)
        self.label = label

    def __repr__(self) -> str:
        return f"<UploaderType {self.label}>"

    def describe(self, *, default_enable: bool = True) -> dict[str, Any]:
        description = super().describe(default_enable=default_enable)
        description["label"] = self.label
        return description


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, list | tuple):
        return [_json_safe(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    return repr(value)
