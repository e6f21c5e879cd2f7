"""varistore error types.

Typed exceptions for declaring variant trees and driving their lifecycle.
Errors from a child variant abort the parent's lifecycle step: there is no
partial-failure recovery at this layer.

Storage failures live in varistore.storage.errors and are re-exported from
the package root.
"""

from __future__ import annotations


class VariantError(Exception):
    """Base exception for variant tree operations.

    Attributes:
        message: Human-readable error message.
        variant: Variant name associated with the error (if applicable).
        uploader: Qualified name of the uploader raising the error (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        variant: str | None = None,
        uploader: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.variant = variant
        self.uploader = uploader

    def __str__(self) -> str:
        parts = [self.message]
        if self.variant:
            parts.append(f"variant={self.variant}")
        if self.uploader:
            parts.append(f"uploader={self.uploader}")
        return " ".join(parts)


class VariantDeclarationError(VariantError):
    """Raised when a variant tree cannot be declared as requested."""


class DuplicateVariantError(VariantDeclarationError):
    """Raised when a variant is redeclared with incompatible options.

    Only raised by registries using the strict redeclare policy. Other
    policies merge the redeclaration into the existing definition.

    Attributes:
        conflicts: Option names whose values differ from the existing definition.
    """

    def __init__(
        self,
        message: str = "Variant already declared with different options",
        *,
        variant: str | None = None,
        uploader: str | None = None,
        conflicts: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, variant=variant, uploader=uploader)
        self.conflicts = conflicts


class RegistrySealedError(VariantDeclarationError):
    """Raised when declaring into a registry that has been sealed."""

    def __init__(
        self,
        message: str = "Definition registry is sealed",
        *,
        variant: str | None = None,
        uploader: str | None = None,
    ) -> None:
        super().__init__(message, variant=variant, uploader=uploader)


class InvalidVariantNameError(VariantDeclarationError):
    """Raised when a variant name is not a valid identifier."""

    def __init__(
        self,
        message: str = "Invalid variant name",
        *,
        variant: str | None = None,
        uploader: str | None = None,
    ) -> None:
        super().__init__(message, variant=variant, uploader=uploader)


class MissingDependencyError(VariantError):
    """Raised when depends_on names a variant that is not a sibling.

    Attributes:
        dependency: The sibling name that could not be found.
    """

    def __init__(
        self,
        message: str = "Variant depends on a missing sibling",
        *,
        variant: str | None = None,
        uploader: str | None = None,
        dependency: str | None = None,
    ) -> None:
        super().__init__(message, variant=variant, uploader=uploader)
        self.dependency = dependency

    def __str__(self) -> str:
        base = super().__str__()
        if self.dependency:
            return f"{base} depends_on={self.dependency}"
        return base


class CircularDependencyError(VariantError):
    """Raised when sibling depends_on links form a cycle.

    Attributes:
        chain: Variant names forming the cycle, in resolution order.
    """

    def __init__(
        self,
        message: str = "Circular depends_on chain",
        *,
        variant: str | None = None,
        uploader: str | None = None,
        chain: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, variant=variant, uploader=uploader)
        self.chain = chain

    def __str__(self) -> str:
        base = super().__str__()
        if self.chain:
            return f"{base} chain={' -> '.join(self.chain)}"
        return base


class UnknownVariantError(VariantError):
    """Raised when a path or store selection names a variant that does not exist."""

    def __init__(
        self,
        message: str = "Variant does not exist",
        *,
        variant: str | None = None,
        uploader: str | None = None,
    ) -> None:
        super().__init__(message, variant=variant, uploader=uploader)


class InvalidCacheNameError(VariantError):
    """Raised when a cache name cannot be parsed into cache_id and filename.

    Attributes:
        cache_name: The rejected cache name.
    """

    def __init__(
        self,
        message: str = "Invalid cache name",
        *,
        cache_name: str | None = None,
        uploader: str | None = None,
    ) -> None:
        super().__init__(message, uploader=uploader)
        self.cache_name = cache_name


class ProcessingError(Exception):
    """Raised by processing steps when an artifact cannot be transformed.

    The lifecycle propagates it unchanged to the caller.

    Attributes:
        message: Human-readable error message.
        step: Name of the failing processing step (if known).
        filename: Filename of the artifact being processed (if known).
    """

    def __init__(
        self,
        message: str,
        *,
        step: str | None = None,
        filename: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.step = step
        self.filename = filename

    def __str__(self) -> str:
        parts = [self.message]
        if self.step:
            parts.append(f"step={self.step}")
        if self.filename:
            parts.append(f"filename={self.filename}")
        return " ".join(parts)
