"""Activation conditions for variants.

A variant is active unless its condition evaluates false. Conditions are a
closed set: no condition, a predicate callable, or the name of a method on
the host uploader.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from varistore.models import Artifact


@dataclass(frozen=True, slots=True)
class NoCondition:
    """Always active."""

    def evaluate(self, host: Any, name: str, file: Artifact | None) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Predicate:
    """Active when fn(host, name, file) is truthy."""

    fn: Callable[[Any, str, Artifact | None], Any]

    def evaluate(self, host: Any, name: str, file: Artifact | None) -> bool:
        return bool(self.fn(host, name, file))


@dataclass(frozen=True, slots=True)
class NamedCheck:
    """Active when the host method called method_name returns truthy for file."""

    method_name: str

    def evaluate(self, host: Any, name: str, file: Artifact | None) -> bool:
        check = getattr(host, self.method_name, None)
        if check is None or not callable(check):
            raise AttributeError(
                f"{type(host).__name__} has no condition method {self.method_name!r}"
            )
        return bool(check(file))


Condition = NoCondition | Predicate | NamedCheck


def as_condition(raw: Any) -> Condition:
    """Normalize a raw condition option into a Condition.

    Args:
        raw: None, an existing Condition, a method name, or a callable.

    Returns:
        The matching Condition.

    Raises:
        TypeError: If raw is none of the accepted forms.
    """
    if raw is None:
        return NoCondition()
    if isinstance(raw, NoCondition | Predicate | NamedCheck):
        return raw
    if isinstance(raw, str):
        return NamedCheck(raw)
    if callable(raw):
        return Predicate(raw)
    raise TypeError(f"Unsupported condition type: {type(raw).__name__}")


def describe_condition(condition: Condition) -> str | None:
    """Return a JSON-safe description of a condition (None when unconditional)."""
    if isinstance(condition, NamedCheck):
        return f"method:{condition.method_name}"
    if isinstance(condition, Predicate):
        return f"callable:{getattr(condition.fn, '__qualname__', repr(condition.fn))}"
    return None
