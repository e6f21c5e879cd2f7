"""varistore CLI - inspect declared variant trees.

Usage:
    python -m varistore describe <module:attribute>
    python -m varistore check <module:attribute>

The target must resolve to a VariantDefinition (usually an UploaderType).

Exit codes:
    0: Success / check passed
    1: Internal error (unexpected)
    2: Invalid target / check failed
"""

from __future__ import annotations

import argparse
import importlib
import json
import sys
from typing import Any

from varistore.config import load_settings
from varistore.definitions import VariantDefinition
from varistore.errors import CircularDependencyError, MissingDependencyError


class TargetError(Exception):
    """Raised when a CLI target cannot be loaded."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _output_json(data: dict[str, Any], *, sort_keys: bool = True) -> None:
    """Output JSON to stdout with deterministic ordering.

    Pass sort_keys=False where mapping order carries meaning.
    """
    print(json.dumps(data, sort_keys=sort_keys, indent=2))


def _make_error_result(code: str, message: str) -> dict[str, Any]:
    return {
        "errors": [{"code": code, "message": message}],
        "pass": False,
    }


def load_target(target: str) -> VariantDefinition:
    """Import "module:attribute" and return the VariantDefinition it names.

    Raises:
        TargetError: If the target is malformed, missing or of the wrong type.
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise TargetError("INVALID_TARGET", f"Expected module:attribute, got '{target}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise TargetError("MODULE_NOT_FOUND", f"Cannot import '{module_name}': {e}") from e

    obj: Any = module
    for part in attribute.split("."):
        if not hasattr(obj, part):
            raise TargetError("ATTRIBUTE_NOT_FOUND", f"'{target}' has no attribute '{part}'")
        obj = getattr(obj, part)

    if not isinstance(obj, VariantDefinition):
        raise TargetError(
            "NOT_A_DEFINITION",
            f"'{target}' is a {type(obj).__name__}, not a VariantDefinition",
        )
    return obj


def cmd_describe(args: argparse.Namespace) -> int:
    """Print the definition tree of the target."""
    try:
        definition = load_target(args.target)
    except TargetError as e:
        _output_json(_make_error_result(e.code, e.message))
        return 2

    settings = load_settings()
    # Variant order is processing order.
    _output_json(definition.describe(default_enable=settings.enable_processing), sort_keys=False)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Validate depends_on links of the target.

    Exit codes:
        0: pass=True
        2: pass=False (dangling or circular dependency, invalid target)
    """
    try:
        definition = load_target(args.target)
    except TargetError as e:
        _output_json(_make_error_result(e.code, e.message))
        return 2

    try:
        definition.validate()
    except MissingDependencyError as e:
        _output_json(_make_error_result("MISSING_DEPENDENCY", str(e)))
        return 2
    except CircularDependencyError as e:
        _output_json(_make_error_result("CIRCULAR_DEPENDENCY", str(e)))
        return 2

    _output_json({"errors": [], "pass": True})
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="varistore",
        description="varistore - inspect artifact variant trees",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    describe_parser = subparsers.add_parser(
        "describe",
        help="Print the variant definition tree as JSON",
    )
    describe_parser.add_argument(
        "target",
        metavar="MODULE:ATTRIBUTE",
        help="Import path of an UploaderType (e.g. myapp.uploaders:avatar)",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Check depends_on links of a variant tree",
    )
    check_parser.add_argument(
        "target",
        metavar="MODULE:ATTRIBUTE",
        help="Import path of an UploaderType (e.g. myapp.uploaders:avatar)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success / check passed
        1: Internal error (unexpected)
        2: Invalid target / check failed
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return 0

        if args.command == "describe":
            return cmd_describe(args)

        if args.command == "check":
            return cmd_check(args)

        return 0

    except Exception as e:
        # Unexpected errors are reported as JSON with exit code 1
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
