"""varistore storage OpenTelemetry tracing integration.

Provides the tracing decorator for artifact store operations.

Security:
    - Never export raw storage paths or absolute filesystem paths in span attributes
    - Only path hashes, sizes and backend names are attached
"""

from __future__ import annotations

import functools
import hashlib
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

from varistore.observability.tracing import is_otel_enabled

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _path_from_call(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    path = kwargs.get("path")
    if path is None and args:
        path = args[-1]
    return path if isinstance(path, str) else ""


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace artifact store operations with OpenTelemetry.

    Args:
        operation: Operation name (e.g., "store", "retrieve", "remove").

    Returns:
        Decorated function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not is_otel_enabled():
                return func(self, *args, **kwargs)

            try:
                from opentelemetry import trace
            except ImportError:
                return func(self, *args, **kwargs)

            tracer = trace.get_tracer("varistore.artifact_store")
            span_name = f"varistore.artifact_store.{operation}"

            with tracer.start_as_current_span(span_name) as span:
                path = _path_from_call(args, kwargs)
                # Paths embed original filenames; export only a hash for correlation.
                span.set_attribute(
                    "varistore.path_sha256",
                    hashlib.sha256(path.encode("utf-8")).hexdigest(),
                )
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))

                try:
                    result = func(self, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add safe result attributes (sha256, size) to the span."""
    from varistore.models import Artifact
    from varistore.storage.models import StoredArtifactMetadata

    if isinstance(result, Artifact | StoredArtifactMetadata):
        span.set_attribute("varistore.artifact_sha256", result.sha256)
        span.set_attribute("varistore.artifact_size_bytes", result.size_bytes)
    elif isinstance(result, bool):
        span.set_attribute("varistore.artifact_exists", result)
