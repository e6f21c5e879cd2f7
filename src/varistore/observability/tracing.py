"""OpenTelemetry tracing for varistore.

Tracing is off unless VARISTORE_OTEL_ENABLED is set. When off, spans are
never created and the OpenTelemetry SDK is not imported.

Environment Variables:
    VARISTORE_OTEL_ENABLED: "1" to enable tracing (default: disabled)
    VARISTORE_REQUIRE_OTEL: "1" to raise if tracing cannot be configured
    VARISTORE_OTEL_SERVICE_NAME: service.name resource attribute (default: "varistore")
    VARISTORE_OTEL_EXPORTER: "otlp" or "console" (default: "otlp")
    VARISTORE_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    VARISTORE_OTEL_EXPORTER_OTLP_PROTOCOL: "grpc" or "http" (default: "grpc")
    VARISTORE_OTEL_RESOURCE_ATTRS: extra resource attributes as "k=v,k2=v2"
    VARISTORE_OTEL_TEST_CAPTURE: "1" to collect spans in memory (tests)

Security:
    - Span attributes never carry artifact content or raw storage paths
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
    from opentelemetry.sdk.trace.export import SpanExporter

logger = logging.getLogger(__name__)

VARISTORE_OTEL_ENABLED_ENV = "VARISTORE_OTEL_ENABLED"

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: Any = None  # InMemorySpanExporter once test capture is configured


class TracingConfigError(Exception):
    """Raised when tracing cannot be configured and VARISTORE_REQUIRE_OTEL=1."""


class TracingSettings(BaseModel):
    """Tracing settings read from VARISTORE_OTEL_* variables."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    required: bool = False
    test_capture: bool = False
    service_name: str = Field(default="varistore", min_length=1)
    exporter: Literal["otlp", "console"] = "otlp"
    endpoint: str | None = None
    protocol: Literal["grpc", "http"] = "grpc"
    resource_attrs: dict[str, str] = Field(default_factory=dict)

    @field_validator("resource_attrs", mode="before")
    @classmethod
    def _parse_resource_attrs(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        attrs: dict[str, str] = {}
        for pair in value.split(","):
            key, sep, item = pair.partition("=")
            if sep and key.strip():
                attrs[key.strip()] = item.strip()
        return attrs


def _env_flag(key: str) -> bool:
    return os.environ.get(key, "").strip().lower() in ("1", "true", "yes")


def load_tracing_settings() -> TracingSettings:
    """Build TracingSettings from the environment.

    Raises:
        pydantic.ValidationError: If an exporter or protocol value is unknown.
    """
    raw: dict[str, Any] = {
        "enabled": _env_flag(VARISTORE_OTEL_ENABLED_ENV),
        "required": _env_flag("VARISTORE_REQUIRE_OTEL"),
        "test_capture": _env_flag("VARISTORE_OTEL_TEST_CAPTURE"),
    }
    for env_key, field_name in (
        ("VARISTORE_OTEL_SERVICE_NAME", "service_name"),
        ("VARISTORE_OTEL_EXPORTER", "exporter"),
        ("VARISTORE_OTEL_EXPORTER_OTLP_ENDPOINT", "endpoint"),
        ("VARISTORE_OTEL_EXPORTER_OTLP_PROTOCOL", "protocol"),
        ("VARISTORE_OTEL_RESOURCE_ATTRS", "resource_attrs"),
    ):
        value = os.environ.get(env_key, "").strip()
        if value:
            raw[field_name] = value
    return TracingSettings.model_validate(raw)


def is_otel_enabled() -> bool:
    """Return True if VARISTORE_OTEL_ENABLED is set."""
    return _env_flag(VARISTORE_OTEL_ENABLED_ENV)


def _build_exporter(settings: TracingSettings) -> SpanExporter:
    if settings.exporter == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter

        return ConsoleSpanExporter()

    kwargs = {"endpoint": settings.endpoint} if settings.endpoint else {}
    if settings.protocol == "http":
        from opentelemetry.exporter.otlp.proto.http import trace_exporter
    else:
        from opentelemetry.exporter.otlp.proto.grpc import trace_exporter  # type: ignore[no-redef]
    return trace_exporter.OTLPSpanExporter(**kwargs)


def configure_tracing(settings: TracingSettings | None = None) -> bool:
    """Install a TracerProvider for varistore spans.

    Safe to call repeatedly. The global provider can only be set once per
    process, so later calls reuse it.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If tracing is required but configuration fails.
    """
    global _tracer_provider, _is_configured, _test_exporter

    if settings is None:
        settings = load_tracing_settings()

    if not settings.enabled:
        _is_configured = True
        logger.debug("Tracing disabled (%s not set)", VARISTORE_OTEL_ENABLED_ENV)
        return False

    if settings.test_capture and _test_exporter is not None:
        return True
    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True
    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

        resource = Resource.create(
            {"service.name": settings.service_name, **settings.resource_attrs}
        )
        provider = TracerProvider(resource=resource)

        if settings.test_capture:
            from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
                InMemorySpanExporter,
            )

            _test_exporter = InMemorySpanExporter()
            provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
            exporter_label = "in-memory"
        elif settings.exporter == "console":
            provider.add_span_processor(SimpleSpanProcessor(_build_exporter(settings)))
            exporter_label = "console"
        else:
            provider.add_span_processor(BatchSpanProcessor(_build_exporter(settings)))
            exporter_label = f"otlp/{settings.protocol}"

        trace.set_tracer_provider(provider)
        _tracer_provider = provider
    except Exception as e:
        logger.error("Failed to configure tracing: %s", e)
        if settings.required:
            raise TracingConfigError(f"Tracing required but configuration failed: {e}") from e
        return False

    logger.info(
        "Tracing configured: service=%s exporter=%s", settings.service_name, exporter_label
    )
    return True


@contextmanager
def lifecycle_span(event: str, attributes: dict[str, Any]) -> Iterator[None]:
    """Wrap one lifecycle event of one uploader in a span when tracing is enabled.

    Attributes with None values are skipped.
    """
    if not is_otel_enabled():
        yield
        return

    from opentelemetry import trace

    tracer = trace.get_tracer("varistore.lifecycle")
    with tracer.start_as_current_span(f"varistore.lifecycle.{event}") as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            raise


def get_test_spans() -> list[ReadableSpan]:
    """Return spans collected by the in-memory exporter (empty without test capture)."""
    if _test_exporter is None:
        return []
    return list(_test_exporter.get_finished_spans())


def clear_test_spans() -> None:
    """Drop spans collected by the in-memory exporter."""
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Forget configuration state between tests.

    The provider and its in-memory exporter stay installed; only their
    collected spans are dropped.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False
