"""varistore observability module.

Provides the OpenTelemetry tracing baseline for storage and lifecycle spans.
"""

from varistore.observability.tracing import configure_tracing, is_otel_enabled

__all__ = ["configure_tracing", "is_otel_enabled"]
