"""OpenTelemetry setup and utilities."""

from contextlib import contextmanager
from typing import Any, Generator

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from tars.config import settings

# Global tracer instance
_tracer: trace.Tracer | None = None


def setup_telemetry() -> None:
    """Set up OpenTelemetry tracing.

    Spans are exported to stdout; with tracing disabled the API's no-op
    tracer is used and spans cost nothing.
    """
    global _tracer

    if not settings.enable_tracing:
        return

    resource = Resource.create({
        "service.name": "tars-engine",
        "service.version": settings.app_version,
        "deployment.environment": settings.environment,
    })

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("tars")


def get_tracer() -> trace.Tracer:
    """Get the global tracer instance."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer("tars")
    return _tracer


@contextmanager
def create_span(
    name: str,
    attributes: dict[str, Any] | None = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
) -> Generator[trace.Span, None, None]:
    """Create a new span context manager."""
    tracer = get_tracer()

    with tracer.start_as_current_span(
        name,
        kind=kind,
        attributes=attributes or {},
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def add_span_attribute(key: str, value: Any) -> None:
    """Add an attribute to the current span."""
    current_span = trace.get_current_span()
    if current_span:
        current_span.set_attribute(key, value)
