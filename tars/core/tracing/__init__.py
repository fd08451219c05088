"""Tracing module for OpenTelemetry integration."""

from tars.core.tracing.telemetry import add_span_attribute, create_span, get_tracer, setup_telemetry

__all__ = [
    "setup_telemetry",
    "get_tracer",
    "create_span",
    "add_span_attribute",
]
