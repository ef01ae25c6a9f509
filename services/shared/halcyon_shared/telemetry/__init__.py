"""Shared OpenTelemetry tracing helpers."""

from .config import (
    add_span_event,
    configure_telemetry,
    get_tracer,
    record_exception_on_span,
)

__all__ = [
    "add_span_event",
    "configure_telemetry",
    "get_tracer",
    "record_exception_on_span",
]
