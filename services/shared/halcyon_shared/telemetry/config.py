"""
OpenTelemetry tracing for the HALCYON services.

Spans are always created through the global tracer provider. Until
`configure_telemetry` installs an exporter the provider is the OpenTelemetry
no-op default, so instrumented code never needs to check whether tracing is on.

Environment variables:
- OTEL_EXPORTER_OTLP_ENDPOINT: Base OTLP/HTTP endpoint (e.g., http://localhost:4318)
- OTEL_EXPORTER_OTLP_HEADERS: Extra headers (e.g., x-otlp-api-key=xxx)
- OTEL_SERVICE_NAME: Overrides the service name passed in code
"""

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode

from ..logging import get_logger

logger = get_logger(__name__)

_telemetry_configured = False


def _parse_headers(headers_str: str | None) -> dict[str, str]:
    """Parse OTEL_EXPORTER_OTLP_HEADERS format (key=value,key2=value2)."""
    if not headers_str:
        return {}
    headers = {}
    for pair in headers_str.split(","):
        if "=" in pair:
            key, value = pair.split("=", 1)
            headers[key.strip()] = value.strip()
    return headers


def configure_telemetry(
    service_name: str,
    service_version: str = "0.1.0",
    environment: str | None = None,
) -> bool:
    """Install an OTLP/HTTP span exporter for the service.

    Args:
        service_name: Name of the service (e.g., 'halcyon-api').
        service_version: Version of the service.
        environment: Deployment environment (e.g., 'development').

    Returns:
        True if an exporter was installed, False if no endpoint is configured.
    """
    global _telemetry_configured

    if _telemetry_configured:
        return True

    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        logger.info("No OTLP endpoint configured, tracing export disabled")
        return False

    service_name = os.environ.get("OTEL_SERVICE_NAME", service_name)
    resource = Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        "deployment.environment": environment or os.environ.get("ENVIRONMENT", "development"),
    })

    traces_endpoint = endpoint
    if not traces_endpoint.endswith("/v1/traces"):
        traces_endpoint = f"{endpoint.rstrip('/')}/v1/traces"

    exporter = OTLPSpanExporter(
        endpoint=traces_endpoint,
        headers=_parse_headers(os.environ.get("OTEL_EXPORTER_OTLP_HEADERS")) or None,
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    _telemetry_configured = True
    logger.info("Tracing configured", service=service_name, endpoint=traces_endpoint)
    return True


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer for the given component name.

    Args:
        name: Name of the component (e.g., 'production_mixer').

    Returns:
        OpenTelemetry tracer from the global provider.
    """
    return trace.get_tracer(name)


def add_span_event(span: Span, name: str, attributes: dict[str, Any] | None = None) -> None:
    """Add an event such as "prediction_pending" to a span."""
    if span.is_recording():
        span.add_event(name, attributes=attributes or {})


def record_exception_on_span(
    span: Span,
    exception: BaseException,
    attributes: dict[str, Any] | None = None,
) -> None:
    """Record an exception on a span and mark the span as failed.

    Args:
        span: The span to record the exception on.
        exception: The exception that occurred.
        attributes: Optional additional attributes.
    """
    span.record_exception(exception, attributes=attributes)
    span.set_status(Status(StatusCode.ERROR, str(exception)))
