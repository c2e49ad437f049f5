"""OpenTelemetry tracing for schema fetches and dispatches."""
import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.trace import Status, StatusCode
from loguru import logger

from src.loadgen.core.config import settings


def setup_tracing(otlp_endpoint: Optional[str] = None) -> Optional[TracerProvider]:
    """
    Install a tracer provider exporting to OTLP.

    Tracing stays a no-op unless OTEL_EXPORTER_OTLP_ENDPOINT is set
    (and not "none").
    """
    otlp_endpoint = otlp_endpoint or os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otlp_endpoint or otlp_endpoint == "none":
        logger.debug("Tracing disabled: no OTLP endpoint configured")
        return None

    resource = Resource.create(
        attributes={
            "service.name": settings.PROJECT_NAME,
            "service.version": settings.VERSION,
            "deployment.environment": settings.ENV,
        }
    )

    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
    tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    logger.info(f"Tracing configured: exporting to {otlp_endpoint}")
    return tracer_provider


# Global tracer instance
tracer = trace.get_tracer(__name__, settings.VERSION)


def set_span_attributes(span, **attributes):
    """Set multiple attributes on a span."""
    if span and span.is_recording():
        for key, value in attributes.items():
            span.set_attribute(key, value)


def record_exception(span, exception: Exception):
    """Record exception in span."""
    if span and span.is_recording():
        span.record_exception(exception)
        span.set_status(Status(StatusCode.ERROR, str(exception)))
