"""Metrics and tracing for the load generator."""

from .metrics import (
    IN_FLIGHT,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    TICKS_SKIPPED,
    TICKS_TOTAL,
    start_metrics_server,
)

from .tracing import (
    tracer,
    setup_tracing,
    set_span_attributes,
    record_exception,
)

__all__ = [
    # Metrics
    "IN_FLIGHT",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "TICKS_SKIPPED",
    "TICKS_TOTAL",
    "start_metrics_server",
    # Tracing
    "tracer",
    "setup_tracing",
    "set_span_attributes",
    "record_exception",
]
