"""
Study Registration Observability Layer

Logging setup, metrics and tracing.
"""

from studyreg.observability.logging_config import JSONFormatter, configure_logging
from studyreg.observability.metrics import (
    Counter,
    Histogram,
    MetricsRegistry,
    get_registry,
    metrics,
    reset_metrics,
)
from studyreg.observability.tracer import Span, SpanStatus, Tracer, get_tracer, reset_tracers

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    # Tracer
    "Tracer",
    "Span",
    "SpanStatus",
    "get_tracer",
    "reset_tracers",
    # Metrics
    "MetricsRegistry",
    "Counter",
    "Histogram",
    "get_registry",
    "metrics",
    "reset_metrics",
]
