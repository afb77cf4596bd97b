"""
Observability module for kvcache.

Provides instrumenters for cache operations: an in-process notification
hub, logging, Prometheus metrics and OpenTelemetry tracing.
"""

from kvcache.observability.metrics import MetricsInstrumenter, get_metrics_instrumenter
from kvcache.observability.notifications import (
    Instrumenter,
    LoggingInstrumenter,
    Notifications,
    chain,
    null_instrumenter,
)
from kvcache.observability.tracing import TracingInstrumenter

__all__ = [
    # Instrumentation contract
    "Instrumenter",
    "Notifications",
    "chain",
    "null_instrumenter",
    # Instrumenters
    "LoggingInstrumenter",
    "MetricsInstrumenter",
    "get_metrics_instrumenter",
    "TracingInstrumenter",
]
