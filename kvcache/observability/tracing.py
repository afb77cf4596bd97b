# kvcache/observability/tracing.py
"""
OpenTelemetry tracing for cache operations.

Wraps every cache operation in a ``cache.<operation>`` span so store latency
shows up inside the application's traces. Exporters are configured by the
host application; this module only needs the OpenTelemetry API.
"""

import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

from kvcache.observability.metrics import READ_OPERATIONS, operation_name

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_KEY_ATTRIBUTE_LENGTH = 50


def key_attribute(key: Any) -> str:
    """Render a payload key as a span attribute, truncating long keys."""
    if isinstance(key, (list, tuple)):
        rendered = ",".join(str(k) for k in key)
    else:
        rendered = str(key)
    return rendered[:MAX_KEY_ATTRIBUTE_LENGTH]


class TracingInstrumenter:
    """
    Trace cache operations as client spans.

    Example:
        cache = Cache(url, instrumenter=TracingInstrumenter())
    """

    def __init__(self, tracer_provider: Optional[Any] = None, db_system: str = "redis"):
        """
        Args:
            tracer_provider: Provider to get the tracer from (defaults to the
                globally configured provider)
            db_system: Value of the ``db.system`` attribute
        """
        self.tracer = trace.get_tracer(__name__, tracer_provider=tracer_provider)
        self.db_system = db_system

    def __call__(
        self, name: str, payload: Dict[str, Any], operation: Callable[[], T]
    ) -> T:
        op = operation_name(name)
        attributes = {
            "db.system": self.db_system,
            "cache.operation": op,
            "cache.key": key_attribute(payload.get("key")),
        }

        with self.tracer.start_as_current_span(
            f"cache.{op}",
            kind=SpanKind.CLIENT,
            attributes=attributes,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                result = operation()
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

            if op in READ_OPERATIONS:
                span.set_attribute("cache.hit", result is not None)
            return result
