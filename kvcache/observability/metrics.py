# kvcache/observability/metrics.py
"""
Prometheus metrics for cache operations.

``MetricsInstrumenter`` is a drop-in instrumenter that tracks:
- Operation counts by operation and result (hit, miss, success, error)
- Operation durations
- Running read hit rate
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

EVENT_PREFIX = "cache_"

# Operations whose result tells a hit from a miss
READ_OPERATIONS = {"read"}


def operation_name(event_name: str) -> str:
    """Strip the event prefix: ``cache_read`` -> ``read``."""
    if event_name.startswith(EVENT_PREFIX):
        return event_name[len(EVENT_PREFIX):]
    return event_name


class MetricsInstrumenter:
    """
    Record cache operations as Prometheus metrics.

    Each instance registers its own collectors, so pass a fresh
    ``CollectorRegistry`` when more than one instance lives in a process.
    """

    def __init__(
        self, registry: CollectorRegistry = REGISTRY, namespace: str = "kvcache"
    ):
        """
        Args:
            registry: Registry the collectors are registered with
            namespace: Metric name prefix
        """
        self.registry = registry

        self.operations = Counter(
            "cache_operations_total",
            "Total cache operations",
            ["operation", "result"],  # result: hit, miss, success, error
            namespace=namespace,
            registry=registry,
        )
        self.duration = Histogram(
            "cache_operation_duration_seconds",
            "Cache operation duration in seconds",
            ["operation"],
            namespace=namespace,
            registry=registry,
            buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5, 1.0),
        )
        self.hit_rate = Gauge(
            "cache_hit_rate",
            "Read hit rate (0-1) since start",
            namespace=namespace,
            registry=registry,
        )

        self._hits = 0
        self._reads = 0
        self._lock = threading.Lock()
        logger.info(f"Cache metrics registered (namespace={namespace})")

    def __call__(
        self, name: str, payload: Dict[str, Any], operation: Callable[[], T]
    ) -> T:
        op = operation_name(name)
        start_time = time.perf_counter()
        result_label = "success"

        try:
            result = operation()
            if op in READ_OPERATIONS:
                result_label = "miss" if result is None else "hit"
                self._record_read(hit=result is not None)
            return result
        except Exception:
            result_label = "error"
            raise
        finally:
            self.duration.labels(operation=op).observe(time.perf_counter() - start_time)
            self.operations.labels(operation=op, result=result_label).inc()

    def _record_read(self, hit: bool):
        with self._lock:
            self._reads += 1
            if hit:
                self._hits += 1
            self.hit_rate.set(self._hits / self._reads)

    def snapshot(self) -> Dict[str, Any]:
        """
        Get a snapshot of current counts for debugging.

        Returns:
            Dictionary with read totals and hit rate
        """
        with self._lock:
            return {
                "reads": self._reads,
                "hits": self._hits,
                "misses": self._reads - self._hits,
                "hit_rate": self._hits / self._reads if self._reads else 0.0,
            }

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus text format."""
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST


_default_instrumenter: Optional[MetricsInstrumenter] = None


def get_metrics_instrumenter() -> MetricsInstrumenter:
    """
    Get the process-wide instrumenter bound to the default registry.

    Collectors can only be registered once per registry, so every cache that
    reports to the default registry shares this instance.
    """
    global _default_instrumenter
    if _default_instrumenter is None:
        _default_instrumenter = MetricsInstrumenter()
    return _default_instrumenter
