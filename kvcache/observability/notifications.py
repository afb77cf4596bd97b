# kvcache/observability/notifications.py
"""
In-process instrumentation for cache operations.

An instrumenter is any callable with the shape::

    instrument(name: str, payload: dict, operation: Callable[[], T]) -> T

It must call ``operation`` exactly once and return its result, letting any
exception propagate. ``Cache`` takes one at construction time; when none is
given it uses a private ``Notifications`` hub.

Example:
    hub = Notifications()
    hub.subscribe(re.compile(r"^cache_"), lambda name, start, finish, payload: ...)
    cache = Cache("redis://localhost:6379/0", instrumenter=hub)
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Pattern, Tuple, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

Instrumenter = Callable[[str, Dict[str, Any], Callable[[], Any]], Any]
Subscriber = Callable[[str, float, float, Dict[str, Any]], None]


# ============================================================================
# NOTIFICATIONS HUB
# ============================================================================


class Notifications:
    """
    Minimal publish/subscribe hub.

    Subscribers are called synchronously after each instrumented operation
    with ``(name, started, finished, payload)``. Timestamps come from
    ``time.time()``.
    """

    def __init__(self):
        self._subscribers: List[Tuple[Union[str, Pattern], Subscriber]] = []
        self._lock = threading.Lock()

    def subscribe(self, pattern: Union[str, Pattern], callback: Subscriber) -> Subscriber:
        """
        Register a callback for events matching an exact name or a regex.

        Returns:
            The callback, for use with ``unsubscribe``
        """
        with self._lock:
            self._subscribers.append((pattern, callback))
        return callback

    def unsubscribe(self, callback: Subscriber):
        """Remove every registration of a callback."""
        with self._lock:
            self._subscribers = [
                (pattern, subscriber)
                for pattern, subscriber in self._subscribers
                if subscriber is not callback
            ]

    def listening(self, name: str) -> bool:
        """Check whether any subscriber would receive an event."""
        return bool(self._matching(name))

    def instrument(
        self, name: str, payload: Dict[str, Any], operation: Callable[[], T]
    ) -> T:
        """
        Run an operation and notify subscribers once it finishes.

        On failure the payload gains an ``exception`` entry of
        ``[class name, message]`` before subscribers run. Subscriber errors
        are logged, never raised: the caller always sees the operation's own
        result or exception.
        """
        started = time.time()
        try:
            result = operation()
        except Exception as e:
            payload["exception"] = [type(e).__name__, str(e)]
            self._notify(name, started, payload)
            raise

        self._notify(name, started, payload)
        return result

    __call__ = instrument

    def _notify(self, name: str, started: float, payload: Dict[str, Any]):
        finished = time.time()
        for callback in self._matching(name):
            try:
                callback(name, started, finished, payload)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed for {name}")

    def _matching(self, name: str) -> List[Subscriber]:
        with self._lock:
            subscribers = list(self._subscribers)

        matched = []
        for pattern, callback in subscribers:
            if isinstance(pattern, str):
                if pattern == name:
                    matched.append(callback)
            elif pattern.search(name):
                matched.append(callback)
        return matched


# ============================================================================
# LOGGING INSTRUMENTER
# ============================================================================


class LoggingInstrumenter:
    """Log every cache operation with its duration."""

    def __init__(self, log: logging.Logger = logger, level: int = logging.DEBUG):
        self.log = log
        self.level = level

    def __call__(
        self, name: str, payload: Dict[str, Any], operation: Callable[[], T]
    ) -> T:
        start_time = time.perf_counter()
        try:
            result = operation()
        except Exception as e:
            duration = (time.perf_counter() - start_time) * 1000
            self.log.warning(
                f"{name} failed after {duration:.2f}ms: key={payload.get('key')!r} "
                f"error={type(e).__name__}: {e}"
            )
            raise

        duration = (time.perf_counter() - start_time) * 1000
        self.log.log(self.level, f"{name} key={payload.get('key')!r} ({duration:.2f}ms)")
        return result


# ============================================================================
# COMPOSITION
# ============================================================================


def null_instrumenter(name: str, payload: Dict[str, Any], operation: Callable[[], T]) -> T:
    """Instrumenter that only runs the operation."""
    return operation()


def chain(*instrumenters: Instrumenter) -> Instrumenter:
    """
    Compose instrumenters so each wraps the next.

    The first instrumenter is outermost. The operation still runs once.

    Example:
        cache = Cache(url, instrumenter=chain(TracingInstrumenter(), LoggingInstrumenter()))
    """
    if not instrumenters:
        return null_instrumenter

    outer, rest = instrumenters[0], instrumenters[1:]
    if not rest:
        return outer

    inner = chain(*rest)

    def chained(name: str, payload: Dict[str, Any], operation: Callable[[], T]) -> T:
        return outer(name, payload, lambda: inner(name, payload, operation))

    return chained
