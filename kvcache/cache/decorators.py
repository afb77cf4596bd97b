# kvcache/cache/decorators.py
"""
Function result caching on top of ``Cache``.
"""

import inspect
import logging
from functools import wraps
from typing import Any, Callable, List, Optional

from kvcache.cache.expanders import expand_key
from kvcache.cache.redis_cache import Cache

logger = logging.getLogger(__name__)


def default_key(func: Callable, args: tuple, kwargs: dict) -> str:
    """
    Build a key from the function's qualified name and its arguments.

    Keyword arguments expand in sorted order, so call order does not matter:
    ``stats(23, season="2023-24")`` keys as
    ``"module.stats/23/season=2023-24"``.
    """
    parts: List[Any] = [f"{func.__module__}.{func.__qualname__}", *args]
    if kwargs:
        parts.append(kwargs)
    return expand_key(parts)


def cached(cache: Cache, key_fn: Optional[Callable] = None, **options: Any):
    """
    Decorator to cache function results.

    None results are returned but never cached, so the function runs again
    on the next call.

    Args:
        cache: Cache to store results in
        key_fn: Optional custom key generation function, called with the
                decorated function's arguments
        **options: Per-call cache options (namespace, expires_in)

    Example:
        @cached(cache, expires_in=3600)
        def player_stats(player_id: int, season: str):
            # ... expensive API call
            return stats
    """

    def decorator(func: Callable):
        def make_key(args: tuple, kwargs: dict) -> Any:
            if key_fn:
                return key_fn(*args, **kwargs)
            return default_key(func, args, kwargs)

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            key = make_key(args, kwargs)

            cached_value = cache.read(key, **options)
            if cached_value is not None:
                logger.debug(f"Cache hit for {func.__name__}")
                return cached_value

            logger.debug(f"Cache miss for {func.__name__}, calling function")
            result = await func(*args, **kwargs)

            if result is not None:
                cache.write(key, result, **options)

            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            key = make_key(args, kwargs)
            return cache.fetch(key, lambda _: func(*args, **kwargs), **options)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
