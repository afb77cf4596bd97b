# kvcache/cache/__init__.py
"""
Caching layer for kvcache.

Features:
- Redis cache façade with namespacing and expiration
- Bounded redis-py connection pool with blocking checkout
- Threshold-gated gzip compression
- Composite key expansion
- Function result caching decorator
"""

from .compressor import Compressor, is_compressed
from .decorators import cached
from .expanders import expand_key, namespace_key
from .redis_cache import Cache
from .serializers import JsonSerializer, PassthroughSerializer

__all__ = [
    "Cache",
    "Compressor",
    "is_compressed",
    "JsonSerializer",
    "PassthroughSerializer",
    "cached",
    "expand_key",
    "namespace_key",
]
