"""kvcache: namespaced, compressed, instrumented caching on Redis."""

from kvcache.cache import (
    Cache,
    Compressor,
    JsonSerializer,
    PassthroughSerializer,
    cached,
    expand_key,
    namespace_key,
)
from kvcache.config import CacheConfig
from kvcache.errors import (
    CompressionError,
    ConfigurationError,
    ErrorCode,
    InvalidKeyError,
    KVCacheError,
    PoolTimeoutError,
    StoreCommandError,
)
from kvcache.observability import Notifications

__all__ = [
    "Cache",
    "CacheConfig",
    "Compressor",
    "JsonSerializer",
    "PassthroughSerializer",
    "Notifications",
    "cached",
    "expand_key",
    "namespace_key",
    "ErrorCode",
    "KVCacheError",
    "ConfigurationError",
    "InvalidKeyError",
    "PoolTimeoutError",
    "CompressionError",
    "StoreCommandError",
]

__version__ = "0.1.0"
