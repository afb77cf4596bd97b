# kvcache/errors.py
"""
Error taxonomy for kvcache.

Provides:
1. Error code constants for consistent error handling
2. Custom exception hierarchy for the cache's own failure modes
3. StoreCommandError, the Redis client's base error, re-exported so callers
   can catch store failures without importing redis directly

Store failures are never wrapped: a network error or a WRONGTYPE reply
reaches the caller exactly as redis-py raised it.
"""

from typing import Any, Dict, Optional

from redis.exceptions import RedisError

# ============================================================================
# ERROR CODES
# ============================================================================


class ErrorCode:
    """Standard error codes for kvcache."""

    # Construction-time errors
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    INVALID_KEY = "INVALID_KEY"

    # Runtime errors
    POOL_TIMEOUT = "POOL_TIMEOUT"
    COMPRESSION_ERROR = "COMPRESSION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# ============================================================================
# EXCEPTION HIERARCHY
# ============================================================================


class KVCacheError(Exception):
    """Base exception for all kvcache errors."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for logging or API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(KVCacheError):
    """Raised when the connection URL or a cache option is invalid."""

    def __init__(self, message: str, option: Optional[str] = None, value: Any = None):
        super().__init__(
            message=message,
            code=ErrorCode.INVALID_CONFIGURATION,
            details={"option": option, "value": repr(value)},
        )


class InvalidKeyError(KVCacheError):
    """Raised when a key cannot be expanded into a store key."""

    def __init__(self, key: Any, reason: str):
        super().__init__(
            message=f"Invalid cache key {key!r}: {reason}",
            code=ErrorCode.INVALID_KEY,
            details={"key": repr(key), "reason": reason},
        )


class PoolTimeoutError(KVCacheError):
    """Raised when no pooled connection becomes available in time."""

    def __init__(self, size: int, timeout: float):
        super().__init__(
            message=(
                f"Timed out after {timeout}s waiting for a connection "
                f"(pool size {size})"
            ),
            code=ErrorCode.POOL_TIMEOUT,
            details={"pool_size": size, "timeout": timeout},
        )


class CompressionError(KVCacheError):
    """Raised when a payload marked as compressed cannot be inflated."""

    def __init__(self, reason: str, size: int):
        super().__init__(
            message=f"Malformed compressed payload ({size} bytes): {reason}",
            code=ErrorCode.COMPRESSION_ERROR,
            details={"size": size, "reason": reason},
        )


# Failures reported by the store client propagate unchanged.
StoreCommandError = RedisError
