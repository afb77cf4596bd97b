# kvcache/config.py
"""
Cache configuration for kvcache.

Validates the options accepted by ``Cache`` and loads them from the
environment:

    KVCACHE_URL                    redis://localhost:6379/0
    KVCACHE_NAMESPACE              (unset)
    KVCACHE_EXPIRES_IN             (unset, seconds)
    KVCACHE_COMPRESS               false
    KVCACHE_COMPRESSION_THRESHOLD  1024
    KVCACHE_POOL_SIZE              5
    KVCACHE_POOL_TIMEOUT           5
"""

import logging
import os
from datetime import timedelta
from typing import Any, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from redis.connection import parse_url

from kvcache.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_URL = "redis://localhost:6379/0"
NAMESPACE_SEPARATOR = ":"


# ============================================================================
# CONFIGURATION MODEL
# ============================================================================


class CacheConfig(BaseModel):
    """
    Immutable cache-level configuration.

    Per-call options may override ``namespace`` and ``expires_in``; every
    other field is fixed for the lifetime of the cache.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    namespace: Optional[str] = Field(
        None, description="Prefix used to namespace entries", min_length=1
    )
    expires_in: Optional[int] = Field(
        None, description="Seconds until an entry expires", gt=0
    )
    compress: bool = Field(False, description="Enable automatic compression")
    compression_threshold: int = Field(
        1024, description="Serialized size in bytes at which values are compressed", ge=0
    )
    pool_size: int = Field(5, description="Maximum pooled connections", ge=1)
    pool_timeout: float = Field(
        5.0, description="Seconds to wait for a pooled connection", gt=0
    )

    @field_validator("namespace")
    @classmethod
    def _check_namespace(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and NAMESPACE_SEPARATOR in value:
            raise ValueError(f"namespace may not contain '{NAMESPACE_SEPARATOR}'")
        return value

    @field_validator("expires_in", mode="before")
    @classmethod
    def _coerce_expiration(cls, value: Any) -> Any:
        return to_seconds(value)

    @classmethod
    def build(cls, **options: Any) -> "CacheConfig":
        """Validate options, raising ConfigurationError instead of ValidationError."""
        try:
            return cls(**options)
        except ValidationError as e:
            error = e.errors()[0]
            option = ".".join(str(part) for part in error["loc"]) or None
            raise ConfigurationError(
                f"Invalid cache option '{option}': {error['msg']}",
                option=option,
                value=error.get("input"),
            ) from e

    @classmethod
    def from_env(cls, prefix: str = "KVCACHE_") -> Tuple[str, "CacheConfig"]:
        """Load the store URL and configuration from environment variables."""
        url = os.getenv(f"{prefix}URL", DEFAULT_URL)
        options: dict = {
            "compress": os.getenv(f"{prefix}COMPRESS", "false").lower() == "true",
            "compression_threshold": os.getenv(f"{prefix}COMPRESSION_THRESHOLD", "1024"),
            "pool_size": os.getenv(f"{prefix}POOL_SIZE", "5"),
            "pool_timeout": os.getenv(f"{prefix}POOL_TIMEOUT", "5"),
        }

        namespace = os.getenv(f"{prefix}NAMESPACE")
        if namespace:
            options["namespace"] = namespace

        expires_in = os.getenv(f"{prefix}EXPIRES_IN")
        if expires_in:
            options["expires_in"] = expires_in

        config = cls.build(**options)
        logger.info(
            f"Cache config from env: url={url}, namespace={config.namespace}, "
            f"compress={config.compress}, pool_size={config.pool_size}"
        )
        return url, config


# ============================================================================
# HELPERS
# ============================================================================


def to_seconds(value: Union[int, float, str, timedelta, None]) -> Any:
    """Normalize an expiration to whole seconds; other input is left to validation."""
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return value


def validate_url(url: Any) -> str:
    """
    Check that a store URL is well formed.

    Parsing is delegated to redis-py so the cache accepts exactly the URLs
    the client accepts (redis://, rediss://, unix://).

    Raises:
        ConfigurationError: If the URL is missing or malformed
    """
    if not isinstance(url, str) or not url:
        raise ConfigurationError("Store URL must be a non-empty string", "url", url)

    try:
        parse_url(url)
    except ValueError as e:
        raise ConfigurationError(f"Malformed store URL: {e}", "url", url) from e

    return url
