# kvcache/cache/redis_cache.py
"""
Redis cache façade for kvcache.

Provides application-level caching on top of a Redis-compatible store:
- Namespaced keys
- Default and per-call expiration
- Threshold-gated gzip compression
- Multi-key read and fetch in single round trips
- Pooled connections with bounded checkout
- Pluggable instrumentation around every operation

Every public operation follows the same path: resolve options, build the
namespaced key(s), enter the instrumentation span, run the store command(s)
on connections from a ``redis.BlockingConnectionPool`` and decode the result.
"""

import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

import redis

from kvcache.cache.compressor import Compressor
from kvcache.cache.expanders import escape_pattern, hashable_key, namespace_key
from kvcache.cache.serializers import JsonSerializer
from kvcache.config import DEFAULT_URL, CacheConfig, to_seconds, validate_url
from kvcache.errors import ConfigurationError, PoolTimeoutError
from kvcache.observability.notifications import Instrumenter, Notifications

logger = logging.getLogger(__name__)

T = TypeVar("T")

EVENT_PREFIX = "cache_"

# Options accepted by individual calls
CALL_OPTIONS = frozenset({"namespace", "expires_in", "force"})

# Keys removed per DEL while deleting by pattern
DELETE_BATCH_SIZE = 1000

# Message of the ConnectionError BlockingConnectionPool raises when its
# checkout timeout elapses
POOL_EXHAUSTED = "No connection available."


class Cache:
    """
    Redis-backed cache with namespacing, expiration and compression.

    Example:
        cache = Cache("redis://localhost:6379/0", namespace="app", expires_in=3600)
        cache.write("greeting", {"text": "hello"})
        cache.fetch("report", lambda key: build_report(key))
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        namespace: Optional[str] = None,
        expires_in: Optional[Any] = None,
        compress: bool = False,
        compression_threshold: int = 1024,
        pool_size: int = 5,
        pool_timeout: float = 5.0,
        instrumenter: Optional[Union[Instrumenter, Notifications]] = None,
        serializer: Optional[Any] = None,
        client_class: Type[redis.Redis] = redis.Redis,
        connection_options: Optional[Mapping[str, Any]] = None,
    ):
        """
        Initialize the cache and its connection pool.

        No connection is opened until the first operation.

        Args:
            url: Redis URL (redis://, rediss:// or unix://)
            namespace: Prefix used to namespace entries
            expires_in: Seconds (or timedelta) until an entry expires
            compress: Enable automatic compression
            compression_threshold: Serialized size in bytes at which values
                are compressed
            pool_size: Maximum number of pooled connections
            pool_timeout: Seconds to wait for a pooled connection
            instrumenter: Callable ``(name, payload, operation)`` or an object
                with an ``instrument`` method (defaults to a private
                ``Notifications`` hub)
            serializer: Object with ``dumps``/``loads`` (defaults to JSON)
            client_class: Redis client class bound to the pool
            connection_options: Extra keyword arguments for the pool's
                connections (``socket_timeout``, ``connection_class``, ...)

        Raises:
            ConfigurationError: If the URL or any option is invalid
        """
        self.url = validate_url(url)
        self.config = CacheConfig.build(
            namespace=namespace,
            expires_in=expires_in,
            compress=compress,
            compression_threshold=compression_threshold,
            pool_size=pool_size,
            pool_timeout=pool_timeout,
        )

        self.compressor = Compressor(threshold=self.config.compression_threshold)
        self.serializer = serializer or JsonSerializer()

        self.notifications = instrumenter or Notifications()
        self.instrument: Instrumenter = getattr(
            self.notifications, "instrument", self.notifications
        )

        # Bounded pool: checkout blocks up to pool_timeout, then fails
        self.pool = redis.BlockingConnectionPool.from_url(
            self.url,
            max_connections=self.config.pool_size,
            timeout=self.config.pool_timeout,
            **dict(connection_options or {}),
        )
        self.client = client_class(connection_pool=self.pool)

        logger.info(
            f"Cache initialized: {self._redacted_url()} "
            f"(namespace={self.namespace}, compress={self.compress}, "
            f"pool_size={self.config.pool_size})"
        )

    @classmethod
    def from_env(cls, prefix: str = "KVCACHE_", **kwargs: Any) -> "Cache":
        """
        Build a cache from ``KVCACHE_*`` environment variables.

        Keyword arguments (instrumenter, serializer, connection_options) are
        passed through to the constructor.
        """
        url, config = CacheConfig.from_env(prefix)
        return cls(url, **config.model_dump(), **kwargs)

    # ========================================================================
    # CONFIGURATION ACCESSORS
    # ========================================================================

    @property
    def namespace(self) -> Optional[str]:
        return self.config.namespace

    @property
    def expires_in(self) -> Optional[int]:
        return self.config.expires_in

    @property
    def compress(self) -> bool:
        return self.config.compress

    @property
    def compression_threshold(self) -> int:
        return self.config.compression_threshold

    # ========================================================================
    # SINGLE-KEY OPERATIONS
    # ========================================================================

    def read(self, key: Any, **options: Any) -> Any:
        """
        Read a value from the cache.

        Returns:
            The stored value, or None when the key does not exist
        """
        namespaced = self._namespaced_key(key, self._merged_options(options))

        return self._invoke("read", key, lambda store: self._decoded(store.get(namespaced)))

    def write(self, key: Any, value: Any, **options: Any) -> bool:
        """
        Write a value, with SETEX when an expiration applies and SET otherwise.

        Args:
            key: Raw key
            value: Value to store (must be accepted by the serializer)
            **options: namespace, expires_in

        Returns:
            The store's acknowledgment
        """
        options = self._merged_options(options)
        namespaced = self._namespaced_key(key, options)
        expiration = options["expires_in"]
        data = self._encoded(value)

        def command(store: redis.Redis) -> bool:
            if expiration:
                return store.setex(namespaced, expiration, data)
            return store.set(namespaced, data)

        return self._invoke("write", key, command)

    def delete(self, key: Any, **options: Any) -> int:
        """Delete a key, returning the number of keys removed."""
        namespaced = self._namespaced_key(key, self._merged_options(options))

        return self._invoke("delete", key, lambda store: store.delete(namespaced))

    def exist(self, key: Any, **options: Any) -> bool:
        """Check whether a key exists."""
        namespaced = self._namespaced_key(key, self._merged_options(options))

        return self._invoke("exist", key, lambda store: bool(store.exists(namespaced)))

    def fetch(
        self, key: Any, compute: Optional[Callable[[Any], Any]] = None, **options: Any
    ) -> Any:
        """
        Read a value, computing and writing it on a miss.

        Only None is a miss: cached falsy values such as 0 or "" are returned
        without calling ``compute``. A computed None is returned but not
        written, since it would read back as a miss anyway.

        Args:
            key: Raw key, also passed to ``compute``
            compute: Callable producing the value for a missing key
            **options: namespace, expires_in, force (skip the read)

        Example:
            cache.fetch("user:42", lambda key: load_user(42), expires_in=60)
        """
        force = options.pop("force", False)
        value = None if force else self.read(key, **options)

        if value is None and compute is not None:
            value = compute(key)
            if value is not None:
                self.write(key, value, **options)

        return value

    def increment(self, key: Any, amount: int = 1, **options: Any) -> int:
        """
        Atomically increment a counter, starting from 0 for a missing key.

        Counters bypass serialization and compression.
        """
        namespaced = self._namespaced_key(key, self._merged_options(options))

        return self._invoke("increment", key, lambda store: store.incrby(namespaced, amount))

    def decrement(self, key: Any, amount: int = 1, **options: Any) -> int:
        """Atomically decrement a counter, starting from 0 for a missing key."""
        namespaced = self._namespaced_key(key, self._merged_options(options))

        return self._invoke("decrement", key, lambda store: store.decrby(namespaced, amount))

    # ========================================================================
    # MULTI-KEY OPERATIONS
    # ========================================================================

    def read_multi(
        self, keys: Iterable[Any], options: Optional[Mapping[str, Any]] = None
    ) -> Dict[Any, Any]:
        """
        Read several keys with a single MGET.

        Results are keyed by the raw key. Composite keys that cannot be dict
        keys are converted with ``hashable_key``: ``["player", 23]`` comes
        back as ``("player", 23)``.

        Returns:
            Mapping of each raw key to its value (None for misses), in input order

        Example:
            >>> cache.read_multi(["a", "b", "c"])
            {'a': None, 'b': 'value', 'c': None}
        """
        keys = list(keys)
        merged = self._merged_options(options)
        namespaced = [self._namespaced_key(key, merged) for key in keys]

        def command(store: redis.Redis) -> Dict[Any, Any]:
            values = store.mget(namespaced) if namespaced else []
            return {
                hashable_key(key): self._decoded(value) for key, value in zip(keys, values)
            }

        return self._invoke("read_multi", keys, command)

    def fetch_multi(
        self,
        keys: Iterable[Any],
        compute: Callable[[Any], Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Dict[Any, Any]:
        """
        Read several keys and fill in the misses.

        Hits come from one MGET. Each miss is computed with ``compute(key)``
        and every computed value is written in one pipelined round trip.
        Pipelined commands run in order but are not a transaction: if one
        fails, the writes before it stay committed.

        Returns:
            Mapping of each raw key to its cached or computed value, in input order

        Example:
            cache.fetch_multi(["alpha", "beta"], lambda key: f"{key}-was-missing")
        """
        keys = list(keys)
        options = dict(options or {})
        options.pop("force", None)
        results = self.read_multi(keys, options)
        merged = self._merged_options(options)

        def fill() -> Dict[Any, Any]:
            # Raw keys reach compute, results are keyed by their hashable form
            missing = {
                hashable_key(key): key for key in keys if results[hashable_key(key)] is None
            }
            computed = [(key, compute(key)) for key in missing.values()]
            writable = [(key, value) for key, value in computed if value is not None]

            if writable:
                self._checked_out(lambda store: self._pipelined_write(store, writable, merged))

            results.update((hashable_key(key), value) for key, value in computed)
            return results

        return self._instrumented("fetch_multi", keys, fill)

    def write_multi(
        self, mapping: Mapping[Any, Any], options: Optional[Mapping[str, Any]] = None
    ) -> bool:
        """Write several values in one pipelined round trip."""
        entries = list(mapping.items())
        merged = self._merged_options(options)

        def command(store: redis.Redis) -> bool:
            replies = self._pipelined_write(store, entries, merged) if entries else []
            return all(replies)

        return self._invoke("write_multi", [key for key, _ in entries], command)

    def delete_matched(self, pattern: str, **options: Any) -> int:
        """
        Delete every key in the namespace matching a glob pattern.

        The pattern applies to the key part only. Glob characters in the
        namespace are escaped, so ``namespace="a*"`` never reaches keys
        stored under ``ab``. Keys are found with SCAN rather than KEYS so
        large databases are not blocked.

        Returns:
            Number of keys deleted
        """
        namespace = self._merged_options(options)["namespace"]
        match = self._namespaced_key(pattern, {"namespace": namespace})
        if namespace:
            match = f"{escape_pattern(namespace)}{match[len(namespace):]}"

        def command(store: redis.Redis) -> int:
            deleted = 0
            batch: List[Any] = []
            for found in store.scan_iter(match=match, count=DELETE_BATCH_SIZE):
                batch.append(found)
                if len(batch) >= DELETE_BATCH_SIZE:
                    deleted += store.delete(*batch)
                    batch = []
            if batch:
                deleted += store.delete(*batch)
            return deleted

        return self._invoke("delete_matched", pattern, command)

    def clear(self) -> bool:
        """
        Flush the entire logical database.

        This ignores namespaces: every key in the database is removed, not
        just this cache's entries.
        """
        logger.info(f"Flushing database {self._redacted_url()}")
        return self._invoke("clear", "*", lambda store: store.flushdb())

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def ping(self) -> bool:
        """Check if the store is reachable."""
        try:
            return bool(self._checked_out(lambda store: store.ping()))
        except (redis.RedisError, PoolTimeoutError) as e:
            logger.error(f"Store ping failed: {e}")
            return False

    def close(self):
        """Disconnect every pooled connection."""
        self.pool.disconnect()

    def __enter__(self) -> "Cache":
        return self

    def __exit__(self, *exc_info: Any):
        self.close()

    def __repr__(self) -> str:
        return (
            f"Cache(url={self._redacted_url()!r}, namespace={self.namespace!r}, "
            f"expires_in={self.expires_in!r}, compress={self.compress!r})"
        )

    # ========================================================================
    # OPERATION INVOKER
    # ========================================================================

    def _instrumented(self, operation: str, key: Any, block: Callable[[], T]) -> T:
        name = f"{EVENT_PREFIX}{operation}"
        logger.debug(f"{name} key={key!r}")
        return self.instrument(name, {"key": key}, block)

    def _invoke(self, operation: str, key: Any, command: Callable[[Any], T]) -> T:
        """Run store commands on the pooled client inside an instrumentation span."""
        return self._instrumented(operation, key, lambda: self._checked_out(command))

    def _checked_out(self, command: Callable[[Any], T]) -> T:
        """
        Run store commands against the pool.

        Each command (or pipeline) checks a connection out of the blocking
        pool and returns it when done, on success or failure. A checkout that
        outlasts ``pool_timeout`` raises PoolTimeoutError.
        """
        try:
            return command(self.client)
        except redis.ConnectionError as e:
            if str(e) != POOL_EXHAUSTED:
                raise
            raise PoolTimeoutError(self.config.pool_size, self.config.pool_timeout) from e

    def _pipelined_write(
        self, store: Any, entries: Iterable[Tuple[Any, Any]], options: Dict[str, Any]
    ) -> List[Any]:
        expiration = options["expires_in"]
        encoded: List[Tuple[str, bytes]] = [
            (self._namespaced_key(key, options), self._encoded(value))
            for key, value in entries
        ]

        pipe = store.pipeline(transaction=False)
        for namespaced, data in encoded:
            if expiration:
                pipe.setex(namespaced, expiration, data)
            else:
                pipe.set(namespaced, data)
        return pipe.execute()

    # ========================================================================
    # OPTIONS, KEYS AND VALUES
    # ========================================================================

    def _merged_options(self, options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Overlay per-call options on the cache defaults."""
        merged = dict(options or {})

        unknown = set(merged) - CALL_OPTIONS
        if unknown:
            raise ConfigurationError(
                f"Unknown cache option(s): {', '.join(sorted(unknown))}",
                option=sorted(unknown)[0],
            )

        if merged.get("namespace") is None:
            merged["namespace"] = self.namespace

        expiration = to_seconds(merged.get("expires_in"))
        if expiration is None:
            expiration = self.expires_in
        elif isinstance(expiration, bool) or not isinstance(expiration, int) or expiration <= 0:
            raise ConfigurationError(
                "expires_in must be a positive number of seconds", "expires_in", expiration
            )
        merged["expires_in"] = expiration

        return merged

    def _namespaced_key(self, key: Any, options: Mapping[str, Any]) -> str:
        return namespace_key(key, options["namespace"])

    def _encoded(self, value: Any) -> bytes:
        data = self.serializer.dumps(value)
        if self.compress:
            return self.compressor.compress(data)
        return data

    def _decoded(self, data: Optional[bytes]) -> Any:
        if data is None:
            return None
        if self.compress:
            data = self.compressor.decompress(data)
        return self.serializer.loads(data)

    def _redacted_url(self) -> str:
        # Hide credentials embedded in the URL
        scheme, sep, rest = self.url.partition("://")
        if "@" in rest:
            rest = "***@" + rest.rsplit("@", 1)[1]
        return f"{scheme}{sep}{rest}"
