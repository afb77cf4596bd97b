# kvcache/cache/expanders.py
"""
Key expansion and namespacing.

Turns whatever the caller passes as a key into the string stored in Redis:

    expand_key(["user", 42, {"page": 2}])  ->  "user/42/page=2"
    namespace_key("user/42", "app")        ->  "app:user/42"
"""

import re
from typing import Any, Optional

from kvcache.config import NAMESPACE_SEPARATOR
from kvcache.errors import ConfigurationError, InvalidKeyError

KEY_JOINER = "/"

GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def expand_key(key: Any) -> str:
    """
    Expand a composite key into a deterministic string.

    Args:
        key: String, object with a ``cache_key`` attribute or method,
             list/tuple of keys, dict of key parts, or any value with a
             stable ``str()``

    Returns:
        Expanded key string

    Raises:
        InvalidKeyError: If the key is None or expands to an empty string

    Example:
        >>> expand_key({"season": "2023-24", "player": "james"})
        'player=james/season=2023-24'
    """
    if key is None:
        raise InvalidKeyError(key, "key may not be None")

    if isinstance(key, str):
        expanded = key
    elif isinstance(key, bytes):
        expanded = key.decode("utf-8")
    elif hasattr(key, "cache_key"):
        cache_key = key.cache_key
        expanded = expand_key(cache_key() if callable(cache_key) else cache_key)
    elif isinstance(key, (list, tuple)):
        expanded = KEY_JOINER.join(expand_key(part) for part in key)
    elif isinstance(key, dict):
        # Sort for deterministic keys regardless of insertion order
        expanded = KEY_JOINER.join(
            f"{name}={expand_key(value)}" for name, value in sorted(key.items())
        )
    else:
        expanded = str(key)

    if not expanded:
        raise InvalidKeyError(key, "key expands to an empty string")

    return expanded


def namespace_key(key: Any, namespace: Optional[str] = None) -> str:
    """
    Prefix an expanded key with a namespace.

    Namespaces may not contain the separator, so the first separator in a
    stored key always marks where the namespace ends and two distinct
    (namespace, key) pairs can never produce the same string.

    Raises:
        ConfigurationError: If the namespace contains the separator
    """
    expanded = expand_key(key)

    if not namespace:
        return expanded

    if NAMESPACE_SEPARATOR in namespace:
        raise ConfigurationError(
            f"namespace may not contain '{NAMESPACE_SEPARATOR}'", "namespace", namespace
        )

    return f"{namespace}{NAMESPACE_SEPARATOR}{expanded}"


def hashable_key(key: Any) -> Any:
    """
    Return a hashable stand-in for a raw key, for use as a result-dict key.

    Hashable keys come back unchanged. Lists become tuples and dicts become
    tuples of sorted ``(name, value)`` pairs, recursively:

        hashable_key(["player", 23])         ->  ("player", 23)
        hashable_key({"b": [1], "a": 2})     ->  (("a", 2), ("b", (1,)))
    """
    if isinstance(key, (list, tuple)):
        return tuple(hashable_key(part) for part in key)
    if isinstance(key, dict):
        return tuple((name, hashable_key(value)) for name, value in sorted(key.items()))
    return key


def escape_pattern(text: str) -> str:
    """Escape Redis glob metacharacters so ``text`` only matches itself."""
    return GLOB_SPECIAL.sub(r"\\\1", text)
