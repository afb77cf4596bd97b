# kvcache/cache/serializers.py
"""
Value serializers.

A serializer turns a Python value into the bytes handed to the compressor
and back. JSON is the default: it is readable from any client and reads
counters maintained by INCR/DECR back as plain integers.
"""

import json
from typing import Any, Optional, Union


class JsonSerializer:
    """UTF-8 JSON serializer."""

    def dumps(self, value: Any) -> bytes:
        return json.dumps(value, separators=(",", ":")).encode("utf-8")

    def loads(self, data: Optional[bytes]) -> Any:
        if data is None:
            return None
        return json.loads(data.decode("utf-8"))


class PassthroughSerializer:
    """Store bytes and strings untouched; reads always return bytes."""

    def dumps(self, value: Union[bytes, str]) -> bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("utf-8")
        raise TypeError(
            f"PassthroughSerializer only stores bytes or str, got {type(value).__name__}"
        )

    def loads(self, data: Optional[bytes]) -> Optional[bytes]:
        return data
