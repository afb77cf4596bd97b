"""
Tests for compression: the Compressor itself and the cache's gating policy.
"""

import gzip

import pytest

from kvcache import CompressionError, Compressor, PassthroughSerializer
from kvcache.cache.compressor import GZIP_MAGIC, is_compressed


# ============================================================================
# COMPRESSOR
# ============================================================================


def test_small_payloads_not_compressed():
    compressor = Compressor(threshold=1024)
    data = b"x" * 1023

    assert compressor.compress(data) == data


def test_payload_at_threshold_compressed():
    compressor = Compressor(threshold=1024)
    data = b"x" * 1024

    compressed = compressor.compress(data)

    assert is_compressed(compressed)
    assert len(compressed) < len(data)
    assert compressor.decompress(compressed) == data


def test_decompress_passes_raw_payloads_through():
    compressor = Compressor()

    assert compressor.decompress(b"plain value") == b"plain value"
    assert compressor.decompress(b"") == b""
    assert compressor.decompress(b"\x1f") == b"\x1f"


@pytest.mark.parametrize(
    "payload",
    [
        GZIP_MAGIC,
        GZIP_MAGIC + b"not really gzip",
        gzip.compress(b"truncated payload" * 100)[:20],
    ],
)
def test_decompress_rejects_malformed_marked_payloads(payload):
    with pytest.raises(CompressionError) as exc_info:
        Compressor().decompress(payload)

    assert exc_info.value.code == "COMPRESSION_ERROR"
    assert exc_info.value.details["size"] == len(payload)


# ============================================================================
# CACHE GATING
# ============================================================================


def test_large_values_stored_compressed(make_cache, store):
    cache = make_cache(compress=True, compression_threshold=64)
    value = {"stats": "x" * 500}

    cache.write("large", value)

    assert store.get("large").startswith(GZIP_MAGIC)
    assert cache.read("large") == value


def test_small_values_stored_raw_with_compression_enabled(make_cache, store):
    cache = make_cache(compress=True, compression_threshold=64)

    cache.write("small", "short")

    assert store.get("small") == b'"short"'
    assert cache.read("small") == "short"


def test_compression_disabled_stores_raw(make_cache, store):
    cache = make_cache(compression_threshold=0)
    value = "y" * 5000

    cache.write("large", value)

    assert not is_compressed(store.get("large"))
    assert cache.read("large") == value


def test_read_multi_decompresses(make_cache):
    cache = make_cache(compress=True, compression_threshold=16)
    cache.write("big", "z" * 200)
    cache.write("tiny", 1)

    assert cache.read_multi(["big", "tiny", "none"]) == {
        "big": "z" * 200,
        "tiny": 1,
        "none": None,
    }


def test_raw_value_from_other_client_reads_through(make_cache, store):
    cache = make_cache(compress=True, serializer=PassthroughSerializer())
    store.set("legacy", b"written elsewhere")

    assert cache.read("legacy") == b"written elsewhere"


def test_marked_garbage_raises_on_read(make_cache, store):
    cache = make_cache(
        compress=True, serializer=PassthroughSerializer(), pool_size=1, pool_timeout=0.05
    )
    store.set("corrupt", GZIP_MAGIC + b"garbage")

    with pytest.raises(CompressionError):
        cache.read("corrupt")

    with pytest.raises(CompressionError):
        cache.fetch("corrupt", lambda key: b"replacement")

    assert cache.exist("corrupt") is True


def test_marked_payload_returned_untouched_when_compression_disabled(make_cache, store):
    cache = make_cache(serializer=PassthroughSerializer())
    store.set("looks-compressed", GZIP_MAGIC + b"garbage")

    assert cache.read("looks-compressed") == GZIP_MAGIC + b"garbage"


def test_passthrough_serializer_with_compression(make_cache, store):
    cache = make_cache(
        compress=True, compression_threshold=10, serializer=PassthroughSerializer()
    )
    cache.write("text", "a" * 100)

    assert is_compressed(store.get("text"))
    assert cache.read("text") == b"a" * 100
