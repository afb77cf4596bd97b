# kvcache/cache/compressor.py
"""
Threshold-gated gzip compression for cached payloads.

Compressed payloads are plain gzip streams, so the gzip magic number doubles
as the compression marker. The cache never tracks which keys were
compressed: every read goes through ``decompress``, which inflates marked
payloads and hands everything else back untouched.
"""

import gzip
import logging
import zlib

from kvcache.errors import CompressionError

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


def is_compressed(data: bytes) -> bool:
    """Check whether a payload carries the gzip magic number."""
    return data[:2] == GZIP_MAGIC


class Compressor:
    """
    Compress payloads at or above a size threshold.

    Payloads below the threshold are returned as-is, so small values stay
    readable in redis-cli and skip the gzip header overhead.
    """

    def __init__(self, threshold: int = 1024, level: int = 6):
        """
        Args:
            threshold: Minimum payload size in bytes for compression
            level: gzip compression level (1-9)
        """
        self.threshold = threshold
        self.level = level

    def compress(self, data: bytes) -> bytes:
        if len(data) < self.threshold:
            return data

        compressed = gzip.compress(data, compresslevel=self.level)
        logger.debug(f"Compressed payload {len(data)} -> {len(compressed)} bytes")
        return compressed

    def decompress(self, data: bytes) -> bytes:
        """
        Inflate a compressed payload, passing raw payloads through.

        Raises:
            CompressionError: If the payload carries the gzip marker but is
                not a complete gzip stream
        """
        if not is_compressed(data):
            return data

        try:
            return gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise CompressionError(str(e) or type(e).__name__, len(data)) from e
