"""
Payload compression compatible with Qt's qCompress()/qUncompress().

A compressed payload is a 4-byte big-endian uncompressed length followed by
a zlib stream. Empty input compresses to a bare header of four zero bytes.
Like qUncompress(), decompression treats the length only as a size hint.
"""

import struct
import zlib
import logging

from .config import COMPRESSION_HEADER_SIZE, COMPRESSION_LEVEL
from .errors import CorruptDataError

logger = logging.getLogger(__name__)

EMPTY_HEADER = bytes(COMPRESSION_HEADER_SIZE)


def qcompress(data: bytes, level: int = COMPRESSION_LEVEL) -> bytes:
    """Compress ``data`` with a size prefix."""
    if not data:
        return EMPTY_HEADER
    return struct.pack('>I', len(data)) + zlib.compress(bytes(data), level)


def quncompress(data: bytes) -> bytes:
    """
    Inverse of qcompress().

    Raises:
        CorruptDataError: On a short header or a broken zlib stream.
    """
    if len(data) < COMPRESSION_HEADER_SIZE:
        raise CorruptDataError(f"Compressed data is only {len(data)} bytes long")
    if len(data) == COMPRESSION_HEADER_SIZE:
        if bytes(data) != EMPTY_HEADER:
            raise CorruptDataError("Compressed data has a size header but no stream")
        return b""
    expected = struct.unpack('>I', bytes(data[:COMPRESSION_HEADER_SIZE]))[0]
    try:
        plain = zlib.decompress(bytes(data[COMPRESSION_HEADER_SIZE:]))
    except zlib.error as e:
        raise CorruptDataError(f"Cannot decompress payload: {e}") from e
    if len(plain) != expected:
        logger.warning(f"Decompressed {len(plain)} bytes, header announced {expected}")
    return plain
