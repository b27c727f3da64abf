"""
PNG chunk-stream utilities.

Walks the PNG chunk format without decoding payloads::

    +----------+----------+-----------------+---------+
    | length   | type     | payload         | CRC-32  |
    | 4 B (BE) | 4 B ASCII| ``length`` bytes| 4 B (BE)|
    +----------+----------+-----------------+---------+

The CRC covers ``type || payload`` only.  Used to detect animated PNGs
(an ``acTL`` chunk ahead of the first ``IDAT``) and to patch the loop
count of an encoder-produced APNG in place.

Reference: https://wiki.mozilla.org/APNG_Specification
"""

from __future__ import annotations

import logging
import struct
import zlib
from typing import Iterator, NamedTuple

from .exceptions import (
    ChunkNotFoundError,
    MalformedChunkHeaderError,
    TruncatedStreamError,
)

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

ACTL = b"acTL"
IDAT = b"IDAT"

# acTL must precede the first IDAT, so a bounded header scan is enough.
DETECT_SCAN_LIMIT = 10 * 1024

_HEADER = struct.Struct(">I4s")
_UINT32 = struct.Struct(">I")


class Chunk(NamedTuple):
    """Location of one chunk inside a PNG byte buffer."""
    type: bytes
    length: int
    payload_start: int

    @property
    def header_start(self) -> int:
        return self.payload_start - 8

    @property
    def crc_start(self) -> int:
        return self.payload_start + self.length

    @property
    def end(self) -> int:
        return self.payload_start + self.length + 4


# ---------------------------------------------------------------------------
# CRC-32
# ---------------------------------------------------------------------------

def crc32(data: bytes | bytearray | memoryview) -> int:
    """CRC-32 as used by PNG chunks (reflected 0xEDB88320, inverted in/out)."""
    return zlib.crc32(data) & 0xFFFFFFFF


def chunk_crc_ok(data: bytes, chunk: Chunk) -> bool:
    """Return True if the stored CRC of *chunk* matches its type and payload."""
    stored, = _UINT32.unpack_from(data, chunk.crc_start)
    return crc32(memoryview(data)[chunk.header_start + 4:chunk.crc_start]) == stored


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def has_png_signature(data: bytes) -> bool:
    return data[:len(PNG_SIGNATURE)] == PNG_SIGNATURE


def scan_chunks(
    data: bytes,
    offset: int = len(PNG_SIGNATURE),
    limit: int | None = None,
) -> Iterator[Chunk]:
    """Lazily yield the chunks of *data* starting at *offset*.

    Scanning stops at the end of the buffer, or once the next chunk header
    would begin at or beyond *limit*.  A header or payload that runs past
    the end of the buffer raises :class:`TruncatedStreamError`; a type
    field that is not four ASCII letters raises
    :class:`MalformedChunkHeaderError`.
    """
    size = len(data)
    pos = offset
    while pos < size:
        if limit is not None and pos >= limit:
            return
        if pos + _HEADER.size > size:
            raise TruncatedStreamError(
                f"Chunk header at offset {pos} needs 8 bytes, "
                f"only {size - pos} remain", offset=pos,
            )
        length, ctype = _HEADER.unpack_from(data, pos)
        if not ctype.isalpha():
            raise MalformedChunkHeaderError(
                f"Invalid chunk type {ctype!r} at offset {pos}", offset=pos,
            )
        payload_start = pos + _HEADER.size
        end = payload_start + length + 4
        if end > size:
            raise TruncatedStreamError(
                f"Chunk {ctype.decode('ascii')} at offset {pos} declares "
                f"{length} bytes but only {size - payload_start} remain",
                offset=pos,
            )
        yield Chunk(ctype, length, payload_start)
        pos = end


def find_chunk(data: bytes, chunk_type: bytes) -> Chunk:
    """Return the first chunk of *chunk_type*, scanning the whole buffer."""
    for chunk in scan_chunks(data):
        if chunk.type == chunk_type:
            return chunk
    raise ChunkNotFoundError(f"No {chunk_type.decode('ascii')} chunk in stream")


def is_animated_png(data: bytes) -> bool:
    """Return True if *data* is a PNG carrying an animation-control chunk.

    Only the first ``DETECT_SCAN_LIMIT`` bytes worth of chunk headers are
    examined.  Truncated or garbage input yields False rather than raising.
    """
    if not has_png_signature(data):
        return False
    try:
        for chunk in scan_chunks(data, limit=DETECT_SCAN_LIMIT):
            if chunk.type == ACTL:
                return True
            if chunk.type == IDAT:
                return False
    except MalformedChunkHeaderError as exc:
        logger.debug("Treating PNG as static: %s", exc)
    return False


# ---------------------------------------------------------------------------
# acTL access
# ---------------------------------------------------------------------------

def _find_actl(data: bytes) -> Chunk:
    chunk = find_chunk(data, ACTL)
    if chunk.length < 8:
        raise MalformedChunkHeaderError(
            f"acTL payload is {chunk.length} bytes, expected 8",
            offset=chunk.header_start,
        )
    return chunk


def read_frame_count(data: bytes) -> int:
    """Return the ``num_frames`` field of the acTL chunk."""
    chunk = _find_actl(data)
    return _UINT32.unpack_from(data, chunk.payload_start)[0]


def read_loop_count(data: bytes) -> int:
    """Return the ``num_plays`` field of the acTL chunk (0 = forever)."""
    chunk = _find_actl(data)
    return _UINT32.unpack_from(data, chunk.payload_start + 4)[0]


def set_loop_count(png_bytes: bytes, loop_count: int) -> bytes:
    """Return a copy of *png_bytes* with the acTL loop count set.

    Only the four ``num_plays`` bytes and the acTL CRC change; every other
    byte is copied through.  A PNG without acTL is returned unchanged.
    """
    if not 0 <= loop_count <= 0xFFFFFFFF:
        raise ValueError(f"loop_count must fit in uint32, got {loop_count}")

    try:
        chunk = _find_actl(png_bytes)
    except ChunkNotFoundError:
        logger.debug("No acTL chunk; loop count left as encoded.")
        return bytes(png_bytes)

    patched = bytearray(png_bytes)
    _UINT32.pack_into(patched, chunk.payload_start + 4, loop_count)
    crc = crc32(memoryview(patched)[chunk.header_start + 4:chunk.crc_start])
    _UINT32.pack_into(patched, chunk.crc_start, crc)
    logger.debug("Patched acTL loop count to %d (crc %08x).", loop_count, crc)
    return bytes(patched)
