"""
Animated WebP container assembly.

Builds an extended-format RIFF/WebP file from independently encoded
single-frame WebP files::

    RIFF <size> WEBP
      VP8X  flags, canvas W-1, canvas H-1
      ANIM  background colour, loop count
      ANMF  x, y, W-1, H-1, duration, flags
        VP8 /VP8L (+ ALPH)         <- borrowed from that frame's file
      ANMF  ...                    <- one per frame, in order

All integers are little-endian.  Every chunk's length field counts the
payload only; odd payloads carry one zero pad byte outside the length.

Reference: https://developers.google.com/speed/webp/docs/riff_container
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import Iterator, NamedTuple, Sequence

from .exceptions import EncodingError, TruncatedStreamError

logger = logging.getLogger(__name__)

RIFF_HEADER_SIZE = 12

# Sub-chunks lifted out of each single-frame file.
CODEC_CHUNKS = frozenset({b"VP8 ", b"VP8L", b"ALPH"})

VP8X_FLAG_ANIMATION = 0x02
VP8X_FLAG_ALPHA = 0x10

# Bit 1 set = do not blend, bit 0 clear = do not dispose.  Every frame is a
# full canvas, so each one simply replaces the previous.
ANMF_FLAG_NO_BLEND = 0x02
ANMF_FLAGS = ANMF_FLAG_NO_BLEND

# BGRA, transparent white.
BACKGROUND_COLOR = b"\xff\xff\xff\x00"

MAX_UINT24 = 0xFFFFFF
MAX_LOOP_COUNT = 0xFFFF

_CHUNK_HEADER = struct.Struct("<4sI")


class RiffChunk(NamedTuple):
    type: bytes
    data: bytes


def _uint24(value: int) -> bytes:
    return value.to_bytes(3, "little")


def _read_uint24(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset:offset + 3], "little")


def _chunk(ctype: bytes, payload: bytes) -> bytes:
    """Serialize one RIFF chunk including its pad byte."""
    pad = b"\x00" if len(payload) % 2 else b""
    return _CHUNK_HEADER.pack(ctype, len(payload)) + payload + pad


def has_webp_header(data: bytes) -> bool:
    return len(data) >= RIFF_HEADER_SIZE and data[:4] == b"RIFF" and data[8:12] == b"WEBP"


def iter_riff_chunks(data: bytes, offset: int = RIFF_HEADER_SIZE) -> Iterator[RiffChunk]:
    """Yield ``(type, payload)`` for each chunk after the RIFF header.

    Trailing bytes too short to hold a chunk header are ignored.  A chunk
    whose declared length runs past the end of *data* raises
    :class:`TruncatedStreamError`.
    """
    size = len(data)
    pos = offset
    while pos + _CHUNK_HEADER.size <= size:
        ctype, length = _CHUNK_HEADER.unpack_from(data, pos)
        start = pos + _CHUNK_HEADER.size
        if start + length > size:
            raise TruncatedStreamError(
                f"RIFF chunk {ctype!r} at offset {pos} declares {length} bytes "
                f"but only {size - start} remain", offset=pos,
            )
        yield RiffChunk(ctype, bytes(data[start:start + length]))
        pos = start + length + (length & 1)


def codec_chunks(blob: bytes) -> list[RiffChunk]:
    """Return the VP8/VP8L/ALPH chunks of a single-frame WebP file."""
    if not has_webp_header(blob):
        raise EncodingError("Frame payload is not a RIFF/WEBP file")
    chunks = list(iter_riff_chunks(blob))
    anmf = [c for c in chunks if c.type == b"ANMF"]
    if len(anmf) == 1 and len(anmf[0].data) >= 16:
        # One-frame animation: the bitstream sits inside the ANMF payload.
        chunks = list(iter_riff_chunks(anmf[0].data, 16))
    kept = [c for c in chunks if c.type in CODEC_CHUNKS]
    if not any(c.type != b"ALPH" for c in kept):
        raise EncodingError("Frame payload holds no VP8/VP8L bitstream")
    return kept


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise ValueError(f"{name} must be in [{low}, {high}], got {value}")


def assemble(
    frames: Sequence[tuple[bytes, int]],
    canvas_width: int,
    canvas_height: int,
    loop_count: int = 0,
) -> bytes:
    """Package single-frame WebP blobs into one animated WebP container.

    *frames* is an ordered sequence of ``(single_frame_webp, duration_ms)``.
    Every frame is placed at (0, 0) and spans the full canvas.
    """
    _check_range("canvas_width", canvas_width, 1, MAX_UINT24 + 1)
    _check_range("canvas_height", canvas_height, 1, MAX_UINT24 + 1)
    _check_range("loop_count", loop_count, 0, MAX_LOOP_COUNT)

    w_minus_1 = _uint24(canvas_width - 1)
    h_minus_1 = _uint24(canvas_height - 1)

    vp8x = bytes([VP8X_FLAG_ANIMATION | VP8X_FLAG_ALPHA, 0, 0, 0]) + w_minus_1 + h_minus_1
    anim = BACKGROUND_COLOR + struct.pack("<H", loop_count)
    parts = [_chunk(b"VP8X", vp8x), _chunk(b"ANIM", anim)]

    for index, (blob, duration_ms) in enumerate(frames):
        _check_range(f"duration of frame {index}", duration_ms, 0, MAX_UINT24)
        try:
            subchunks = codec_chunks(blob)
        except (TruncatedStreamError, EncodingError) as exc:
            raise EncodingError(f"Frame {index}: {exc}", frame_index=index) from exc

        header = (
            _uint24(0) + _uint24(0)
            + w_minus_1 + h_minus_1
            + _uint24(duration_ms)
            + bytes([ANMF_FLAGS])
        )
        body = b"".join(_chunk(c.type, c.data) for c in subchunks)
        parts.append(_chunk(b"ANMF", header + body))
        logger.debug(
            "ANMF %d: %d ms, %s", index, duration_ms,
            "+".join(c.type.decode("ascii").strip() for c in subchunks),
        )

    payload = b"WEBP" + b"".join(parts)
    return b"RIFF" + struct.pack("<I", len(payload)) + payload


# ---------------------------------------------------------------------------
# Reading assembled containers back
# ---------------------------------------------------------------------------

@dataclass
class WebpFrameInfo:
    x: int
    y: int
    width: int
    height: int
    duration_ms: int
    flags: int
    chunk_types: list[bytes] = field(default_factory=list)


@dataclass
class WebpAnimationInfo:
    """Summary of an animated WebP container's VP8X/ANIM/ANMF chunks."""
    canvas_width: int
    canvas_height: int
    flags: int
    loop_count: int
    background: bytes
    frames: list[WebpFrameInfo] = field(default_factory=list)

    @property
    def durations_ms(self) -> list[int]:
        return [f.duration_ms for f in self.frames]


def read_animation(data: bytes) -> WebpAnimationInfo:
    """Parse the animation chunks of an extended-format WebP file."""
    if not has_webp_header(data):
        raise ValueError("Not a RIFF/WEBP file")

    info: WebpAnimationInfo | None = None
    loop_count = 0
    background = b"\x00" * 4
    frames: list[WebpFrameInfo] = []

    for chunk in iter_riff_chunks(data):
        if chunk.type == b"VP8X" and len(chunk.data) >= 10:
            info = WebpAnimationInfo(
                canvas_width=_read_uint24(chunk.data, 4) + 1,
                canvas_height=_read_uint24(chunk.data, 7) + 1,
                flags=chunk.data[0],
                loop_count=0,
                background=background,
            )
        elif chunk.type == b"ANIM" and len(chunk.data) >= 6:
            background = chunk.data[:4]
            loop_count, = struct.unpack_from("<H", chunk.data, 4)
        elif chunk.type == b"ANMF" and len(chunk.data) >= 16:
            frames.append(WebpFrameInfo(
                x=_read_uint24(chunk.data, 0) * 2,
                y=_read_uint24(chunk.data, 3) * 2,
                width=_read_uint24(chunk.data, 6) + 1,
                height=_read_uint24(chunk.data, 9) + 1,
                duration_ms=_read_uint24(chunk.data, 12),
                flags=chunk.data[15],
                chunk_types=[c.type for c in iter_riff_chunks(chunk.data, 16)],
            ))

    if info is None:
        raise ValueError("WebP file has no VP8X chunk")
    info.loop_count = loop_count
    info.background = background
    info.frames = frames
    return info
