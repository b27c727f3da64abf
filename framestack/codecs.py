"""
Pillow-backed pixel codecs.

These are the only places that turn bytes into pixels or pixels into
encoded images:

* ``decode_image``       -- any still image (PNG, JPEG, WebP, GIF, APNG's
                            default image) to a loaded RGBA bitmap.
* ``encode_apng``        -- canvas-sized RGBA frames to an APNG whose
                            acTL says "loop forever".
* ``encode_webp_frame``  -- one RGBA frame to a single-image WebP file.

Pillow failures are re-raised as :class:`DecodeError` or
:class:`EncodingError` so callers deal with one exception family.
"""

from __future__ import annotations

import io
import logging
from typing import Sequence

from PIL import Image

from .exceptions import DecodeError, EncodingError

logger = logging.getLogger(__name__)

_PIL_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


def decode_image(data: bytes) -> Image.Image:
    """Decode *data* into a fully loaded RGBA image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.convert("RGBA")
    except _PIL_ERRORS as exc:
        raise DecodeError(f"Cannot decode image: {exc}") from exc


def image_size(data: bytes) -> tuple[int, int]:
    """Return ``(width, height)`` of an encoded image without converting it."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except _PIL_ERRORS as exc:
        raise DecodeError(f"Cannot read image header: {exc}") from exc


def encode_png(image: Image.Image, compression_level: int = 6) -> bytes:
    """Encode a single still PNG."""
    buf = io.BytesIO()
    try:
        image.save(buf, format="PNG", compress_level=compression_level)
    except _PIL_ERRORS as exc:
        raise EncodingError(f"PNG encoding failed: {exc}") from exc
    return buf.getvalue()


def encode_apng(
    images: Sequence[Image.Image],
    width: int,
    height: int,
    compression_level: int,
    delays_ms: Sequence[int],
) -> bytes:
    """Encode canvas-sized RGBA frames as an animated PNG.

    The acTL chunk is written with ``num_plays = 0``; callers wanting a
    finite loop count patch it afterwards.  Pillow folds consecutive
    identical frames into one, summing their delays.
    """
    if not images:
        raise EncodingError("No frames to encode")
    if len(images) != len(delays_ms):
        raise EncodingError(
            f"Got {len(images)} frames but {len(delays_ms)} delays"
        )
    if not 0 <= compression_level <= 9:
        raise ValueError(f"compression_level must be 0 -- 9, got {compression_level}")

    for i, img in enumerate(images):
        if img.size != (width, height):
            raise EncodingError(
                f"Frame {i} is {img.size[0]}x{img.size[1]}, "
                f"expected {width}x{height}", frame_index=i,
            )

    rgba = [img.convert("RGBA") for img in images]
    buf = io.BytesIO()
    try:
        rgba[0].save(
            buf,
            format="PNG",
            save_all=True,
            append_images=rgba[1:],
            duration=list(delays_ms),
            loop=0,                           # 0 = infinite
            compress_level=compression_level,
            default_image=False,
        )
    except _PIL_ERRORS as exc:
        raise EncodingError(f"APNG encoding failed: {exc}") from exc

    data = buf.getvalue()
    logger.debug("Encoded APNG: %d frames, %d bytes", len(rgba), len(data))
    return data


def encode_webp_frame(
    image: Image.Image,
    quality: float,
    lossless: bool = False,
) -> bytes:
    """Encode one RGBA frame as a single-image WebP file.

    *quality* is a fraction in [0, 1], mapped onto libwebp's 0 -- 100.
    """
    if not 0.0 <= quality <= 1.0:
        raise ValueError(f"quality must be in [0, 1], got {quality}")

    buf = io.BytesIO()
    try:
        image.convert("RGBA").save(
            buf,
            format="WEBP",
            quality=int(round(quality * 100)),
            lossless=lossless,
        )
    except (*_PIL_ERRORS, KeyError) as exc:
        raise EncodingError(f"WebP encoding failed: {exc}") from exc
    return buf.getvalue()
