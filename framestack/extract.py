"""
Animated-PNG frame extraction.

    APNG bytes  -->  decode_animated_png  -->  DecodedAnimation
                -->  extract_frames       -->  [Frame, Frame, ...]

Each sub-frame becomes an independent PNG still, so the rest of the
pipeline never needs to know a frame came out of an animation.
"""

from __future__ import annotations

import io
import logging

import numpy as np
from PIL import Image, ImageSequence

from .codecs import encode_png
from .exceptions import DecodeError, EmptyAnimationError
from .types import DEFAULT_DELAY_MS, DecodedAnimation, DecodedFrame, Frame

logger = logging.getLogger(__name__)


def decode_animated_png(data: bytes) -> DecodedAnimation:
    """Decode every sub-frame of an APNG into canvas-sized RGBA arrays.

    Pillow applies each frame's dispose/blend ops, so every array already
    shows the full canvas as it would be displayed.  A default image that
    is not part of the animation (IDAT ahead of the first fcTL) is skipped.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            skip_default = bool(img.info.get("default_image"))
            frames = []
            for index, sub in enumerate(ImageSequence.Iterator(img)):
                if index == 0 and skip_default:
                    logger.debug("Skipping APNG default image")
                    continue
                duration = sub.info.get("duration")
                frames.append(DecodedFrame(
                    pixels=np.asarray(sub.convert("RGBA"), dtype=np.uint8).copy(),
                    delay_ms=int(round(duration)) if duration is not None else None,
                ))
    except (OSError, ValueError, SyntaxError) as exc:
        raise DecodeError(f"Cannot decode animated PNG: {exc}") from exc

    logger.debug("Decoded APNG %dx%d with %d frames", width, height, len(frames))
    return DecodedAnimation(width=width, height=height, frames=frames)


def extract_frames(decoded: DecodedAnimation, name: str = "") -> list[Frame]:
    """Turn a decoded animation into one :class:`Frame` per sub-frame."""
    if not decoded.frames:
        raise EmptyAnimationError(
            f"Animation {name or '<unnamed>'} decoded to zero frames"
        )

    expected = (decoded.height, decoded.width, 4)
    frames: list[Frame] = []
    for i, sub in enumerate(decoded.frames):
        pixels = np.asarray(sub.pixels, dtype=np.uint8)
        if pixels.shape != expected:
            raise DecodeError(
                f"Sub-frame {i} has shape {pixels.shape}, expected {expected}"
            )
        still = Image.fromarray(pixels)
        delay = sub.delay_ms if sub.delay_ms is not None else DEFAULT_DELAY_MS
        frames.append(Frame(
            source=encode_png(still),
            natural_width=decoded.width,
            natural_height=decoded.height,
            delay_ms=max(0, delay),
            name=f"{name}#{i}" if name else f"#{i}",
        ))

    logger.info("Extracted %d frames from %s", len(frames), name or "animation")
    return frames
