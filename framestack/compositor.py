"""
Frame compositing onto the base canvas.

Each output frame is the frame's source image drawn onto a transparent
canvas the size of the base frame.  The forward map from source pixel to
canvas pixel is::

    T(W/2 + offset_x, H/2 + offset_y) . R(rotation) . S(scale) . T(-w/2, -h/2)

i.e. centre the source on the origin, scale, rotate clockwise, then move
to the canvas centre plus the pan offset.  Pillow's affine resampler
wants the inverse (canvas -> source), which is what ``affine_coefficients``
returns.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from PIL import Image

from .codecs import decode_image
from .exceptions import CompositingError, DecodeError
from .types import Frame, Transform

logger = logging.getLogger(__name__)


def affine_coefficients(
    transform: Transform,
    source_size: tuple[int, int],
    canvas_size: tuple[int, int],
) -> tuple[float, float, float, float, float, float]:
    """Return ``(a, b, c, d, e, f)`` mapping canvas (x, y) to source pixels.

    ``src_x = a*x + b*y + c`` and ``src_y = d*x + e*y + f``.
    """
    if transform.scale <= 0:
        raise CompositingError(f"Scale must be positive, got {transform.scale}")

    theta = math.radians(transform.rotation_deg)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    inv = 1.0 / transform.scale

    tx = canvas_size[0] / 2 + transform.offset_x
    ty = canvas_size[1] / 2 + transform.offset_y
    cx = source_size[0] / 2
    cy = source_size[1] / 2

    a = cos_t * inv
    b = sin_t * inv
    d = -sin_t * inv
    e = cos_t * inv
    c = cx - (a * tx + b * ty)
    f = cy - (d * tx + e * ty)
    return a, b, c, d, e, f


def compose_image(
    source: Image.Image,
    transform: Transform,
    canvas_width: int,
    canvas_height: int,
    resample: Image.Resampling = Image.Resampling.BICUBIC,
) -> Image.Image:
    """Draw *source* under *transform* onto a transparent canvas."""
    if canvas_width < 1 or canvas_height < 1:
        raise CompositingError(
            f"Canvas must be at least 1x1, got {canvas_width}x{canvas_height}"
        )

    src = source if source.mode == "RGBA" else source.convert("RGBA")
    size = (canvas_width, canvas_height)

    if transform.is_identity and src.size == size:
        return src.copy()

    coeffs = affine_coefficients(transform, src.size, size)
    try:
        layer = src.transform(
            size,
            Image.Transform.AFFINE,
            coeffs,
            resample=resample,
            fillcolor=(0, 0, 0, 0),
        )
        canvas = Image.new("RGBA", size, (0, 0, 0, 0))
        canvas.alpha_composite(layer)
    except (OSError, ValueError, MemoryError) as exc:
        raise CompositingError(f"Cannot render frame: {exc}") from exc
    return canvas


def compose(
    frame: Frame,
    canvas_width: int,
    canvas_height: int,
    *,
    is_base: bool = False,
) -> Image.Image:
    """Render *frame* to an RGBA image of exactly the canvas size.

    The base frame is always drawn untransformed, whatever it stores.
    """
    transform = Transform.IDENTITY if is_base else frame.transform
    try:
        source = decode_image(frame.source)
    except DecodeError as exc:
        raise CompositingError(f"Frame {frame.name or frame.id}: {exc}") from exc
    return compose_image(source, transform, canvas_width, canvas_height)


# ---------------------------------------------------------------------------
# Smart Align
# ---------------------------------------------------------------------------

def cover_scale(base_width: int, base_height: int, width: int, height: int) -> float:
    """Smallest uniform scale at which a ``width x height`` image covers the base."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Frame size must be positive, got {width}x{height}")
    return max(base_width / width, base_height / height)


def smart_align(frames: Sequence[Frame]) -> None:
    """Set every non-base frame's scale to its cover-fit value.

    Offsets and rotation are kept.  Frame 0 is the base and is left alone.
    """
    if not frames:
        return
    base = frames[0]
    for frame in frames[1:]:
        scale = cover_scale(base.natural_width, base.natural_height,
                            frame.natural_width, frame.natural_height)
        t = frame.transform
        frame.transform = Transform(t.offset_x, t.offset_y, scale, t.rotation_deg)
        logger.debug("Smart align %s: scale %.4f", frame.name or frame.id, scale)
