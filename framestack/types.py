"""
Core data structures shared by the sequence, compositor and exporters.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field

import numpy as np


SCALE_MIN = 0.01
SCALE_MAX = 20.0
ROTATION_MIN = -180.0
ROTATION_MAX = 180.0

DEFAULT_DELAY_MS = 100


class OutputFormat(enum.Enum):
    """Supported animation containers."""
    APNG = "apng"
    WEBP = "webp"


@dataclass(frozen=True)
class Transform:
    """Pan, uniform scale and clockwise rotation applied around canvas centre."""
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0
    rotation_deg: float = 0.0

    @property
    def is_identity(self) -> bool:
        return (
            self.offset_x == 0
            and self.offset_y == 0
            and self.scale == 1
            and self.rotation_deg == 0
        )

    def clamped(self) -> Transform:
        """Return a copy with scale and rotation limited to the editor ranges."""
        return Transform(
            offset_x=float(self.offset_x),
            offset_y=float(self.offset_y),
            scale=min(SCALE_MAX, max(SCALE_MIN, float(self.scale))),
            rotation_deg=min(ROTATION_MAX, max(ROTATION_MIN, float(self.rotation_deg))),
        )


Transform.IDENTITY = Transform()


def _new_frame_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Frame:
    """A single still image in the animation timeline.

    ``source`` holds the undecoded image bytes and never changes; the
    natural dimensions are taken from it once at creation.
    """
    source: bytes
    natural_width: int
    natural_height: int
    delay_ms: int = DEFAULT_DELAY_MS
    transform: Transform = Transform.IDENTITY
    name: str = ""
    id: str = field(default_factory=_new_frame_id)

    @property
    def size(self) -> tuple[int, int]:
        return self.natural_width, self.natural_height


@dataclass
class DecodedFrame:
    """One canvas-sized RGBA8 sub-frame produced by the animated-PNG decoder."""
    pixels: np.ndarray            # shape (height, width, 4), dtype uint8
    delay_ms: int | None = None   # None = not declared by the source


@dataclass
class DecodedAnimation:
    """Decoded representation of an animated PNG."""
    width: int
    height: int
    frames: list[DecodedFrame] = field(default_factory=list)


@dataclass
class ExportConfig:
    """Encode parameters passed explicitly into every export call."""
    format: OutputFormat = OutputFormat.WEBP
    loop_count: int = 0             # 0 = loop forever
    png_compression: int = 6        # zlib level 0 -- 9
    webp_quality: float = 0.9       # 0.0 -- 1.0
    webp_lossless: bool = False
    workers: int = 1                # per-frame render/encode parallelism
