"""
Export pipeline.

    FrameSequence --> compose (per frame) --> encode --> container bytes

APNG:  composed frames --> encode_apng --> set_loop_count
WebP:  composed frame  --> encode_webp_frame (per frame) --> webp.assemble

Composition and per-frame encoding have no inter-frame dependency and can
run on a thread pool; the final container is always written in sequence
order.  Any failure aborts the whole export.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Sequence, TypeVar

from PIL import Image

from . import png, webp
from .codecs import encode_apng, encode_webp_frame
from .compositor import compose
from .exceptions import (
    ChunkNotFoundError,
    EmptySequenceError,
    EncodingError,
    FrameStackError,
)
from .sequence import FrameSequence
from .types import ExportConfig, Frame, OutputFormat

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SUFFIXES = {
    OutputFormat.APNG: ".png",
    OutputFormat.WEBP: ".webp",
}


def _map_frames(
    fn: Callable[[int, Frame], T],
    frames: Sequence[Frame],
    workers: int,
) -> list[T]:
    """Apply *fn* to each ``(index, frame)``, returning results in order."""
    if workers <= 1 or len(frames) <= 1:
        return [fn(i, f) for i, f in enumerate(frames)]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(fn, range(len(frames)), frames))


def _frames_or_raise(sequence: FrameSequence) -> list[Frame]:
    frames = sequence.frames
    if not frames:
        raise EmptySequenceError("No frames to export")
    return frames


def render_frames(sequence: FrameSequence, workers: int = 1) -> list[Image.Image]:
    """Compose every frame onto the base canvas, in sequence order."""
    frames = _frames_or_raise(sequence)
    width, height = sequence.canvas_size

    def _render(index: int, frame: Frame) -> Image.Image:
        return compose(frame, width, height, is_base=index == 0)

    return _map_frames(_render, frames, workers)


def export_apng(sequence: FrameSequence, config: ExportConfig) -> bytes:
    """Render, encode and loop-patch the sequence as an animated PNG."""
    frames = _frames_or_raise(sequence)
    width, height = sequence.canvas_size
    images = render_frames(sequence, config.workers)
    delays = [f.delay_ms for f in frames]

    encoded = encode_apng(images, width, height, config.png_compression, delays)
    try:
        written = png.read_frame_count(encoded)
    except ChunkNotFoundError:
        written = 1
    if written != len(frames):
        logger.warning(
            "APNG holds %d frames for %d inputs; identical consecutive frames "
            "were merged", written, len(frames),
        )
    return png.set_loop_count(encoded, config.loop_count)


def export_webp(sequence: FrameSequence, config: ExportConfig) -> bytes:
    """Render and encode each frame, then assemble an animated WebP."""
    frames = _frames_or_raise(sequence)
    width, height = sequence.canvas_size

    def _encode(index: int, frame: Frame) -> tuple[bytes, int]:
        image = compose(frame, width, height, is_base=index == 0)
        try:
            blob = encode_webp_frame(image, config.webp_quality, config.webp_lossless)
        except EncodingError as exc:
            raise EncodingError(f"Frame {index}: {exc}", frame_index=index) from exc
        return blob, frame.delay_ms

    encoded = _map_frames(_encode, frames, config.workers)
    return webp.assemble(encoded, width, height, config.loop_count)


_EXPORTERS: dict[OutputFormat, Callable[[FrameSequence, ExportConfig], bytes]] = {
    OutputFormat.APNG: export_apng,
    OutputFormat.WEBP: export_webp,
}


def export_animation(sequence: FrameSequence, config: ExportConfig) -> bytes:
    """Export *sequence* in ``config.format`` and return the container bytes.

    Every failure surfaces as a :class:`FrameStackError`; there is no
    partial output.
    """
    exporter = _EXPORTERS.get(config.format)
    if exporter is None:
        raise ValueError(f"Unsupported output format: {config.format}")

    t_start = time.perf_counter()
    try:
        data = exporter(sequence, config)
    except FrameStackError:
        raise
    except (OSError, MemoryError) as exc:
        raise EncodingError(f"{config.format.value} export failed: {exc}") from exc

    logger.info(
        "Exported %d frames as %s (%d bytes) in %.2fs",
        len(sequence), config.format.value, len(data),
        time.perf_counter() - t_start,
    )
    return data


def default_suffix(fmt: OutputFormat) -> str:
    return _SUFFIXES[fmt]


def write_animation(
    sequence: FrameSequence,
    config: ExportConfig,
    output_path: str | Path,
) -> Path:
    """Export and write the container to *output_path*."""
    output_path = Path(output_path)
    data = export_animation(sequence, config)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    return output_path
