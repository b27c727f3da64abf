"""
Ordered frame sequence with the base-frame invariant.

Frame 0 is the base frame: its natural size is the output canvas and its
transform is forced back to identity after every mutation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

from .codecs import image_size
from .compositor import smart_align
from .exceptions import DecodeError, FrameStackError
from .extract import decode_animated_png, extract_frames
from .png import is_animated_png
from .types import DEFAULT_DELAY_MS, Frame, Transform

logger = logging.getLogger(__name__)


def frames_from_bytes(
    data: bytes,
    name: str = "",
    delay_ms: int = DEFAULT_DELAY_MS,
) -> list[Frame]:
    """Build the frames for one input file.

    An animated PNG yields one frame per sub-frame (with its own timing);
    anything else yields a single frame with *delay_ms*.
    """
    if is_animated_png(data):
        logger.info("%s is an animated PNG; extracting frames", name or "input")
        return extract_frames(decode_animated_png(data), name=name)
    width, height = image_size(data)
    return [Frame(
        source=bytes(data),
        natural_width=width,
        natural_height=height,
        delay_ms=max(0, delay_ms),
        name=name,
    )]


class FrameSequence:
    """Ordered, editable list of :class:`Frame` objects."""

    def __init__(
        self,
        frames: Iterable[Frame] = (),
        default_delay_ms: int = DEFAULT_DELAY_MS,
    ) -> None:
        self._frames: list[Frame] = []
        self.default_delay_ms = max(0, default_delay_ms)
        self.extend(frames)

    # ---- read access ----------------------------------------------------

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    def __getitem__(self, index: int) -> Frame:
        return self._frames[index]

    @property
    def frames(self) -> list[Frame]:
        """A shallow copy of the frames in animation order."""
        return list(self._frames)

    @property
    def base(self) -> Frame | None:
        return self._frames[0] if self._frames else None

    @property
    def canvas_size(self) -> tuple[int, int]:
        if not self._frames:
            raise FrameStackError("Sequence is empty; no canvas size")
        return self._frames[0].size

    def index_of(self, frame_id: str) -> int:
        for i, frame in enumerate(self._frames):
            if frame.id == frame_id:
                return i
        raise KeyError(frame_id)

    def get(self, frame_id: str) -> Frame:
        return self._frames[self.index_of(frame_id)]

    # ---- invariant ------------------------------------------------------

    def _normalize_base(self) -> None:
        if self._frames and not self._frames[0].transform.is_identity:
            logger.debug("Resetting transform of base frame %s", self._frames[0].id)
            self._frames[0].transform = Transform.IDENTITY

    # ---- insertion ------------------------------------------------------

    def append(self, frame: Frame) -> None:
        self.extend([frame])

    def extend(self, frames: Iterable[Frame]) -> None:
        known = {f.id for f in self._frames}
        for frame in frames:
            if frame.id in known:
                raise ValueError(f"Duplicate frame id {frame.id}")
            known.add(frame.id)
            self._frames.append(frame)
        self._normalize_base()

    def import_bytes(self, data: bytes, name: str = "") -> list[Frame]:
        """Decode one input file and append its frame(s)."""
        new = frames_from_bytes(data, name=name, delay_ms=self.default_delay_ms)
        self.extend(new)
        return new

    def import_files(
        self,
        paths: Iterable[str | Path],
        skip_invalid: bool = True,
    ) -> list[Frame]:
        """Append the frames of every readable image in *paths*, in order.

        Inputs that are not decodable images are skipped with a warning
        when *skip_invalid* is set, otherwise the :class:`DecodeError`
        propagates.
        """
        added: list[Frame] = []
        for path in paths:
            path = Path(path)
            data = path.read_bytes()
            try:
                added.extend(self.import_bytes(data, name=path.name))
            except DecodeError as exc:
                if not skip_invalid:
                    raise
                logger.warning("Skipping %s: %s", path, exc)
        return added

    # ---- removal / ordering ---------------------------------------------

    def remove(self, frame_id: str) -> Frame:
        frame = self._frames.pop(self.index_of(frame_id))
        self._normalize_base()
        return frame

    def clear(self) -> None:
        self._frames.clear()

    def move(self, frame_id: str, target_index: int) -> None:
        """Move a frame so that it ends up at *target_index*."""
        if not 0 <= target_index < len(self._frames):
            raise IndexError(f"Target index {target_index} out of range")
        frame = self._frames.pop(self.index_of(frame_id))
        self._frames.insert(target_index, frame)
        self._normalize_base()

    def reorder(self, frame_ids: Iterable[str]) -> None:
        """Replace the order with *frame_ids*, which must be a permutation."""
        ids = list(frame_ids)
        by_id = {f.id: f for f in self._frames}
        if sorted(ids) != sorted(by_id):
            raise ValueError("reorder() needs exactly the current frame ids")
        self._frames = [by_id[i] for i in ids]
        self._normalize_base()

    # ---- editing --------------------------------------------------------

    def set_delay(self, frame_id: str, delay_ms: int) -> None:
        self.get(frame_id).delay_ms = max(0, int(delay_ms))

    def set_all_delays(self, delay_ms: int) -> None:
        """Apply one delay to every frame and to future imports."""
        delay_ms = max(0, int(delay_ms))
        self.default_delay_ms = delay_ms
        for frame in self._frames:
            frame.delay_ms = delay_ms

    def set_transform(self, frame_id: str, transform: Transform) -> Transform:
        """Store *transform* (clamped to editor ranges) and return what was kept."""
        clamped = transform.clamped()
        if clamped != transform:
            logger.warning("Transform %s clamped to %s", transform, clamped)
        self.get(frame_id).transform = clamped
        self._normalize_base()
        return self.get(frame_id).transform

    def reset_transform(self, frame_id: str) -> None:
        self.get(frame_id).transform = Transform.IDENTITY

    def smart_align(self) -> None:
        """Cover-fit every non-base frame to the base canvas."""
        smart_align(self._frames)
        self._normalize_base()
