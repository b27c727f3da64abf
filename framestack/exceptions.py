"""
Custom exception hierarchy for framestack.

All framestack exceptions inherit from FrameStackError so callers can catch
the entire family with a single except clause.
"""

from __future__ import annotations


class FrameStackError(Exception):
    """Base exception for all framestack errors."""


class MalformedChunkHeaderError(FrameStackError):
    """Raised when a chunk header cannot be parsed."""

    def __init__(self, message: str, offset: int = -1) -> None:
        super().__init__(message)
        self.offset = offset


class TruncatedStreamError(MalformedChunkHeaderError):
    """Raised when a chunk claims more bytes than remain in the buffer."""


class ChunkNotFoundError(FrameStackError):
    """Raised when an expected chunk is absent from the stream."""


class EmptyAnimationError(FrameStackError):
    """Raised when a source declared animated decodes to zero frames."""


class DecodeError(FrameStackError):
    """Raised when an input cannot be decoded into a bitmap."""


class CompositingError(FrameStackError):
    """Raised when a frame cannot be rendered onto the output canvas."""


class EncodingError(FrameStackError):
    """Raised when a frame or container cannot be encoded."""

    def __init__(self, message: str, frame_index: int | None = None) -> None:
        super().__init__(message)
        self.frame_index = frame_index


class EmptySequenceError(FrameStackError):
    """Raised when exporting a sequence that holds no frames."""


class ConfigError(FrameStackError):
    """Raised when a project file is missing or invalid."""
