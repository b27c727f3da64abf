"""
framestack -- still images to animated PNG / WebP.

Composites a sequence of stills onto the first frame's canvas and writes
the result as an APNG (loop count patched in place) or as an animated
WebP assembled chunk by chunk from single-frame encodes.
"""

__version__ = "0.1.0"

from framestack.exceptions import FrameStackError
from framestack.export import export_animation, write_animation
from framestack.sequence import FrameSequence
from framestack.types import (
    ExportConfig,
    Frame,
    OutputFormat,
    Transform,
)

__all__ = [
    "ExportConfig",
    "Frame",
    "FrameSequence",
    "FrameStackError",
    "OutputFormat",
    "Transform",
    "export_animation",
    "write_animation",
]
