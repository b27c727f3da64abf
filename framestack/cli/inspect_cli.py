"""
CLI command for inspecting animated PNG and WebP containers.

Usage:
    framestack inspect out.png
    framestack inspect out.webp
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .. import png, webp
from ..exceptions import FrameStackError


def _inspect_png(data: bytes) -> None:
    if not png.is_animated_png(data):
        print("PNG, static")
        return
    print("PNG, animated")
    print(f"  frames: {png.read_frame_count(data)}")
    loops = png.read_loop_count(data)
    print(f"  loop:   {loops or 'forever'}")
    actl = png.find_chunk(data, png.ACTL)
    print(f"  acTL crc: {'ok' if png.chunk_crc_ok(data, actl) else 'MISMATCH'}")


def _inspect_webp(data: bytes) -> None:
    info = webp.read_animation(data)
    print(f"WebP, {info.canvas_width}x{info.canvas_height}, flags 0x{info.flags:02x}")
    print(f"  loop:   {info.loop_count or 'forever'}")
    print(f"  frames: {len(info.frames)}")
    for i, frame in enumerate(info.frames):
        kinds = "+".join(t.decode("ascii").strip() for t in frame.chunk_types)
        print(f"    {i:4d}: {frame.duration_ms} ms  {frame.width}x{frame.height}  {kinds}")


def cmd_inspect(args: argparse.Namespace) -> int:
    """Main handler for ``framestack inspect``."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    data = path.read_bytes()
    try:
        if png.has_png_signature(data):
            _inspect_png(data)
        elif webp.has_webp_header(data):
            _inspect_webp(data)
        else:
            print(f"Error: {path} is neither PNG nor WebP", file=sys.stderr)
            return 1
    except (FrameStackError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def build_inspect_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``inspect`` subcommand."""
    p = subparsers.add_parser(
        "inspect",
        help="Show animation metadata of a PNG or WebP file",
        description="Report frame count, loop count and timing of an APNG or animated WebP.",
    )
    p.add_argument("file", help="PNG or WebP file to inspect")
    p.set_defaults(func=cmd_inspect)
