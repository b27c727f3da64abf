"""
CLI command for building an animation from still images.

Usage:
    framestack build a.png b.png c.jpg -o out.webp --delay 120
    framestack build intro.apng logo.png --format apng --loop 3 -o out.png
    framestack build --project banner.yaml
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ..config import Project, load_project
from ..exceptions import FrameStackError
from ..export import default_suffix, write_animation
from ..sequence import FrameSequence
from ..types import DEFAULT_DELAY_MS, ExportConfig, OutputFormat


_FORMAT_MAP = {
    "webp": OutputFormat.WEBP,
    "apng": OutputFormat.APNG,
}

_SUFFIX_FORMATS = {
    ".webp": OutputFormat.WEBP,
    ".png": OutputFormat.APNG,
    ".apng": OutputFormat.APNG,
}


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def _resolve_format(args: argparse.Namespace, fallback: OutputFormat) -> OutputFormat:
    if args.format:
        return _FORMAT_MAP[args.format]
    if args.output:
        return _SUFFIX_FORMATS.get(Path(args.output).suffix.lower(), fallback)
    return fallback


def _apply_overrides(cfg: ExportConfig, args: argparse.Namespace) -> None:
    if args.loop is not None:
        cfg.loop_count = args.loop
    if args.quality is not None:
        cfg.webp_quality = args.quality
    if args.lossless:
        cfg.webp_lossless = True
    if args.compression is not None:
        cfg.png_compression = args.compression
    if args.workers is not None:
        cfg.workers = args.workers


def cmd_build(args: argparse.Namespace) -> int:
    """Main handler for ``framestack build``."""
    if not args.inputs and not args.project:
        print("Error: give input images or --project", file=sys.stderr)
        return 1

    try:
        if args.project:
            project = load_project(args.project)
        else:
            project = Project(
                sequence=FrameSequence(default_delay_ms=DEFAULT_DELAY_MS),
                export=ExportConfig(),
            )

        sequence = project.sequence
        if args.delay is not None:
            sequence.default_delay_ms = max(0, args.delay)

        missing = [p for p in args.inputs if not Path(p).is_file()]
        if missing:
            print(f"Error: file not found: {missing[0]}", file=sys.stderr)
            return 1
        sequence.import_files(args.inputs)

        if args.smart_align:
            sequence.smart_align()

        cfg = project.export
        cfg.format = _resolve_format(args, cfg.format)
        _apply_overrides(cfg, args)

        if args.output:
            output_path = Path(args.output)
        elif project.output_path is not None:
            output_path = project.output_path
        else:
            output_path = Path("animation" + default_suffix(cfg.format))

        if not len(sequence):
            print("Error: no usable images.", file=sys.stderr)
            return 1

        width, height = sequence.canvas_size
        print(f"Building {cfg.format.value.upper()} from {len(sequence)} frames "
              f"({width}x{height}) ...")
        result_path = write_animation(sequence, cfg, output_path)
    except (FrameStackError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    size = _format_size(result_path.stat().st_size)
    print(f"Done! {len(sequence)} frames -> {result_path} ({size})")
    return 0


def build_build_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``build`` subcommand and its arguments."""
    p = subparsers.add_parser(
        "build",
        help="Build an animation from still images",
        description="Composite still images (or animated PNGs) into an animated WebP or APNG.",
    )
    p.add_argument(
        "inputs", nargs="*",
        help="Input images in animation order; the first one sets the canvas size",
    )
    p.add_argument(
        "--project", default=None,
        help="YAML project file listing frames and export settings",
    )
    p.add_argument(
        "--format", choices=sorted(_FORMAT_MAP), default=None,
        help="Output format (default: from output suffix, else webp)",
    )
    p.add_argument(
        "--delay", type=int, default=None,
        help=f"Delay per frame in ms (default: {DEFAULT_DELAY_MS})",
    )
    p.add_argument(
        "--loop", type=int, default=None,
        help="Loop count; 0 loops forever (default: 0)",
    )
    p.add_argument(
        "--quality", type=float, default=None,
        help="WebP quality, 0.0 -- 1.0 (default: 0.9)",
    )
    p.add_argument(
        "--lossless", action="store_true",
        help="Encode WebP frames losslessly",
    )
    p.add_argument(
        "--compression", type=int, default=None, choices=range(10), metavar="0-9",
        help="APNG zlib compression level (default: 6)",
    )
    p.add_argument(
        "--smart-align", action="store_true",
        help="Scale every frame after the first to cover the base canvas",
    )
    p.add_argument(
        "--workers", type=int, default=None,
        help="Frames rendered/encoded in parallel (default: 1)",
    )
    p.add_argument(
        "-o", "--output", default=None,
        help="Output file path (default: animation.<ext>)",
    )
    p.set_defaults(func=cmd_build)
