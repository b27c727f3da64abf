"""
YAML project files.

A project file lists the input images in animation order together with
per-frame timing and placement, plus the export settings::

    output: banner.webp
    format: webp            # webp | apng
    loop: 0                 # 0 = forever
    delay_ms: 100           # default for frames without their own delay
    quality: 0.9            # WebP, 0.0 -- 1.0
    lossless: false
    compression: 6          # APNG zlib level, 0 -- 9
    smart_align: false
    frames:
      - path: intro.png
        delay_ms: 500
      - path: logo.jpg
        offset: [12, -4]
        scale: 1.5
        rotation: 15

Relative frame paths resolve against the project file's directory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError
from .sequence import FrameSequence
from .types import DEFAULT_DELAY_MS, ExportConfig, OutputFormat, Transform

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = {
    "output", "format", "loop", "delay_ms", "quality", "lossless",
    "compression", "smart_align", "workers", "frames",
}
_FRAME_KEYS = {"path", "delay_ms", "offset", "scale", "rotation"}


@dataclass
class Project:
    """A loaded project: the frames, how to export them, and where to."""
    sequence: FrameSequence
    export: ExportConfig
    output_path: Path | None = None


def _parse_format(value: Any) -> OutputFormat:
    try:
        return OutputFormat(str(value).lower())
    except ValueError:
        choices = ", ".join(f.value for f in OutputFormat)
        raise ConfigError(f"Unknown format {value!r}; expected one of {choices}") from None


def _number(entry: dict[str, Any], key: str, default: float, where: str) -> float:
    value = entry.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{where}: '{key}' must be a number, got {value!r}")
    return float(value)


def _parse_transform(entry: dict[str, Any], where: str) -> Transform:
    offset = entry.get("offset", [0, 0])
    if (not isinstance(offset, (list, tuple)) or len(offset) != 2
            or not all(isinstance(v, (int, float)) for v in offset)):
        raise ConfigError(f"{where}: 'offset' must be a pair of numbers, got {offset!r}")
    return Transform(
        offset_x=float(offset[0]),
        offset_y=float(offset[1]),
        scale=_number(entry, "scale", 1.0, where),
        rotation_deg=_number(entry, "rotation", 0.0, where),
    )


def parse_export_config(data: dict[str, Any]) -> ExportConfig:
    """Build an :class:`ExportConfig` from the top-level project mapping."""
    cfg = ExportConfig(
        format=_parse_format(data.get("format", "webp")),
        loop_count=int(_number(data, "loop", 0, "project")),
        png_compression=int(_number(data, "compression", 6, "project")),
        webp_quality=_number(data, "quality", 0.9, "project"),
        webp_lossless=bool(data.get("lossless", False)),
        workers=int(_number(data, "workers", 1, "project")),
    )
    if cfg.loop_count < 0:
        raise ConfigError(f"project: 'loop' must be >= 0, got {cfg.loop_count}")
    if not 0 <= cfg.png_compression <= 9:
        raise ConfigError(f"project: 'compression' must be 0 -- 9, got {cfg.png_compression}")
    if not 0.0 <= cfg.webp_quality <= 1.0:
        raise ConfigError(f"project: 'quality' must be in [0, 1], got {cfg.webp_quality}")
    return cfg


def parse_project(data: Any, base_dir: Path) -> Project:
    """Build a :class:`Project` from an already-parsed YAML document."""
    if not isinstance(data, dict):
        raise ConfigError("Project file must contain a mapping at the top level")
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        logger.warning("Ignoring unknown project keys: %s", ", ".join(sorted(unknown)))

    export = parse_export_config(data)
    default_delay = int(_number(data, "delay_ms", DEFAULT_DELAY_MS, "project"))
    sequence = FrameSequence(default_delay_ms=default_delay)

    entries = data.get("frames") or []
    if not isinstance(entries, list):
        raise ConfigError("'frames' must be a list")

    for n, entry in enumerate(entries):
        where = f"frames[{n}]"
        if isinstance(entry, str):
            entry = {"path": entry}
        if not isinstance(entry, dict) or "path" not in entry:
            raise ConfigError(f"{where}: expected a path or a mapping with 'path'")
        unknown = set(entry) - _FRAME_KEYS
        if unknown:
            logger.warning("%s: ignoring unknown keys %s", where, ", ".join(sorted(unknown)))

        path = Path(entry["path"])
        if not path.is_absolute():
            path = base_dir / path
        if not path.is_file():
            raise ConfigError(f"{where}: file not found: {path}")

        added = sequence.import_bytes(path.read_bytes(), name=path.name)
        transform = _parse_transform(entry, where)
        for frame in added:
            if "delay_ms" in entry:
                sequence.set_delay(frame.id, int(_number(entry, "delay_ms", 0, where)))
            if not transform.is_identity:
                sequence.set_transform(frame.id, transform)

    if data.get("smart_align"):
        sequence.smart_align()

    output = data.get("output")
    output_path = None
    if output:
        output_path = Path(output)
        if not output_path.is_absolute():
            output_path = base_dir / output_path

    return Project(sequence=sequence, export=export, output_path=output_path)


def load_project(path: str | Path) -> Project:
    """Read and parse a YAML project file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Project file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    return parse_project(data, path.parent)
