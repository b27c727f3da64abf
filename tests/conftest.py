"""
Shared fixtures for the framestack test suite.
"""

from __future__ import annotations

import io
import struct
import zlib

import pytest
from PIL import Image, features

from framestack.types import Frame


def pytest_configure(config):
    """Register custom markers used across sub-suites."""
    config.addinivalue_line("markers", "webp: needs Pillow built with WebP support")


def pytest_collection_modifyitems(config, items):
    if features.check("webp"):
        return
    skip = pytest.mark.skip(reason="Pillow has no WebP support")
    for item in items:
        if "webp" in item.keywords:
            item.add_marker(skip)


# ---------------------------------------------------------------------------
# Byte-level builders
# ---------------------------------------------------------------------------

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def make_png_chunk(ctype: bytes, payload: bytes) -> bytes:
    """One PNG chunk with a correct CRC, built independently of framestack."""
    crc = zlib.crc32(ctype + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + ctype + payload + struct.pack(">I", crc)


def make_chunk_stream(*chunks: tuple[bytes, bytes]) -> bytes:
    return PNG_SIGNATURE + b"".join(make_png_chunk(t, p) for t, p in chunks)


IHDR_1X1 = struct.pack(">IIBBBBB", 1, 1, 8, 6, 0, 0, 0)


def make_riff_chunk(ctype: bytes, payload: bytes) -> bytes:
    pad = b"\x00" if len(payload) % 2 else b""
    return ctype + struct.pack("<I", len(payload)) + payload + pad


def make_webp_blob(*chunks: tuple[bytes, bytes]) -> bytes:
    """A RIFF/WEBP wrapper around arbitrary chunks (bitstreams not validated)."""
    body = b"WEBP" + b"".join(make_riff_chunk(t, p) for t, p in chunks)
    return b"RIFF" + struct.pack("<I", len(body)) + body


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def solid(color, size=(100, 100)) -> Image.Image:
    return Image.new("RGBA", size, color)


def frame_from_image(img: Image.Image, delay_ms: int = 100, name: str = "") -> Frame:
    return Frame(
        source=png_bytes(img),
        natural_width=img.width,
        natural_height=img.height,
        delay_ms=delay_ms,
        name=name,
    )


def make_apng(images, durations, loop=0, default_image=False) -> bytes:
    """An animated PNG written by Pillow directly.

    With *default_image* the first image is stored as a default image
    outside the animation.
    """
    buf = io.BytesIO()
    images[0].save(
        buf,
        format="PNG",
        save_all=True,
        append_images=images[1:],
        duration=durations,
        loop=loop,
        default_image=default_image,
    )
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def rgb_triplet():
    """Three distinct opaque 100x100 frames."""
    return [
        solid((255, 0, 0, 255)),
        solid((0, 255, 0, 255)),
        solid((0, 0, 255, 255)),
    ]


@pytest.fixture
def static_png(rgb_triplet) -> bytes:
    return png_bytes(rgb_triplet[0])


@pytest.fixture
def animated_png(rgb_triplet) -> bytes:
    return make_apng(rgb_triplet, [100, 200, 300])


@pytest.fixture
def input_dir(tmp_path, rgb_triplet):
    """Three PNG files on disk, named in animation order."""
    d = tmp_path / "inputs"
    d.mkdir()
    for i, img in enumerate(rgb_triplet):
        img.save(str(d / f"frame_{i}.png"))
    return d
