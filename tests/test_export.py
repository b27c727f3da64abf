"""
End-to-end export tests: sequence in, container bytes out.
"""

from __future__ import annotations

import io
import logging

import numpy as np
import pytest
from PIL import Image

from conftest import frame_from_image, solid
from framestack import export as export_mod
from framestack.exceptions import EmptySequenceError, EncodingError
from framestack.export import (
    default_suffix,
    export_animation,
    render_frames,
    write_animation,
)
from framestack.png import is_animated_png, read_frame_count, read_loop_count
from framestack.sequence import FrameSequence
from framestack.types import ExportConfig, OutputFormat, Transform
from framestack.webp import read_animation


@pytest.fixture
def sequence(rgb_triplet):
    return FrameSequence(
        frame_from_image(img, delay_ms=d, name=f"f{i}")
        for i, (img, d) in enumerate(zip(rgb_triplet, [100, 200, 300]))
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class TestRenderFrames:
    def test_all_canvas_sized(self, sequence):
        sequence.append(frame_from_image(solid((9, 9, 9, 255), (30, 60))))
        images = render_frames(sequence)
        assert len(images) == 4
        assert all(img.size == (100, 100) for img in images)

    def test_base_untransformed(self, sequence):
        sequence[0].transform = Transform(offset_x=40)
        images = render_frames(sequence)
        assert images[0].getpixel((0, 0)) == (255, 0, 0, 255)

    def test_workers_same_result(self, sequence):
        sequence.set_transform(sequence[1].id, Transform(offset_x=7, rotation_deg=33))
        serial = render_frames(sequence, workers=1)
        threaded = render_frames(sequence, workers=3)
        for a, b in zip(serial, threaded):
            assert np.array_equal(np.asarray(a), np.asarray(b))

    def test_empty(self):
        with pytest.raises(EmptySequenceError):
            render_frames(FrameSequence())


# ---------------------------------------------------------------------------
# WebP
# ---------------------------------------------------------------------------

@pytest.mark.webp
class TestExportWebp:
    def test_three_frames_loop_forever(self, sequence):
        data = export_animation(sequence, ExportConfig(format=OutputFormat.WEBP))
        info = read_animation(data)
        assert info.loop_count == 0
        assert info.durations_ms == [100, 200, 300]
        assert (info.canvas_width, info.canvas_height) == (100, 100)

    def test_pillow_reads_it(self, sequence):
        cfg = ExportConfig(format=OutputFormat.WEBP, loop_count=2, webp_lossless=True)
        data = export_animation(sequence, cfg)
        with Image.open(io.BytesIO(data)) as img:
            assert img.n_frames == 3
            img.seek(1)
            frame = img.convert("RGBA")
            assert frame.getpixel((50, 50)) == (0, 255, 0, 255)

    def test_workers_identical_bytes(self, sequence):
        one = export_animation(sequence, ExportConfig(workers=1))
        many = export_animation(sequence, ExportConfig(workers=4))
        assert one == many

    def test_encoder_failure_names_frame(self, sequence, monkeypatch):
        real = export_mod.encode_webp_frame
        calls = []

        def flaky(image, quality, lossless=False):
            calls.append(1)
            if len(calls) == 2:
                raise EncodingError("boom")
            return real(image, quality, lossless)

        monkeypatch.setattr(export_mod, "encode_webp_frame", flaky)
        with pytest.raises(EncodingError) as exc_info:
            export_animation(sequence, ExportConfig())
        assert exc_info.value.frame_index == 1


# ---------------------------------------------------------------------------
# APNG
# ---------------------------------------------------------------------------

class TestExportApng:
    def test_animated_with_loop(self, sequence):
        cfg = ExportConfig(format=OutputFormat.APNG, loop_count=3)
        data = export_animation(sequence, cfg)
        assert is_animated_png(data)
        assert read_loop_count(data) == 3
        assert read_frame_count(data) == 3

    def test_pillow_reads_it(self, sequence):
        data = export_animation(sequence, ExportConfig(format=OutputFormat.APNG))
        with Image.open(io.BytesIO(data)) as img:
            assert img.info.get("loop") == 0
            assert img.n_frames == 3
            durations = []
            for i in range(3):
                img.seek(i)
                durations.append(img.info["duration"])
        assert durations == [100, 200, 300]

    def test_merged_frames_warn(self, caplog):
        red = solid((255, 0, 0, 255), (20, 20))
        seq = FrameSequence([frame_from_image(red), frame_from_image(red),
                             frame_from_image(solid((0, 0, 255, 255), (20, 20)))])
        with caplog.at_level(logging.WARNING, logger="framestack.export"):
            data = export_animation(seq, ExportConfig(format=OutputFormat.APNG))
        assert read_frame_count(data) == 2
        assert "merged" in caplog.text

    def test_all_identical_frames_warn(self, caplog):
        red = solid((255, 0, 0, 255), (20, 20))
        seq = FrameSequence([frame_from_image(red), frame_from_image(red)])
        with caplog.at_level(logging.WARNING, logger="framestack.export"):
            data = export_animation(seq, ExportConfig(format=OutputFormat.APNG))
        assert not is_animated_png(data)
        assert "1 frames for 2 inputs" in caplog.text

    def test_distinct_frames_no_warning(self, sequence, caplog):
        with caplog.at_level(logging.WARNING, logger="framestack.export"):
            export_animation(sequence, ExportConfig(format=OutputFormat.APNG))
        assert "merged" not in caplog.text

    def test_bad_compression(self, sequence):
        with pytest.raises(ValueError):
            export_animation(sequence, ExportConfig(format=OutputFormat.APNG,
                                                    png_compression=12))

    def test_os_error_wrapped(self, sequence, monkeypatch):
        def broken(*args, **kwargs):
            raise OSError("disk on fire")

        monkeypatch.setattr(export_mod, "encode_apng", broken)
        with pytest.raises(EncodingError):
            export_animation(sequence, ExportConfig(format=OutputFormat.APNG))


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------

class TestExportAnimation:
    def test_empty_sequence(self):
        for fmt in OutputFormat:
            with pytest.raises(EmptySequenceError):
                export_animation(FrameSequence(), ExportConfig(format=fmt))

    def test_default_suffix(self):
        assert default_suffix(OutputFormat.APNG) == ".png"
        assert default_suffix(OutputFormat.WEBP) == ".webp"

    def test_write_animation(self, sequence, tmp_path):
        out = tmp_path / "nested" / "anim.png"
        path = write_animation(sequence, ExportConfig(format=OutputFormat.APNG), out)
        assert path == out
        assert is_animated_png(out.read_bytes())
