"""Tests for the overlay output filter."""

import numpy as np
import pytest

from bamfilter.core import ConversionSettings, Cycle, UnsupportedCombinationError
from bamfilter.processing import OverlayMode, OverlayOutputFilter
from bamfilter.processing.overlay import compose_frame, is_compatible, overlay_pixels

from conftest import make_indexed, make_set, make_truecolor

BLUE = 0xFF0000FF
RED = 0xFFFF0000
CLEAR = 0x00000000


class TestBlendModes:
    """Pixel merging rules."""

    @pytest.fixture
    def planes(self):
        src = np.array([BLUE, CLEAR, BLUE, CLEAR], dtype=np.uint32)
        dst = np.array([CLEAR, RED, RED, CLEAR], dtype=np.uint32)
        return src, dst

    def test_normal(self, planes):
        assert overlay_pixels(*planes, OverlayMode.NORMAL).tolist() == [BLUE, RED, RED, CLEAR]

    def test_forced(self, planes):
        assert overlay_pixels(*planes, OverlayMode.FORCED).tolist() == [CLEAR, RED, RED, CLEAR]

    def test_inclusive(self, planes):
        assert overlay_pixels(*planes, OverlayMode.INCLUSIVE).tolist() == [CLEAR, CLEAR, RED, CLEAR]

    def test_exclusive(self, planes):
        assert overlay_pixels(*planes, OverlayMode.EXCLUSIVE).tolist() == [BLUE, RED, BLUE, CLEAR]

    def test_semi_transparent_overlay_is_blended(self):
        src = np.array([CLEAR], dtype=np.uint32)
        dst = np.array([0x80FFFFFF], dtype=np.uint32)
        assert overlay_pixels(src, dst, OverlayMode.NORMAL)[0] == 0x807F7F7F


class TestCompose:
    """Drawing overlay frames onto a frame."""

    def test_indexed_frame_keeps_canvas_and_palette(self):
        source = make_indexed([[10, 10], [10, 10]], center=(1, 1))
        layer = make_indexed([[20]], center=(0, 0))
        result = compose_frame(source, [(layer, OverlayMode.NORMAL)])
        assert result.pixels.tolist() == [[10, 10], [10, 20]]
        assert (result.center_x, result.center_y) == (1, 1)
        assert np.array_equal(result.palette, source.palette)

    def test_content_outside_the_canvas_is_clipped(self):
        source = make_indexed([[10]])
        layer = make_indexed([[20]], center=(5, 5))
        result = compose_frame(source, [(layer, OverlayMode.FORCED)])
        assert result.pixels.tolist() == [[10]]

    def test_truecolor_layers_in_order(self):
        source = make_truecolor([[CLEAR, CLEAR]])
        red = make_truecolor([[RED, CLEAR]])
        blue = make_truecolor([[BLUE, BLUE]])
        result = compose_frame(source, [(red, OverlayMode.NORMAL), (blue, OverlayMode.EXCLUSIVE)])
        assert result.pixels.tolist() == [[RED, BLUE]]

    def test_compatibility(self):
        frame = make_indexed([[1]])
        source = make_set(frame, frame, cycles=[Cycle([0, 1]), Cycle([0])])
        assert is_compatible(source, make_set(frame, cycles=[Cycle([0, 0]), Cycle([0]), Cycle([0])]))
        assert not is_compatible(source, make_set(frame, cycles=[Cycle([0, 0])]))
        assert not is_compatible(source, make_set(frame, cycles=[Cycle([0]), Cycle([0])]))


class TestOverlayConfiguration:
    """Entries encoded as path/mode field pairs."""

    def test_round_trip_with_separator_in_path(self):
        overlay = OverlayOutputFilter()
        overlay.add_entry("/data/a;b.bam", OverlayMode.INCLUSIVE)
        overlay.add_entry("/data/c.bam")
        config = overlay.get_configuration()
        assert config == "/data/a%3Bb.bam;2;/data/c.bam;0"
        restored = OverlayOutputFilter()
        assert restored.set_configuration(config)
        assert restored.entries == overlay.entries

    def test_missing_mode_defaults_to_normal(self):
        overlay = OverlayOutputFilter()
        assert overlay.set_configuration("/data/c.bam")
        assert overlay.entries[0].mode == OverlayMode.NORMAL

    @pytest.mark.parametrize("config", ["/data/c.bam;9", "/data/c.bam;x", " ;1", None])
    def test_invalid_configuration_is_rejected(self, config):
        overlay = OverlayOutputFilter()
        overlay.add_entry("/data/keep.bam", OverlayMode.FORCED)
        assert not overlay.set_configuration(config)
        assert [e.path for e in overlay.entries] == ["/data/keep.bam"]

    def test_entry_editing(self):
        overlay = OverlayOutputFilter()
        for name in ("a", "b", "c"):
            overlay.add_entry(name)
        overlay.move_entry(2, 0)
        overlay.remove_entry(1)
        assert [e.path for e in overlay.entries] == ["c", "b"]


class TestOverlayOutput:
    """Loading overlay sets and encoding the composed result."""

    @pytest.fixture
    def source(self):
        first = make_indexed([[10, 10]])
        second = make_indexed([[30, 30]])
        return make_set(first, second, cycles=[Cycle([0, 1, 0], "walk")])

    @pytest.fixture
    def overlay_set(self):
        return make_set(make_indexed([[0, 20]]), cycles=[Cycle([0, 0, 0])])

    def _settings(self, tmp_path, encoder, loader):
        return ConversionSettings(
            output_path=tmp_path / "out.bam",
            indexed_encoder=encoder,
            frame_set_loader=loader,
        )

    def test_frames_are_composed_per_combination(self, tmp_path, encoder, source, overlay_set):
        loaded = []

        def loader(path):
            loaded.append(path.name)
            return overlay_set

        overlay = OverlayOutputFilter()
        overlay.add_entry(tmp_path / "layer.bam")
        results = overlay.process_frame_set(source, self._settings(tmp_path, encoder, loader))
        assert [r.success for r in results] == [True]
        assert loaded == ["layer.bam"]

        composed = encoder.indexed_calls[0][0]
        assert composed.frame_count() == 2
        assert composed.cycles == [Cycle([0, 1, 0], "walk")]
        assert composed.frames[0].pixels.tolist() == [[10, 20]]
        assert composed.frames[1].pixels.tolist() == [[30, 20]]

    def test_incompatible_overlay(self, tmp_path, encoder, source):
        short = make_set(make_indexed([[20]]), cycles=[Cycle([0])])
        overlay = OverlayOutputFilter()
        overlay.add_entry("short.bam")
        with pytest.raises(UnsupportedCombinationError):
            overlay.process_frame_set(source, self._settings(tmp_path, encoder, lambda p: short))
        assert encoder.indexed_calls == []

    def test_without_entries_encodes_unchanged(self, legacy_settings, encoder, source):
        OverlayOutputFilter().process_frame_set(source, legacy_settings)
        assert encoder.indexed_calls[0][0] is source

    def test_preflight_needs_a_loader(self, legacy_settings, source):
        overlay = OverlayOutputFilter()
        assert overlay.preflight(source, legacy_settings) == []
        overlay.add_entry("layer.bam")
        assert [i.code for i in overlay.preflight(source, legacy_settings)] == ["NO_OVERLAY_LOADER"]
