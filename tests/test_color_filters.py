"""Tests for color filters and filter configuration strings."""

import numpy as np
import pytest

from bamfilter.core import ConversionSettings
from bamfilter.processing import (
    FILTER_REGISTRY,
    BalanceFilter,
    BlurFilter,
    BrightnessContrastGammaFilter,
    EdgeDetectFilter,
    HslFilter,
    InvertFilter,
    LabFilter,
    ReplacePaletteFilter,
    SwapFilter,
    create_filter,
)
from bamfilter.processing.color_filters import gaussian_kernel

from conftest import make_truecolor

SETTINGS = ConversionSettings()


class TestConfiguration:
    """Configuration strings of every registered filter."""

    @pytest.mark.parametrize("kind", list(FILTER_REGISTRY))
    def test_default_configuration_round_trips(self, kind):
        source = create_filter(kind)
        config = source.get_configuration()
        target = create_filter(kind)
        assert target.set_configuration(config)
        assert target.get_configuration() == config

    @pytest.mark.parametrize("kind, config", [
        ("bcg", "-100;100;0.25;[0,255]"),
        ("hsl", "-180;100;-37;[7]"),
        ("lab", "127;-255;255;[]"),
        ("balance", "-255;128;255;[1,2,3]"),
        ("replace", "[4278190080,16711935,0]"),
        ("swap", "4;[9]"),
        ("invert", "[0,12]"),
        ("blur", "16.0"),
        ("edge_detect", "true;254"),
        ("resize", "1;2.5;false"),
        ("rotate", "1;2;false"),
        ("mirror", "false;true;false"),
        ("trim", "true;false;true;false;12;false"),
        ("center", "256;0;3;1;false;512;7"),
        ("output_split", "7;3;false;6;100000;10000"),
        ("output_image", "1;9;false"),
        ("output_gif", "60;false"),
        ("output_overlay", "a%3Bb.bam;3;c.bam;0"),
    ])
    def test_custom_configuration_round_trips(self, kind, config):
        source = create_filter(kind)
        assert source.set_configuration(config)
        assert source.get_configuration() == config
        target = create_filter(kind)
        assert target.set_configuration(source.get_configuration())
        assert target.get_configuration() == config

    def test_configuration_is_positional(self):
        bcg = BrightnessContrastGammaFilter()
        assert bcg.set_configuration("10;-20;2.5;[4,2]")
        assert bcg.value("brightness") == 10
        assert bcg.value("contrast") == -20
        assert bcg.value("gamma") == 2.5
        assert bcg.value("exclude") == [2, 4]
        assert bcg.get_configuration() == "10;-20;2.5;[2,4]"

    def test_missing_trailing_fields_keep_values(self):
        balance = BalanceFilter()
        assert balance.set_configuration("25")
        assert balance.get_configuration() == "25;0;0;[]"

    @pytest.mark.parametrize("config", [None, "10;500;1.0;[]", "x", "0;0;0.0;[]", "0;0;1.0;[300]"])
    def test_rejected_configuration_leaves_state_unchanged(self, config):
        bcg = BrightnessContrastGammaFilter()
        bcg.set_configuration("5;5;1.5;[1]")
        before = bcg.get_configuration()
        assert not bcg.set_configuration(config)
        assert bcg.get_configuration() == before

    def test_set_parameter_validates(self):
        hsl = HslFilter()
        assert hsl.set_parameter("hue", 90)
        assert not hsl.set_parameter("hue", 400)
        assert not hsl.set_parameter("unknown", 1)
        assert hsl.value("hue") == 90

    def test_clone_is_independent(self):
        balance = BalanceFilter()
        copy = balance.clone()
        copy.set_parameter("red", 40)
        assert balance.value("red") == 0


class TestPaletteAdjustments:
    """Per-entry adjustments on indexed and true-color frames."""

    def test_balance_shifts_channels(self, indexed_frame):
        balance = BalanceFilter()
        balance.set_configuration("50;0;-20;[]")
        result = balance.process_frame(indexed_frame, SETTINGS)
        assert result.palette[10] == 0xFF3C0A00
        assert np.array_equal(result.pixels, indexed_frame.pixels)

    def test_balance_is_not_cumulative(self, indexed_frame):
        """Changing a parameter back reproduces the first result."""
        balance = BalanceFilter()
        balance.set_parameter("red", 10)
        first = balance.process_frame(indexed_frame, SETTINGS)
        balance.set_parameter("red", 60)
        balance.process_frame(indexed_frame, SETTINGS)
        balance.set_parameter("red", 10)
        again = balance.process_frame(indexed_frame, SETTINGS)
        assert np.array_equal(first.palette, again.palette)

    def test_excluded_entries_are_skipped(self, indexed_frame):
        balance = BalanceFilter()
        balance.set_configuration("50;0;0;[10]")
        result = balance.process_frame(indexed_frame, SETTINGS)
        assert result.palette[10] == indexed_frame.palette[10]
        assert result.palette[20] == 0xFF461414

    def test_source_frame_is_not_modified(self, indexed_frame):
        before = indexed_frame.palette.copy()
        InvertFilter().process_frame(indexed_frame, SETTINGS)
        assert np.array_equal(indexed_frame.palette, before)

    def test_invert_twice_is_identity(self, truecolor_frame):
        invert = InvertFilter()
        once = invert.process_frame(truecolor_frame, SETTINGS)
        assert once.pixels[1, 1] == 0xFF5F4F3F
        twice = invert.process_frame(once, SETTINGS)
        assert np.array_equal(twice.pixels, truecolor_frame.pixels)

    @pytest.mark.parametrize("factory, config", [
        (BrightnessContrastGammaFilter, "50;50;2.0;[]"),
        (HslFilter, "90;-50;20;[]"),
        (LabFilter, "20;30;-30;[]"),
        (BalanceFilter, "100;-100;100;[]"),
        (SwapFilter, "3;[]"),
        (InvertFilter, "[]"),
    ])
    def test_transparent_entries_are_untouched(self, factory, config, indexed_frame, truecolor_frame):
        f = factory()
        assert f.set_configuration(config)
        assert f.process_frame(truecolor_frame, SETTINGS).pixels[0, 0] == 0x00123456
        assert f.process_frame(indexed_frame, SETTINGS).palette[0] == indexed_frame.palette[0]

    def test_alpha_is_preserved(self, truecolor_frame):
        balance = BalanceFilter()
        balance.set_configuration("10;10;10;[]")
        frame = balance.process_frame(truecolor_frame, SETTINGS)
        assert np.array_equal(frame.pixels >> 24, truecolor_frame.pixels >> 24)

    def test_neutral_settings_are_identity(self, truecolor_frame):
        for factory in (BrightnessContrastGammaFilter, HslFilter, LabFilter, BalanceFilter):
            result = factory().process_frame(truecolor_frame, SETTINGS)
            assert np.array_equal(result.pixels, truecolor_frame.pixels), factory.__name__

    def test_hue_rotation(self):
        frame = make_truecolor([[0xFFFF0000]])
        hsl = HslFilter()
        hsl.set_parameter("hue", 180)
        pixel = int(hsl.process_frame(frame, SETTINGS).pixels[0, 0])
        assert (pixel >> 16) & 0xFF == 0
        assert (pixel >> 8) & 0xFF >= 254
        assert pixel & 0xFF >= 254

    def test_brightness_saturates(self):
        frame = make_truecolor([[0xFF808080]])
        bcg = BrightnessContrastGammaFilter()
        bcg.set_parameter("brightness", 100)
        assert bcg.process_frame(frame, SETTINGS).pixels[0, 0] == 0xFFFFFFFF


class TestSwap:
    """Channel reordering."""

    @pytest.mark.parametrize("swap_type, expected", [
        (0, 0xFF113322),  # RBG
        (1, 0xFF221133),  # GRB
        (2, 0xFF223311),  # GBR
        (3, 0xFF332211),  # BGR
        (4, 0xFF331122),  # BRG
    ])
    def test_swap_types(self, swap_type, expected):
        swap = SwapFilter()
        swap.set_parameter("type", swap_type)
        frame = make_truecolor([[0xFF112233]])
        assert swap.process_frame(frame, SETTINGS).pixels[0, 0] == expected


class TestBlur:
    """Gaussian blur."""

    def test_kernel_is_normalized(self):
        for radius in (0.5, 1.0, 2.5, 16.0):
            kernel = gaussian_kernel(radius)
            assert kernel.shape[0] == kernel.shape[1]
            assert abs(kernel.sum() - 1.0) < 1e-9

    def test_zero_radius_is_identity(self, truecolor_frame):
        blur = BlurFilter()
        assert blur.set_configuration("0.0")
        result = blur.process_frame(truecolor_frame, SETTINGS)
        assert np.array_equal(result.pixels, truecolor_frame.pixels)

    def test_indexed_frames_are_unchanged(self, indexed_frame):
        result = BlurFilter().process_frame(indexed_frame, SETTINGS)
        assert np.array_equal(result.pixels, indexed_frame.pixels)
        assert np.array_equal(result.palette, indexed_frame.palette)

    def test_blur_spreads_a_point(self):
        plane = np.full((5, 5), 0xFF000000, dtype=np.uint32)
        plane[2, 2] = 0xFFFFFFFF
        result = BlurFilter().process_frame(make_truecolor(plane), SETTINGS)
        assert (int(result.pixels[2, 2]) >> 16) & 0xFF < 255
        assert (int(result.pixels[2, 1]) >> 16) & 0xFF > 0


class TestEdgeDetect:
    """Sobel edge detection."""

    def test_uniform_frame_has_no_edges(self):
        frame = make_truecolor(np.full((5, 5), 0xFF336699, dtype=np.uint32))
        result = EdgeDetectFilter().process_frame(frame, SETTINGS)
        assert np.all(result.pixels == 0xFF000000)

    def test_step_edge_is_detected(self):
        plane = np.full((5, 6), 0xFF000000, dtype=np.uint32)
        plane[:, 3:] = 0xFFFFFFFF
        values = EdgeDetectFilter.magnitude(make_truecolor(plane))
        assert values.max() == 255
        assert values[2, 1] == 0
        assert values[0].max() == 0

    def test_indexed_result_uses_gray_palette(self, indexed_frame):
        edge = EdgeDetectFilter()
        edge.set_configuration("true;0")
        result = edge.process_frame(indexed_frame, SETTINGS)
        assert result.is_indexed
        assert result.transparent_index == 0
        assert result.palette[128] == 0xFF808080
        # border pixels have no magnitude and become transparent
        assert np.all(result.pixels[0] == 0)


class TestReplacePalette:
    """Palette replacement."""

    def test_replaces_palette_only(self, indexed_frame):
        replace = ReplacePaletteFilter()
        replace.set_palette([0xFF00FF00, 0xFFFF0000, 0xFF0000FF])
        result = replace.process_frame(indexed_frame, SETTINGS)
        assert np.array_equal(result.pixels, indexed_frame.pixels)
        assert result.palette[1] == 0xFFFF0000
        assert result.palette[3] == 0xFF000000

    def test_truecolor_frames_are_unchanged(self, truecolor_frame):
        replace = ReplacePaletteFilter()
        replace.set_palette([0xFFFF0000])
        result = replace.process_frame(truecolor_frame, SETTINGS)
        assert np.array_equal(result.pixels, truecolor_frame.pixels)

    def test_configuration_holds_the_colors(self):
        replace = ReplacePaletteFilter()
        assert replace.set_configuration("[-16777216,255]")
        assert replace.value("palette") == [0xFF000000, 0xFF]
