"""Tests for pixel access helpers and color space conversion."""

import numpy as np

from bamfilter.core import KEY_COLOR, PixelBuffer
from bamfilter.core.colorspace import hsl_to_rgb, lab_to_rgb, rgb_to_hsl, rgb_to_lab
from bamfilter.core.pixels import (
    effective_palette,
    find_key_color,
    nearest_palette_indices,
    opacity_mask,
    pack_argb,
    to_argb_plane,
    transparent_index,
    unpack_argb,
)

from conftest import gray_palette, make_indexed


class TestPalette:
    """Alpha handling of palette entries."""

    def test_key_color_is_transparent(self, indexed_frame):
        palette = effective_palette(indexed_frame)
        assert palette[0] >> 24 == 0
        assert np.all(palette[1:] >> 24 == 0xFF)

    def test_first_key_entry_only(self):
        palette = gray_palette()
        palette[0] = 0xFF000000
        palette[5] = 0xFF000000 | KEY_COLOR
        palette[9] = KEY_COLOR
        frame = make_indexed([[5, 9]], palette=palette)
        result = effective_palette(frame)
        assert find_key_color(palette) == 5
        assert result[5] >> 24 == 0
        assert result[9] >> 24 == 0xFF

    def test_flagged_transparent_index(self):
        frame = make_indexed([[3]])
        frame.transparent_index = 3
        assert transparent_index(frame) == 3
        assert effective_palette(frame)[3] >> 24 == 0

    def test_palette_with_alpha_is_used_verbatim(self):
        palette = gray_palette()
        palette[0] = 0xFF000000
        palette[4] = 0x80404040
        frame = make_indexed([[4]], palette=palette, has_alpha=True)
        assert effective_palette(frame)[4] == 0x80404040

    def test_opacity_mask(self, indexed_frame, truecolor_frame):
        assert not opacity_mask(indexed_frame)[:, 0].any()
        assert opacity_mask(indexed_frame)[:, 1:].all()
        assert not opacity_mask(truecolor_frame)[0, 0]
        assert opacity_mask(truecolor_frame)[2, 2]

    def test_argb_plane(self, indexed_frame):
        plane = to_argb_plane(indexed_frame)
        assert plane.shape == (4, 4)
        assert plane[0, 1] == 0xFF0A0A0A


class TestNearestColor:
    """Mapping ARGB colors back to palette indices."""

    def test_exact_and_close_colors(self):
        colors = np.array([0xFF0A0A0A, 0xFF0B0A09], dtype=np.uint32)
        indices = nearest_palette_indices(colors, effective_palette(make_indexed([[0]])), 0)
        assert list(indices) == [10, 10]

    def test_transparent_colors_map_to_transparent_index(self):
        colors = np.array([0x00FFFFFF], dtype=np.uint32)
        assert nearest_palette_indices(colors, gray_palette(), 0)[0] == 0

    def test_transparent_entry_is_never_chosen(self):
        """A visible color close to the key color still maps to a visible entry."""
        colors = np.array([0xFF00FF00], dtype=np.uint32)
        assert nearest_palette_indices(colors, gray_palette(), 0)[0] != 0


class TestPixelBuffer:
    """Uniform access to indexed and true-color frames."""

    def test_indexed_access(self, indexed_frame):
        buffer = PixelBuffer(indexed_frame)
        assert buffer.is_indexed()
        assert buffer.palette_size() == 256
        assert buffer.raw_index(1, 0) == 10
        assert buffer.argb(1, 0) == 0xFF0A0A0A

    def test_truecolor_access(self, truecolor_frame):
        buffer = PixelBuffer(truecolor_frame)
        assert not buffer.is_indexed()
        assert buffer.palette_size() == 0
        assert buffer.argb(2, 0) == 0x80405060

    def test_rebuild_without_changes_keeps_palette_bits(self, indexed_frame):
        buffer = PixelBuffer(indexed_frame)
        rebuilt = buffer.rebuild(buffer.colors())
        assert np.array_equal(rebuilt.palette, indexed_frame.palette)
        assert np.array_equal(rebuilt.pixels, indexed_frame.pixels)
        assert rebuilt.pixels is not indexed_frame.pixels

    def test_editable_mask_skips_transparent_and_excluded(self, indexed_frame):
        buffer = PixelBuffer(indexed_frame)
        mask = buffer.editable_mask(buffer.colors(), [10, 999])
        assert not mask[0]
        assert not mask[10]
        assert mask[20]

    def test_pack_unpack(self):
        values = np.array([0x80102030], dtype=np.uint32)
        a, r, g, b = unpack_argb(values)
        assert (a[0], r[0], g[0], b[0]) == (0x80, 0x10, 0x20, 0x30)
        assert pack_argb(a, r + 500, g, b - 500)[0] == 0x80FF2000


class TestColorSpace:
    """HSL and CIELAB conversions."""

    def test_hsl_round_trip(self):
        r = np.array([255, 0, 12, 200, 128])
        g = np.array([0, 255, 34, 100, 128])
        b = np.array([0, 0, 56, 50, 128])
        r2, g2, b2 = hsl_to_rgb(*rgb_to_hsl(r, g, b))
        assert np.all(np.abs(r2 - r) <= 1)
        assert np.all(np.abs(g2 - g) <= 1)
        assert np.all(np.abs(b2 - b) <= 1)

    def test_gray_has_no_saturation(self):
        h, s, l = rgb_to_hsl(np.array([128]), np.array([128]), np.array([128]))
        assert s[0] == 0.0
        assert abs(l[0] - 128 / 255) < 1e-9

    def test_lab_round_trip(self):
        r = np.array([255, 0, 12, 200, 0])
        g = np.array([0, 255, 34, 100, 0])
        b = np.array([0, 0, 56, 50, 0])
        r2, g2, b2 = lab_to_rgb(*rgb_to_lab(r, g, b))
        assert np.all(np.abs(r2 - r) <= 1)
        assert np.all(np.abs(g2 - g) <= 1)
        assert np.all(np.abs(b2 - b) <= 1)

    def test_lab_white_point(self):
        lum, a, b = rgb_to_lab(np.array([255]), np.array([255]), np.array([255]))
        assert abs(lum[0] - 100.0) < 0.1
        assert abs(a[0]) < 0.5
        assert abs(b[0]) < 0.5
