"""
Color filters.

Each filter works on palette entries (indexed frames) or pixels
(true-color frames). Fully transparent entries are never modified and
palette entries in the exclude set are skipped.
"""

import math

import numpy as np

from ..core.colorspace import hsl_to_rgb, lab_to_rgb, rgb_to_hsl, rgb_to_lab
from ..core.pixels import PixelBuffer, pack_argb, unpack_argb
from ..core.types import (
    ConversionSettings,
    FilterCategory,
    Frame,
    KEY_COLOR,
    PALETTE_SIZE,
)
from .filters import FilterKind, FilterParameter, ParameterType, PixelFilter


def _exclude_parameter() -> FilterParameter:
    return FilterParameter(
        name="Excluded Colors",
        param_type=ParameterType.INDEX_LIST,
        value=[],
        description="Palette indices left untouched",
    )


class ColorFilter(PixelFilter):
    """Per-entry color adjustment honoring transparency and the exclude set."""

    def __init__(self, kind: FilterKind, name: str, description: str, parameters: dict):
        super().__init__(
            kind=kind,
            name=name,
            category=FilterCategory.COLOR,
            description=description,
            parameters=parameters,
        )

    def excluded(self) -> list[int]:
        param = self.get_parameter("exclude")
        return list(param.value) if param else []

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        buffer = PixelBuffer(frame)
        colors = buffer.colors()
        mask = buffer.editable_mask(colors, self.excluded())
        if mask.any():
            a, r, g, b = unpack_argb(colors[mask])
            r, g, b = self.adjust(r, g, b)
            colors[mask] = pack_argb(a, r, g, b)
        return buffer.rebuild(colors)

    def adjust(self, r: np.ndarray, g: np.ndarray, b: np.ndarray):
        """Return adjusted (r, g, b) int arrays in 0..255."""
        raise NotImplementedError


# ============================================================================
# PER-ENTRY ADJUSTMENTS
# ============================================================================

class BrightnessContrastGammaFilter(ColorFilter):
    """Brightness, contrast and gamma adjustment."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.BCG,
            name="Adjust brightness/contrast/gamma",
            description="Adjusts brightness, contrast and gamma of every color.",
            parameters={
                "brightness": FilterParameter(
                    name="Brightness", param_type=ParameterType.INT, value=0,
                    min_val=-100, max_val=100,
                ),
                "contrast": FilterParameter(
                    name="Contrast", param_type=ParameterType.INT, value=0,
                    min_val=-100, max_val=100,
                ),
                "gamma": FilterParameter(
                    name="Gamma", param_type=ParameterType.FLOAT, value=1.0,
                    min_val=0.01, max_val=5.0,
                ),
                "exclude": _exclude_parameter(),
            },
        )

    def adjust(self, r, g, b):
        brightness = self.value("brightness") / 100.0
        contrast = (self.value("contrast") + 100) / 100.0
        inv_gamma = 1.0 / self.value("gamma")

        def _channel(c):
            v = c / 255.0
            v = np.clip(v + brightness, 0.0, 1.0)
            v = np.clip((v - 0.5) * contrast + 0.5, 0.0, 1.0)
            v = np.clip(v ** inv_gamma, 0.0, 1.0)
            return np.clip(np.rint(v * 255.0).astype(np.int32), 0, 255)

        return _channel(r), _channel(g), _channel(b)


class HslFilter(ColorFilter):
    """Hue, saturation and lightness adjustment."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.HSL,
            name="Adjust hue/saturation/lightness",
            description="Shifts hue and changes saturation and lightness.",
            parameters={
                "hue": FilterParameter(
                    name="Hue", param_type=ParameterType.INT, value=0,
                    min_val=-180, max_val=180, description="Degrees",
                ),
                "saturation": FilterParameter(
                    name="Saturation", param_type=ParameterType.INT, value=0,
                    min_val=-100, max_val=100,
                ),
                "lightness": FilterParameter(
                    name="Lightness", param_type=ParameterType.INT, value=0,
                    min_val=-100, max_val=100,
                ),
                "exclude": _exclude_parameter(),
            },
        )

    def adjust(self, r, g, b):
        dh = self.value("hue") / 360.0
        ds = self.value("saturation") / 100.0
        dl = self.value("lightness") / 100.0
        if dh == 0.0 and ds == 0.0 and dl == 0.0:
            return r, g, b
        h, s, l = rgb_to_hsl(r, g, b)
        h = h + dh
        h = np.where(h < 0.0, h + 1.0, h)
        h = np.where(h > 1.0, h - 1.0, h)
        s = np.clip(s + ds, 0.0, 1.0)
        l = np.clip(l + dl, 0.0, 1.0)
        return hsl_to_rgb(h, s, l)


class LabFilter(ColorFilter):
    """CIELAB L/a/b adjustment."""

    LAB_L_RANGE = (-127, 127)
    LAB_A_RANGE = (-255, 255)
    LAB_B_RANGE = (-255, 255)

    def __init__(self):
        super().__init__(
            kind=FilterKind.LAB,
            name="Adjust CIELAB colors",
            description="Adjusts colors in the CIELAB color space.",
            parameters={
                "l": FilterParameter(
                    name="L", param_type=ParameterType.INT, value=0,
                    min_val=self.LAB_L_RANGE[0], max_val=self.LAB_L_RANGE[1],
                ),
                "a": FilterParameter(
                    name="a", param_type=ParameterType.INT, value=0,
                    min_val=self.LAB_A_RANGE[0], max_val=self.LAB_A_RANGE[1],
                ),
                "b": FilterParameter(
                    name="b", param_type=ParameterType.INT, value=0,
                    min_val=self.LAB_B_RANGE[0], max_val=self.LAB_B_RANGE[1],
                ),
                "exclude": _exclude_parameter(),
            },
        )

    def adjust(self, r, g, b):
        dl, da, db = self.value("l"), self.value("a"), self.value("b")
        if dl == 0 and da == 0 and db == 0:
            return r, g, b
        lum, a, bb = rgb_to_lab(r, g, b)
        lum = np.clip(lum + dl, *self.LAB_L_RANGE)
        a = np.clip(a + da, *self.LAB_A_RANGE)
        bb = np.clip(bb + db, *self.LAB_B_RANGE)
        return lab_to_rgb(lum, a, bb)


class BalanceFilter(ColorFilter):
    """Per-channel color balance."""

    def __init__(self):
        channel = dict(param_type=ParameterType.INT, value=0, min_val=-255, max_val=255)
        super().__init__(
            kind=FilterKind.BALANCE,
            name="Adjust color balance",
            description="Adds a fixed amount to the red, green and blue channels.",
            parameters={
                "red": FilterParameter(name="Red", **channel),
                "green": FilterParameter(name="Green", **channel),
                "blue": FilterParameter(name="Blue", **channel),
                "exclude": _exclude_parameter(),
            },
        )

    def adjust(self, r, g, b):
        return (
            np.clip(r + self.value("red"), 0, 255),
            np.clip(g + self.value("green"), 0, 255),
            np.clip(b + self.value("blue"), 0, 255),
        )


class SwapFilter(ColorFilter):
    """Reorders the color channels."""

    SWAP_TYPES = ["RBG", "GRB", "GBR", "BGR", "BRG"]
    # bit shifts applied to the red, green and blue fields
    SHIFTS = [
        (0, -8, 8),
        (-8, 8, 0),
        (-16, 8, 8),
        (-16, 0, 16),
        (-8, -8, 16),
    ]

    def __init__(self):
        super().__init__(
            kind=FilterKind.SWAP,
            name="Swap color channels",
            description="Swaps the red, green and blue channels.",
            parameters={
                "type": FilterParameter(
                    name="Swap", param_type=ParameterType.INT, value=0,
                    min_val=0, max_val=len(self.SWAP_TYPES) - 1, options=self.SWAP_TYPES,
                ),
                "exclude": _exclude_parameter(),
            },
        )

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        buffer = PixelBuffer(frame)
        colors = buffer.colors()
        mask = buffer.editable_mask(colors, self.excluded())
        selected = colors[mask]
        result = selected & np.uint32(0xFF000000)
        for field_mask, shift in zip((0xFF0000, 0xFF00, 0xFF), self.SHIFTS[self.value("type")]):
            part = selected & np.uint32(field_mask)
            if shift < 0:
                part = part >> np.uint32(-shift)
            elif shift > 0:
                part = part << np.uint32(shift)
            result |= part & np.uint32(0x00FFFFFF)
        colors[mask] = result
        return buffer.rebuild(colors)


class InvertFilter(ColorFilter):
    """Inverts colors; alpha is preserved."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.INVERT,
            name="Invert colors",
            description="Replaces each color channel by its complement.",
            parameters={"exclude": _exclude_parameter()},
        )

    def adjust(self, r, g, b):
        return 255 - r, 255 - g, 255 - b


# ============================================================================
# WHOLE-FRAME COLOR EFFECTS
# ============================================================================

def gaussian_kernel(radius: float) -> np.ndarray:
    """
    Square blur kernel of size 2*ceil(radius)+1 normalized to sum 1.

    A fractional radius attenuates the outermost ring by its fraction.
    """
    size = int(math.ceil(radius))
    sigma = max(radius / 2.0, 0.1)
    fraction = radius % 1.0
    edge_weight = fraction if fraction != 0.0 else 1.0

    offsets = np.arange(-size, size + 1)
    ring = np.where(np.abs(offsets) < size, 1.0, np.where(np.abs(offsets) == size, edge_weight, 0.0))
    dx = offsets[None, :].astype(np.float64)
    dy = offsets[:, None].astype(np.float64)
    kernel = np.exp(-(dx * dx + dy * dy) / (2.0 * sigma * sigma)) / (2.0 * math.pi * sigma * sigma)
    kernel *= ring[None, :] * ring[:, None]
    return kernel / kernel.sum()


class BlurFilter(ColorFilter):
    """Gaussian blur for true-color frames."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.BLUR,
            name="Gaussian blur",
            description="Blurs true-color frames. Palette-based frames are not affected.",
            parameters={
                "radius": FilterParameter(
                    name="Radius", param_type=ParameterType.FLOAT, value=2.0,
                    min_val=0.0, max_val=16.0,
                ),
            },
        )

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        radius = float(self.value("radius"))
        if frame.is_indexed or radius <= 0.0:
            return frame.copy()

        kernel = gaussian_kernel(radius)
        size = kernel.shape[0] // 2
        height, width = frame.pixels.shape
        channels = np.stack(unpack_argb(frame.pixels), axis=0).astype(np.float64)
        padded = np.pad(channels, ((0, 0), (size, size), (size, size)), mode="edge")
        acc = np.zeros_like(channels)
        for ky in range(kernel.shape[0]):
            for kx in range(kernel.shape[1]):
                weight = kernel[ky, kx]
                if weight == 0.0:
                    continue
                acc += weight * padded[:, ky:ky + height, kx:kx + width]
        acc = np.clip(acc, 0.0, 255.0).astype(np.int32)
        return frame.derive(pack_argb(acc[0], acc[1], acc[2], acc[3]))


class EdgeDetectFilter(ColorFilter):
    """Sobel edge detection producing a grayscale result."""

    KERNEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float64)
    KERNEL_Y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=np.float64)

    def __init__(self):
        super().__init__(
            kind=FilterKind.EDGE_DETECT,
            name="Edge detection",
            description="Detects edges and renders them as grayscale.",
            parameters={
                "transparent": FilterParameter(
                    name="Transparent Background", param_type=ParameterType.BOOL, value=False,
                ),
                "threshold": FilterParameter(
                    name="Threshold", param_type=ParameterType.INT, value=0,
                    min_val=0, max_val=254,
                ),
            },
        )

    @classmethod
    def magnitude(cls, frame: Frame) -> np.ndarray:
        """Edge magnitude normalized to 0..255; the outer border stays 0."""
        buffer = PixelBuffer(frame)
        if frame.is_indexed:
            plane = buffer.colors()[frame.pixels]
        else:
            plane = frame.pixels
        _, r, g, b = unpack_argb(plane)
        gray = np.round(0.2989 * r + 0.5870 * g + 0.1140 * b)
        height, width = gray.shape
        result = np.zeros((height, width), dtype=np.int64)
        if width < 3 or height < 3:
            return result
        gx = np.zeros((height - 2, width - 2))
        gy = np.zeros((height - 2, width - 2))
        for ky in range(3):
            for kx in range(3):
                window = gray[ky:ky + height - 2, kx:kx + width - 2]
                gx += cls.KERNEL_X[ky, kx] * window
                gy += cls.KERNEL_Y[ky, kx] * window
        result[1:-1, 1:-1] = np.sqrt(gx * gx + gy * gy).astype(np.int64)
        peak = result.max()
        if peak > 0:
            result = result * 255 // peak
        return result

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        values = self.magnitude(frame)
        transparent = self.value("transparent")
        if frame.is_indexed:
            palette = np.array(
                [0xFF000000 | (i << 16) | (i << 8) | i for i in range(PALETTE_SIZE)],
                dtype=np.uint32,
            )
            palette[0] = 0xFF000000 | KEY_COLOR
            palette[1] = 0xFF000000
            pixels = np.clip(values, 1, 255).astype(np.uint8)
            if transparent:
                pixels[values <= self.value("threshold")] = 0
            return frame.derive(pixels, palette=palette, palette_has_alpha=False,
                                transparent_index=0)
        v = values.astype(np.int32)
        alpha = v if transparent else np.full_like(v, 255)
        return frame.derive(pack_argb(alpha, v, v, v))


class ReplacePaletteFilter(ColorFilter):
    """Replaces the palette of indexed frames."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.REPLACE,
            name="Replace palette",
            description="Substitutes the color table; pixel indices are unchanged.",
            parameters={
                "palette": FilterParameter(
                    name="Palette", param_type=ParameterType.COLOR_LIST, value=[],
                    description="Up to 256 ARGB colors; missing entries are black",
                ),
            },
        )

    def set_palette(self, palette) -> None:
        """Use an imported palette (e.g. from PaletteImporter)."""
        self.set_parameter("palette", [int(c) & 0xFFFFFFFF for c in palette][:PALETTE_SIZE])

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        if not frame.is_indexed:
            return frame.copy()
        palette = np.zeros(PALETTE_SIZE, dtype=np.uint32)
        colors = self.value("palette")
        palette[:len(colors)] = np.asarray(colors, dtype=np.uint32)
        if not frame.palette_has_alpha:
            palette |= np.uint32(0xFF000000)
        return frame.derive(frame.pixels.copy(), palette=palette)
