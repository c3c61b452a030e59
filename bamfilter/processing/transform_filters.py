"""
Transform filters.

Geometric operations on single frames. The representation (palette or
true-color) of a frame is preserved; only pixel positions and the pivot
change.
"""

import logging
from typing import Optional

import numpy as np

from ..core.pixels import empty_plane, opacity_mask, pack_argb, transparent_index, unpack_argb
from ..core.types import ConversionSettings, FilterCategory, Frame, FrameSet
from ..oiio import OiioAdapter
from .filters import FilterKind, FilterParameter, ParameterType, PixelFilter

logger = logging.getLogger(__name__)


class TransformFilter(PixelFilter):
    """Common base for transform filters."""

    def __init__(self, kind: FilterKind, name: str, description: str, parameters: dict):
        super().__init__(
            kind=kind,
            name=name,
            category=FilterCategory.TRANSFORM,
            description=description,
            parameters=parameters,
        )


def _adjust_center_parameter(description: str = "Move the pivot with the content") -> FilterParameter:
    return FilterParameter(
        name="Adjust Center", param_type=ParameterType.BOOL, value=True,
        description=description,
    )


# ============================================================================
# RESIZE
# ============================================================================

def _neighbours(plane: np.ndarray, border) -> dict:
    """3x3 neighbourhood views of ``plane`` padded with ``border``."""
    padded = np.pad(plane, 1, mode="constant", constant_values=border)
    h, w = plane.shape
    names = ("a", "b", "c", "d", "e", "f", "g", "h", "i")
    views = {}
    for n, name in enumerate(names):
        dy, dx = divmod(n, 3)
        views[name] = padded[dy:dy + h, dx:dx + w]
    return views


def scale2x(plane: np.ndarray, border) -> np.ndarray:
    """Scale2x (EPX) pixel-art magnification."""
    v = _neighbours(plane, border)
    b, d, e, f, h = v["b"], v["d"], v["e"], v["f"], v["h"]
    out = np.empty((plane.shape[0] * 2, plane.shape[1] * 2), dtype=plane.dtype)
    out[0::2, 0::2] = np.where((d == b) & (b != f) & (d != h), d, e)
    out[0::2, 1::2] = np.where((b == f) & (b != d) & (f != h), f, e)
    out[1::2, 0::2] = np.where((d == h) & (d != b) & (h != f), d, e)
    out[1::2, 1::2] = np.where((h == f) & (d != h) & (b != f), f, e)
    return out


def scale3x(plane: np.ndarray, border) -> np.ndarray:
    """Scale3x pixel-art magnification."""
    v = _neighbours(plane, border)
    a, b, c, d, e, f, g, h, i = (v[k] for k in "abcdefghi")
    db = (d == b) & (b != f) & (d != h)
    bf = (b == f) & (b != d) & (f != h)
    dh = (d == h) & (d != b) & (h != f)
    hf = (h == f) & (d != h) & (b != f)
    out = np.empty((plane.shape[0] * 3, plane.shape[1] * 3), dtype=plane.dtype)
    out[0::3, 0::3] = np.where(db, d, e)
    out[0::3, 1::3] = np.where((db & (e != c)) | (bf & (e != a)), b, e)
    out[0::3, 2::3] = np.where(bf, f, e)
    out[1::3, 0::3] = np.where((db & (e != g)) | (dh & (e != a)), d, e)
    out[1::3, 1::3] = e
    out[1::3, 2::3] = np.where((bf & (e != i)) | (hf & (e != c)), f, e)
    out[2::3, 0::3] = np.where(dh, d, e)
    out[2::3, 1::3] = np.where((dh & (e != i)) | (hf & (e != g)), h, e)
    out[2::3, 2::3] = np.where(hf, f, e)
    return out


class ResizeFilter(TransformFilter):
    """Scales frames by a factor."""

    TYPE_NEAREST = 0
    TYPE_BILINEAR = 1
    TYPE_BICUBIC = 2
    TYPE_SCALEX = 3
    SCALING_TYPES = ["Nearest neighbor", "Bilinear", "Bicubic", "Scale2x/3x/4x"]

    def __init__(self):
        super().__init__(
            kind=FilterKind.RESIZE,
            name="Resize BAM frames",
            description=(
                "Adjusts the size of each frame. Bilinear and bicubic scaling "
                "only apply to true-color frames."
            ),
            parameters={
                "type": FilterParameter(
                    name="Scaling Type", param_type=ParameterType.INT, value=0,
                    min_val=0, max_val=3, options=self.SCALING_TYPES,
                ),
                "factor": FilterParameter(
                    name="Factor", param_type=ParameterType.FLOAT, value=1.0,
                    min_val=0.01, max_val=10.0,
                    description="Scale factor; Scale2x/3x/4x use 2, 3 or 4",
                ),
                "adjust_center": _adjust_center_parameter(),
            },
        )

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        factor = float(self.value("factor"))
        scale_type = self.value("type")
        if scale_type == self.TYPE_SCALEX:
            pixels = self._scale_x(frame, int(factor))
        elif factor <= 0.0 or factor == 1.0:
            pixels = None
        else:
            new_width = max(1, int(frame.width * factor))
            new_height = max(1, int(frame.height * factor))
            if scale_type == self.TYPE_NEAREST:
                pixels = self._scale_nearest(frame.pixels, new_width, new_height)
            elif frame.is_indexed:
                logger.debug("%s: interpolated scaling skipped for palette frame", self.name)
                pixels = None
            else:
                filter_name = "triangle" if scale_type == self.TYPE_BILINEAR else "catmull-rom"
                rgba = self._argb_to_rgba(frame.pixels)
                scaled = OiioAdapter.resize_rgba(rgba, new_width, new_height, filter_name)
                pixels = self._rgba_to_argb(scaled)

        if pixels is None:
            return frame.copy()

        changes = {}
        if self.value("adjust_center"):
            fx = pixels.shape[1] / frame.width
            fy = pixels.shape[0] / frame.height
            changes = {"center_x": int(frame.center_x * fx), "center_y": int(frame.center_y * fy)}
        return frame.derive(pixels, **changes)

    @staticmethod
    def _scale_nearest(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        src_h, src_w = pixels.shape
        ys = np.minimum((np.arange(height) * src_h) // height, src_h - 1)
        xs = np.minimum((np.arange(width) * src_w) // width, src_w - 1)
        return pixels[ys[:, None], xs[None, :]].copy()

    @staticmethod
    def _scale_x(frame: Frame, factor: int) -> Optional[np.ndarray]:
        border = transparent_index(frame) if frame.is_indexed else 0
        if factor == 2:
            return scale2x(frame.pixels, border)
        if factor == 3:
            return scale3x(frame.pixels, border)
        if factor == 4:
            return scale2x(scale2x(frame.pixels, border), border)
        return None

    @staticmethod
    def _argb_to_rgba(pixels: np.ndarray) -> np.ndarray:
        a, r, g, b = unpack_argb(pixels)
        return np.stack([r, g, b, a], axis=-1).astype(np.uint8)

    @staticmethod
    def _rgba_to_argb(rgba: np.ndarray) -> np.ndarray:
        rgba = rgba.astype(np.int32)
        return pack_argb(rgba[..., 3], rgba[..., 0], rgba[..., 1], rgba[..., 2])


# ============================================================================
# ROTATE / MIRROR
# ============================================================================

class RotateFilter(TransformFilter):
    """Rotates frames by multiples of 90 degrees."""

    DIRECTIONS = ["Clockwise", "Counterclockwise"]
    ANGLES = ["90", "180", "270"]

    def __init__(self):
        super().__init__(
            kind=FilterKind.ROTATE,
            name="Rotate BAM frames",
            description="Rotates each frame by 90, 180 or 270 degrees.",
            parameters={
                "direction": FilterParameter(
                    name="Direction", param_type=ParameterType.INT, value=0,
                    min_val=0, max_val=1, options=self.DIRECTIONS,
                ),
                "angle": FilterParameter(
                    name="Angle", param_type=ParameterType.INT, value=0,
                    min_val=0, max_val=2, options=self.ANGLES,
                ),
                "adjust_center": _adjust_center_parameter(),
            },
        )

    def clockwise_steps(self) -> int:
        """Rotation expressed as 1..3 clockwise quarter turns."""
        angle = self.value("angle")
        if self.value("direction") == 1:
            angle = 2 - angle
        return angle + 1

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        steps = self.clockwise_steps()
        pixels = np.ascontiguousarray(np.rot90(frame.pixels, k=-steps))
        changes = {}
        if self.value("adjust_center"):
            new_h, new_w = pixels.shape
            cx, cy = frame.center_x, frame.center_y
            if steps == 1:
                cx, cy = new_w - cy - 1, cx
            elif steps == 2:
                cx, cy = new_w - cx - 1, new_h - cy - 1
            else:
                cx, cy = cy, new_h - cx - 1
            changes = {"center_x": cx, "center_y": cy}
        return frame.derive(pixels, **changes)


class MirrorFilter(TransformFilter):
    """Mirrors frames horizontally and/or vertically."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.MIRROR,
            name="Mirror BAM frames",
            description="Flips each frame horizontally and/or vertically.",
            parameters={
                "horizontal": FilterParameter(
                    name="Horizontal", param_type=ParameterType.BOOL, value=True,
                ),
                "vertical": FilterParameter(
                    name="Vertical", param_type=ParameterType.BOOL, value=False,
                ),
                "adjust_center": _adjust_center_parameter(),
            },
        )

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        pixels = frame.pixels
        cx, cy = frame.center_x, frame.center_y
        if self.value("horizontal"):
            pixels = pixels[:, ::-1]
            cx = frame.width - cx - 1
        if self.value("vertical"):
            pixels = pixels[::-1, :]
            cy = frame.height - cy - 1
        changes = {"center_x": cx, "center_y": cy} if self.value("adjust_center") else {}
        return frame.derive(np.ascontiguousarray(pixels), **changes)


# ============================================================================
# TRIM / CENTER
# ============================================================================

def _content_span(has_content: np.ndarray, from_start: bool, from_end: bool) -> tuple[int, int]:
    """First/last index kept along one axis."""
    size = len(has_content)
    hits = np.flatnonzero(has_content)
    if hits.size == 0:
        if from_start and not from_end:
            return size - 1, size - 1
        if from_start or from_end:
            return 0, 0
        return 0, size - 1
    first = int(hits[0]) if from_start else 0
    last = int(hits[-1]) if from_end else size - 1
    return first, last


class TrimFilter(TransformFilter):
    """Removes transparent space around frames."""

    EDGES = ("top", "left", "bottom", "right")

    def __init__(self):
        edge = dict(param_type=ParameterType.BOOL, value=True)
        super().__init__(
            kind=FilterKind.TRIM,
            name="Trim BAM frames",
            description="Removes unused space around each frame.",
            parameters={
                "top": FilterParameter(name="Top", **edge),
                "left": FilterParameter(name="Left", **edge),
                "bottom": FilterParameter(name="Bottom", **edge),
                "right": FilterParameter(name="Right", **edge),
                "margin": FilterParameter(
                    name="Margin", param_type=ParameterType.INT, value=0,
                    min_val=0, max_val=255, description="Pixels kept on each trimmed edge",
                ),
                "adjust_center": _adjust_center_parameter(),
            },
        )

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        mask = opacity_mask(frame)
        top, bottom = _content_span(mask.any(axis=1), self.value("top"), self.value("bottom"))
        left, right = _content_span(mask.any(axis=0), self.value("left"), self.value("right"))

        margin = self.value("margin")
        dst_x = margin if self.value("left") else 0
        dst_y = margin if self.value("top") else 0
        crop = frame.pixels[top:bottom + 1, left:right + 1]
        new_w = crop.shape[1] + dst_x + (margin if self.value("right") else 0)
        new_h = crop.shape[0] + dst_y + (margin if self.value("bottom") else 0)

        pixels = empty_plane(frame, new_w, new_h)
        pixels[dst_y:dst_y + crop.shape[0], dst_x:dst_x + crop.shape[1]] = crop
        changes = {}
        if self.value("adjust_center"):
            changes = {
                "center_x": frame.center_x - left + dst_x,
                "center_y": frame.center_y - top + dst_y,
            }
        return frame.derive(pixels, **changes)


def canvas_rect(frame_set: FrameSet) -> tuple[int, int, int, int]:
    """
    Canvas fitting every frame aligned on its pivot.

    Returns (pivot_x, pivot_y, width, height) where pivot_x/pivot_y is the
    space left of and above the common pivot.
    """
    left = right = top = bottom = 0
    for frame in frame_set.frames:
        left = max(left, frame.center_x)
        right = max(right, frame.width - frame.center_x)
        top = max(top, frame.center_y)
        bottom = max(bottom, frame.height - frame.center_y)
    return left, top, left + right, top + bottom


def pad_to_canvas(frame: Frame, pivot_x: int, pivot_y: int, width: int, height: int) -> np.ndarray:
    """Place ``frame`` on a transparent canvas so its pivot lands on (pivot_x, pivot_y)."""
    pixels = empty_plane(frame, width, height)
    pos_x = pivot_x - frame.center_x
    pos_y = pivot_y - frame.center_y
    x0, y0 = max(pos_x, 0), max(pos_y, 0)
    x1 = min(pos_x + frame.width, width)
    y1 = min(pos_y + frame.height, height)
    if x1 > x0 and y1 > y0:
        pixels[y0:y1, x0:x1] = frame.pixels[y0 - pos_y:y1 - pos_y, x0 - pos_x:x1 - pos_x]
    return pixels


class CenterFilter(TransformFilter):
    """Pads all frames to a common canvas aligned on their pivots."""

    def __init__(self):
        pad = dict(param_type=ParameterType.INT, value=0, min_val=0, max_val=256)
        center = dict(param_type=ParameterType.INT, value=0, min_val=0, max_val=512)
        super().__init__(
            kind=FilterKind.CENTER,
            name="Center BAM frames",
            description=(
                "Expands every frame to the smallest canvas that fits all frames "
                "aligned on their center positions."
            ),
            parameters={
                "left": FilterParameter(name="Left", **pad),
                "top": FilterParameter(name="Top", **pad),
                "right": FilterParameter(name="Right", **pad),
                "bottom": FilterParameter(name="Bottom", **pad),
                "auto_center": _adjust_center_parameter("Use the canvas pivot as new center"),
                "center_x": FilterParameter(name="Center X", **center),
                "center_y": FilterParameter(name="Center Y", **center),
            },
        )
        self._canvas: Optional[tuple[int, int, int, int]] = None

    def prepare(self, original: FrameSet, settings: ConversionSettings) -> None:
        self._canvas = canvas_rect(original)
        logger.debug("%s: canvas %s", self.name, self._canvas)

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        canvas = self._canvas
        if canvas is None:
            canvas = canvas_rect(FrameSet(frames=[frame]))
        pivot_x, pivot_y, width, height = canvas
        if width <= 0 or height <= 0:
            return frame.copy()

        pivot_x += self.value("left")
        pivot_y += self.value("top")
        width += self.value("left") + self.value("right")
        height += self.value("top") + self.value("bottom")
        pixels = pad_to_canvas(frame, pivot_x, pivot_y, width, height)

        if self.value("auto_center"):
            cx, cy = pivot_x, pivot_y
        else:
            cx, cy = self.value("center_x"), self.value("center_y")
        return frame.derive(pixels, center_x=cx, center_y=cy)
