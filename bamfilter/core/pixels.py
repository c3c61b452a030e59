"""
Uniform pixel access for indexed and true-color frames.

Color filters see a frame through PixelBuffer: a flat ARGB array (the
palette for indexed frames, the pixel plane for true-color frames) plus a
mask of entries they are allowed to touch.
"""

from typing import Iterable, Optional

import numpy as np

from .types import Frame, KEY_COLOR, PALETTE_SIZE


def unpack_argb(values: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Split ARGB words into (a, r, g, b) int32 arrays."""
    values = np.asarray(values, dtype=np.uint32)
    a = ((values >> 24) & 0xFF).astype(np.int32)
    r = ((values >> 16) & 0xFF).astype(np.int32)
    g = ((values >> 8) & 0xFF).astype(np.int32)
    b = (values & 0xFF).astype(np.int32)
    return a, r, g, b


def pack_argb(a, r, g, b) -> np.ndarray:
    """Combine channel arrays (clamped to 0..255) into ARGB words."""
    def _chan(c):
        return np.clip(np.asarray(c), 0, 255).astype(np.uint32)
    return (_chan(a) << 24) | (_chan(r) << 16) | (_chan(g) << 8) | _chan(b)


def argb(a: int, r: int, g: int, b: int) -> int:
    """Single ARGB word from channel values."""
    return ((a & 0xFF) << 24) | ((r & 0xFF) << 16) | ((g & 0xFF) << 8) | (b & 0xFF)


def find_key_color(palette: np.ndarray) -> int:
    """Index of the first key-colored (0,255,0) palette entry, or -1."""
    matches = np.flatnonzero((np.asarray(palette, dtype=np.uint32) & 0x00FFFFFF) == KEY_COLOR)
    return int(matches[0]) if matches.size else -1


def effective_palette(frame: Frame) -> np.ndarray:
    """
    Palette with a usable alpha channel.

    Palettes without alpha get 255 everywhere except the first key-colored
    entry; an explicitly flagged transparent entry always gets alpha 0.
    """
    palette = frame.palette.astype(np.uint32)
    if not frame.palette_has_alpha:
        palette = (palette & 0x00FFFFFF) | np.uint32(0xFF000000)
        key = find_key_color(palette)
        if key >= 0:
            palette[key] &= np.uint32(0x00FFFFFF)
    if 0 <= frame.transparent_index < PALETTE_SIZE:
        palette[frame.transparent_index] &= np.uint32(0x00FFFFFF)
    return palette


def transparent_index(frame: Frame) -> int:
    """Palette index used as "empty" for indexed frames (defaults to 0)."""
    if frame.transparent_index >= 0:
        return frame.transparent_index
    key = find_key_color(frame.palette)
    if key >= 0:
        return key
    if frame.palette_has_alpha:
        zero = np.flatnonzero((frame.palette >> 24) == 0)
        if zero.size:
            return int(zero[0])
    return 0


def opacity_mask(frame: Frame) -> np.ndarray:
    """Boolean (height, width) mask of pixels with visible content."""
    if frame.is_indexed:
        return frame.pixels != transparent_index(frame)
    return (frame.pixels >> 24) != 0


def to_argb_plane(frame: Frame) -> np.ndarray:
    """Expand any frame into a (height, width) uint32 ARGB plane."""
    if frame.is_indexed:
        return effective_palette(frame)[frame.pixels]
    return frame.pixels.copy()


def empty_plane(frame: Frame, width: int, height: int) -> np.ndarray:
    """A transparent plane in the frame's representation."""
    if frame.is_indexed:
        return np.full((height, width), transparent_index(frame), dtype=np.uint8)
    return np.zeros((height, width), dtype=np.uint32)


def nearest_palette_indices(colors: np.ndarray, palette: np.ndarray,
                            transparent: int) -> np.ndarray:
    """Map ARGB colors to the nearest opaque palette entry; alpha 0 maps to ``transparent``."""
    colors = np.asarray(colors, dtype=np.uint32)
    flat = colors.reshape(-1)
    a, r, g, b = unpack_argb(flat)
    _, pr, pg, pb = unpack_argb(palette)
    candidates = np.array([i for i in range(len(palette)) if i != transparent], dtype=np.intp)
    result = np.full(flat.shape, transparent, dtype=np.uint8)
    visible = a != 0
    if visible.any() and candidates.size:
        dr = r[visible, None] - pr[None, candidates]
        dg = g[visible, None] - pg[None, candidates]
        db = b[visible, None] - pb[None, candidates]
        best = np.argmin(dr * dr + dg * dg + db * db, axis=1)
        result[visible] = candidates[best].astype(np.uint8)
    return result.reshape(colors.shape)


class PixelBuffer:
    """Read/write access to a frame's colors regardless of representation."""

    def __init__(self, frame: Frame):
        self.frame = frame
        self._indexed = frame.is_indexed

    def is_indexed(self) -> bool:
        return self._indexed

    def palette_size(self) -> int:
        return PALETTE_SIZE if self._indexed else 0

    def entry(self, index: int) -> int:
        return int(effective_palette(self.frame)[index])

    def raw_index(self, x: int, y: int) -> int:
        return int(self.frame.pixels[y, x])

    def argb(self, x: int, y: int) -> int:
        if self._indexed:
            return self.entry(self.raw_index(x, y))
        return int(self.frame.pixels[y, x])

    def colors(self) -> np.ndarray:
        """Flat working copy of the colors a color filter operates on."""
        if self._indexed:
            return effective_palette(self.frame)
        return self.frame.pixels.reshape(-1).copy()

    def editable_mask(self, colors: np.ndarray,
                      exclude: Optional[Iterable[int]] = None) -> np.ndarray:
        """Entries a color filter may change: visible and, for palettes, not excluded."""
        mask = (colors >> 24) != 0
        if self._indexed and exclude:
            excluded = [i for i in exclude if 0 <= i < PALETTE_SIZE]
            mask[excluded] = False
        return mask

    def rebuild(self, colors: np.ndarray) -> Frame:
        """New frame carrying ``colors``; pixel indices are copied for palettes."""
        colors = np.asarray(colors, dtype=np.uint32)
        if self._indexed:
            if not self.frame.palette_has_alpha:
                # alpha is implied by the key color; keep the stored alpha bytes
                colors = (colors & np.uint32(0x00FFFFFF)) | (self.frame.palette & np.uint32(0xFF000000))
            return self.frame.derive(self.frame.pixels.copy(), palette=colors)
        return self.frame.derive(colors.reshape(self.frame.pixels.shape))
