"""
Frame set loading from image files.

Builds FrameSets from PNG/BMP/GIF/... images read through OpenImageIO.
Each image (or each subimage of an animated file) becomes one frame.
"""

import logging
from pathlib import Path
from typing import List, Sequence

import numpy as np

from ..core.errors import DecoderInvariantError
from ..core.types import Cycle, Frame, FrameSet, KEY_COLOR, PALETTE_SIZE
from ..oiio import OiioAdapter

logger = logging.getLogger(__name__)


def rgba_to_argb(rgba: np.ndarray) -> np.ndarray:
    """(height, width, 4) uint8 RGBA to a (height, width) uint32 ARGB plane."""
    rgba = rgba.astype(np.uint32)
    return (rgba[..., 3] << 24) | (rgba[..., 0] << 16) | (rgba[..., 1] << 8) | rgba[..., 2]


def build_shared_palette(planes: Sequence[np.ndarray]) -> tuple[np.ndarray, List[np.ndarray], bool]:
    """
    Convert ARGB planes to indices into one shared palette.

    Fully transparent pixels map to a key-colored entry at index 0 (only
    present when such pixels exist). Raises DecoderInvariantError if the
    images use more than 256 colors.

    Returns:
        (palette, index planes, palette has alpha)
    """
    has_transparent = any(np.any((p >> 24) == 0) for p in planes)
    visible = [p[(p >> 24) != 0] for p in planes]
    stacked = np.concatenate(visible) if visible else np.zeros(0, dtype=np.uint32)
    colors = np.unique(stacked)
    offset = 1 if has_transparent else 0
    if colors.size + offset > PALETTE_SIZE:
        raise DecoderInvariantError(
            f"Images use {colors.size + offset} colors; indexed frames hold at most {PALETTE_SIZE}"
        )
    has_alpha = bool(np.any((colors >> 24) != 0xFF))

    palette = np.zeros(PALETTE_SIZE, dtype=np.uint32)
    if has_transparent:
        palette[0] = KEY_COLOR
    palette[offset:offset + colors.size] = colors

    indexed = []
    for plane in planes:
        pixels = np.zeros(plane.shape, dtype=np.uint8)
        mask = (plane >> 24) != 0
        pixels[mask] = (np.searchsorted(colors, plane[mask]) + offset).astype(np.uint8)
        indexed.append(pixels)
    return palette, indexed, has_alpha


class FrameLoader:
    """Reads image files into a FrameSet."""

    def __init__(self, indexed: bool = False):
        self.indexed = indexed

    def load(self, path: Path) -> FrameSet:
        """Load a single file; usable as ``ConversionSettings.frame_set_loader``."""
        return self.load_images([path])

    def load_images(self, paths: Sequence[Path]) -> FrameSet:
        """
        Load images as one frame set with a single cycle over all frames.

        Pivots are (0, 0). In indexed mode all frames share one palette.
        """
        planes = []
        for path in paths:
            for rgba in OiioAdapter.list_subimages(Path(path)):
                planes.append(rgba_to_argb(rgba))
            logger.debug("Loaded %s", path)

        if self.indexed:
            palette, indexed, has_alpha = build_shared_palette(planes)
            transparent = 0 if palette[0] == KEY_COLOR else -1
            frames = [
                Frame(pixels=p, palette=palette, palette_has_alpha=has_alpha, transparent_index=transparent)
                for p in indexed
            ]
        else:
            frames = [Frame(pixels=p) for p in planes]

        logger.info("Loaded %d frame(s) from %d file(s)", len(frames), len(paths))
        return FrameSet(frames=frames, cycles=[Cycle(list(range(len(frames))))])
