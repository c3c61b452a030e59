"""
Overlay output filter.

Layers the frames of other frame sets on top of the converted frames,
matched by cycle and position in the cycle, before encoding the result.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.errors import ConfigurationError, UnsupportedCombinationError
from ..core.pixels import (
    effective_palette,
    nearest_palette_indices,
    to_argb_plane,
    transparent_index,
    unpack_argb,
)
from ..core.types import (
    ConversionSettings,
    Cycle,
    Frame,
    FrameSet,
    OutputFileResult,
    TileIndexAllocator,
    ValidationIssue,
    ValidationSeverity,
)
from ..core.validation import ValidationEngine
from . import config_codec as codec
from .filters import FilterKind
from .output_filters import OutputFilter, encode_frame_set

logger = logging.getLogger(__name__)


class OverlayMode(Enum):
    """How overlay pixels are merged with the frame below."""
    NORMAL = 0      # overlay wins where it is visible
    FORCED = 1      # overlay always wins
    INCLUSIVE = 2   # overlay only where the frame below is visible
    EXCLUSIVE = 3   # overlay only where the frame below is transparent


@dataclass
class OverlayEntry:
    """One overlay source and its blend mode."""
    path: str
    mode: OverlayMode = OverlayMode.NORMAL


def _blend(src: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """Alpha-blend ``src`` over ``dst`` with 8-bit fixed point arithmetic."""
    a1, r1, g1, b1 = unpack_argb(src)
    a2, r2, g2, b2 = unpack_argb(dst)
    inv = 256 - a1

    def _channel(c1, c2):
        return (((c1 * a1) >> 8) + ((c2 * a2 * inv) >> 16)) & 0xFF

    a = (a1 + ((a2 * inv) >> 8)) & 0xFF
    return (
        (a.astype(np.uint32) << 24)
        | (_channel(r1, r2).astype(np.uint32) << 16)
        | (_channel(g1, g2).astype(np.uint32) << 8)
        | _channel(b1, b2).astype(np.uint32)
    )


def overlay_pixels(src: np.ndarray, dst: np.ndarray, mode: OverlayMode) -> np.ndarray:
    """
    Merge two ARGB planes of equal shape.

    Args:
        src: Pixels of the converted frame
        dst: Pixels of the overlay frame
        mode: Blend mode

    Returns:
        Merged ARGB plane
    """
    src = np.asarray(src, dtype=np.uint32)
    dst = np.asarray(dst, dtype=np.uint32)
    if mode == OverlayMode.FORCED:
        return dst.copy()

    a1 = (src >> 24) & 0xFF
    a2 = (dst >> 24) & 0xFF
    if mode == OverlayMode.NORMAL:
        partial = (a2 > 0) & (a2 < 0xFF)
        plain = np.where(a2 != 0, dst, src)
    elif mode == OverlayMode.INCLUSIVE:
        partial = (a1 > 0) & (a1 < 0xFF)
        plain = np.where(a1 != 0, dst, src)
    else:
        partial = (a1 > 0) & (a1 < 0xFF)
        plain = np.where(a1 == 0, dst, src)
    return np.where(partial, _blend(src, dst), plain).astype(np.uint32)


def compose_frame(source: Frame, layers: List[tuple[Frame, OverlayMode]]) -> Frame:
    """
    Draw overlay frames onto ``source``, aligned on the pivots.

    The canvas and pivot of ``source`` are kept; overlay content outside
    the canvas is clipped. Indexed frames keep their palette and only the
    changed pixels are mapped to the nearest palette entry.
    """
    canvas = to_argb_plane(source)
    original = canvas.copy()
    for layer, mode in layers:
        pos_x = source.center_x - layer.center_x
        pos_y = source.center_y - layer.center_y
        x0, y0 = max(pos_x, 0), max(pos_y, 0)
        x1 = min(pos_x + layer.width, source.width)
        y1 = min(pos_y + layer.height, source.height)
        if x1 <= x0 or y1 <= y0:
            continue
        plane = to_argb_plane(layer)[y0 - pos_y:y1 - pos_y, x0 - pos_x:x1 - pos_x]
        canvas[y0:y1, x0:x1] = overlay_pixels(canvas[y0:y1, x0:x1], plane, mode)

    if not source.is_indexed:
        return source.derive(canvas)

    changed = canvas != original
    pixels = source.pixels.copy()
    if changed.any():
        pixels[changed] = nearest_palette_indices(
            canvas[changed], effective_palette(source), transparent_index(source)
        )
    return source.derive(pixels)


def is_compatible(source: FrameSet, overlay: FrameSet) -> bool:
    """An overlay needs at least as many cycles, each at least as long."""
    if len(overlay.cycles) < len(source.cycles):
        return False
    return all(len(o) >= len(s) for s, o in zip(source.cycles, overlay.cycles))


class OverlayOutputFilter(OutputFilter):
    """Composes frames of other frame sets on top of the output frames."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.OUTPUT_OVERLAY,
            name="Overlay frames",
            description=(
                "Draws the frames of one or more additional files on top of the "
                "converted frames. Frames are matched by cycle and cycle position."
            ),
        )
        self.entries: List[OverlayEntry] = []

    # ========== Entries ==========

    def add_entry(self, path, mode: OverlayMode = OverlayMode.NORMAL) -> None:
        self.entries.append(OverlayEntry(str(path), mode))

    def remove_entry(self, index: int) -> None:
        del self.entries[index]

    def move_entry(self, from_index: int, to_index: int) -> None:
        entry = self.entries.pop(from_index)
        self.entries.insert(to_index, entry)

    # ========== Configuration string ==========

    def get_configuration(self) -> str:
        fields = []
        for entry in self.entries:
            fields.append(codec.escape_path(entry.path))
            fields.append(str(entry.mode.value))
        return codec.join_fields(fields)

    def parse_configuration(self, config: Optional[str]) -> Dict[str, Any]:
        fields = codec.split_fields(config)
        entries = []
        for index in range(0, len(fields), 2):
            path = codec.unescape_path(fields[index].strip())
            if not path:
                raise ConfigurationError(f"Field {index}: empty path", index)
            if index + 1 < len(fields):
                try:
                    mode = OverlayMode(codec.decode_int(fields[index + 1], 0, len(OverlayMode) - 1))
                except ConfigurationError as e:
                    raise ConfigurationError(f"Field {index + 1} (mode): {e}", index + 1)
            else:
                logger.warning("No overlay mode for %s, using %s", path, OverlayMode.NORMAL.name)
                mode = OverlayMode.NORMAL
            entries.append(OverlayEntry(path, mode))
        return {"entries": entries}

    def set_configuration(self, config: Optional[str]) -> bool:
        try:
            values = self.parse_configuration(config)
        except ConfigurationError as e:
            logger.warning("Invalid configuration for %s: %s", self.name, e)
            return False
        self.entries = values["entries"]
        return True

    # ========== Processing ==========

    def preflight(self, frame_set: FrameSet, settings: ConversionSettings) -> list:
        issues = ValidationEngine.validate_target(frame_set, settings)
        if self.entries and settings.frame_set_loader is None:
            issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                code="NO_OVERLAY_LOADER",
                message="Overlay files cannot be loaded: no frame set loader configured.",
            ))
        return issues

    def load_overlays(self, source: FrameSet, settings: ConversionSettings) -> List[FrameSet]:
        overlays = []
        for entry in self.entries:
            overlay = settings.frame_set_loader(Path(entry.path))
            ValidationEngine.raise_for_errors(ValidationEngine.validate_frame_set(overlay))
            if not is_compatible(source, overlay):
                raise UnsupportedCombinationError(f"Incompatible cycle structure: {entry.path}")
            overlays.append(overlay)
        return overlays

    def compose(self, frame_set: FrameSet, overlays: List[FrameSet]) -> FrameSet:
        """
        Build the composed frame set.

        One output frame is created per distinct combination of source and
        overlay frame indices; cycles are rebuilt to reference them.
        """
        combinations: Dict[tuple, int] = {}
        cycles = []
        for cycle_idx, cycle in enumerate(frame_set.cycles):
            indices = []
            for position, frame_idx in enumerate(cycle.frame_indices):
                key = (frame_idx,) + tuple(
                    o.cycles[cycle_idx].frame_indices[position] for o in overlays
                )
                indices.append(combinations.setdefault(key, len(combinations)))
            cycles.append(Cycle(indices, cycle.name))

        modes = [entry.mode for entry in self.entries]
        frames = []
        for key in combinations:
            layers = [(o.frames[i], m) for o, i, m in zip(overlays, key[1:], modes)]
            frames.append(compose_frame(frame_set.frames[key[0]], layers))
        logger.info("%s: composed %d frame(s) from %d overlay(s)", self.name, len(frames), len(overlays))
        return FrameSet(frames=frames, cycles=cycles, options=dict(frame_set.options))

    def process_frame_set(self, frame_set: FrameSet,
                          settings: ConversionSettings) -> List[OutputFileResult]:
        if self.entries and not frame_set.cycles:
            logger.warning("%s: frame set has no cycles, nothing to overlay", self.name)
        elif self.entries:
            frame_set = self.compose(frame_set, self.load_overlays(frame_set, settings))
        tiles = TileIndexAllocator(settings.tile_index)
        encode_frame_set(frame_set, settings.output_path, settings, tiles)
        return [OutputFileResult(path=settings.output_path, success=True)]
