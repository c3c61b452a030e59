"""
Output filters.

Terminal stages: they receive the fully processed frame set and write
one or more files. Exactly one output filter runs per conversion.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np
from PIL import Image

from ..core.encoders import IndexedOptions
from ..core.errors import BamFilterError, OutputIOError, UnsupportedCombinationError
from ..core.pixels import (
    effective_palette,
    empty_plane,
    nearest_palette_indices,
    opacity_mask,
    to_argb_plane,
    transparent_index,
    unpack_argb,
)
from ..core.types import (
    ConversionSettings,
    Cycle,
    DxtType,
    FilterCategory,
    Frame,
    FrameSet,
    OutputFileResult,
    TileIndexAllocator,
    ValidationIssue,
    ValidationSeverity,
)
from ..core.validation import LEGACY_MAX_DIMENSION, ValidationEngine
from ..oiio import OiioAdapter
from .filters import FilterKind, FilterParameter, FrameSetFilter, ParameterType
from .transform_filters import canvas_rect

logger = logging.getLogger(__name__)

MAX_SPLITS = 7


class OutputFilter(FrameSetFilter):
    """Common base for output filters."""

    def __init__(self, kind: FilterKind, name: str, description: str,
                 parameters: Optional[dict] = None):
        super().__init__(
            kind=kind,
            name=name,
            category=FilterCategory.OUTPUT,
            description=description,
            parameters=parameters or {},
        )


# ============================================================================
# ENCODER DELEGATION
# ============================================================================

def resolve_dxt_type(frame_set: FrameSet, requested: DxtType) -> DxtType:
    """AUTO becomes DXT5 if any pixel is semi-transparent, DXT1 otherwise."""
    if requested != DxtType.AUTO:
        return requested
    for frame in frame_set.frames:
        alpha = to_argb_plane(frame) >> 24
        if np.any((alpha != 0) & (alpha != 0xFF)):
            return DxtType.DXT5
    return DxtType.DXT1


def as_truecolor(frame_set: FrameSet) -> FrameSet:
    """Expand palette frames into ARGB frames."""
    frames = []
    for frame in frame_set.frames:
        if frame.is_indexed:
            frames.append(Frame(
                pixels=to_argb_plane(frame),
                center_x=frame.center_x,
                center_y=frame.center_y,
                options=dict(frame.options),
            ))
        else:
            frames.append(frame)
    return frame_set.with_frames(frames)


def encode_frame_set(frame_set: FrameSet, output_path: Path, settings: ConversionSettings,
                     tiles: TileIndexAllocator) -> None:
    """Hand a frame set to the encoder selected by the target version."""
    try:
        if settings.is_legacy:
            if settings.indexed_encoder is None:
                raise UnsupportedCombinationError("No encoder available for the legacy target")
            options = IndexedOptions(rle_index=settings.rle_index, compressed=settings.compressed)
            settings.indexed_encoder.encode_indexed(frame_set, output_path, options)
        else:
            if settings.truecolor_encoder is None:
                raise UnsupportedCombinationError("No encoder available for the true-color target")
            truecolor = as_truecolor(frame_set)
            dxt_type = resolve_dxt_type(truecolor, settings.dxt_type)
            settings.truecolor_encoder.encode_truecolor(truecolor, output_path, dxt_type, tiles)
    except OSError as e:
        raise OutputIOError(f"Could not write {output_path}: {e}", output_path)
    logger.info("Encoded %d frame(s) to %s", frame_set.frame_count(), output_path)


def numbered_path(output_path: Path, number: int, digits: int, extension: str) -> Path:
    """``<dir>/<stem><number padded to digits>.<extension>``."""
    return output_path.with_name(f"{output_path.stem}{number:0{digits}d}.{extension}")


def write_each(paths_and_writers: List[tuple[Path, Callable[[], None]]]) -> List[OutputFileResult]:
    """Run independent file writes; one failure does not stop the others."""
    results = []
    for path, writer in paths_and_writers:
        try:
            writer()
            results.append(OutputFileResult(path=path, success=True))
        except (BamFilterError, OSError, RuntimeError) as e:
            logger.error("Failed to write %s: %s", path, e)
            results.append(OutputFileResult(path=path, success=False, error=str(e)))
    return results


# ============================================================================
# FILTER IMPLEMENTATIONS
# ============================================================================

class DefaultOutputFilter(OutputFilter):
    """Encodes the frame set into a single file."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.OUTPUT_DEFAULT,
            name="Default output",
            description="Writes all frames and cycles into one file.",
        )

    def preflight(self, frame_set: FrameSet, settings: ConversionSettings) -> list:
        return ValidationEngine.validate_target(frame_set, settings)

    def process_frame_set(self, frame_set: FrameSet,
                          settings: ConversionSettings) -> List[OutputFileResult]:
        tiles = TileIndexAllocator(settings.tile_index)
        encode_frame_set(frame_set, settings.output_path, settings, tiles)
        return [OutputFileResult(path=settings.output_path, success=True)]


def combine_frames(frame_set: FrameSet) -> Frame:
    """Composite every frame on a shared canvas aligned on the pivots."""
    pivot_x, pivot_y, width, height = canvas_rect(frame_set)
    width, height = max(width, 1), max(height, 1)
    base = frame_set.frames[0]
    indexed = base.is_indexed and all(f.is_indexed for f in frame_set.frames)
    if indexed:
        key = transparent_index(base)
        canvas = np.full((height, width), key, dtype=np.uint8)
    else:
        canvas = np.zeros((height, width), dtype=np.uint32)

    for frame in frame_set.frames:
        x = pivot_x - frame.center_x
        y = pivot_y - frame.center_y
        visible = opacity_mask(frame)
        if indexed:
            if np.array_equal(effective_palette(frame), effective_palette(base)):
                src = frame.pixels
            else:
                src = nearest_palette_indices(to_argb_plane(frame), effective_palette(base), key)
        else:
            src = to_argb_plane(frame)
        region = canvas[y:y + frame.height, x:x + frame.width]
        region[visible] = src[visible]

    if indexed:
        return base.derive(canvas, center_x=pivot_x, center_y=pivot_y)
    return Frame(pixels=canvas, center_x=pivot_x, center_y=pivot_y, options=dict(base.options))


class CombineOutputFilter(OutputFilter):
    """Flattens all frames into one composite frame."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.OUTPUT_COMBINE,
            name="Combine frames",
            description="Merges all frames into a single frame centered on the common pivot.",
        )

    def preflight(self, frame_set: FrameSet, settings: ConversionSettings) -> list:
        return ValidationEngine.validate_target(frame_set, settings)

    def combine(self, frame_set: FrameSet) -> FrameSet:
        return FrameSet(
            frames=[combine_frames(frame_set)],
            cycles=[Cycle([0])],
            options=dict(frame_set.options),
        )

    def process_frame_set(self, frame_set: FrameSet,
                          settings: ConversionSettings) -> List[OutputFileResult]:
        combined = self.combine(frame_set)
        tiles = TileIndexAllocator(settings.tile_index)
        encode_frame_set(combined, settings.output_path, settings, tiles)
        return [OutputFileResult(path=settings.output_path, success=True)]

    def update_preview(self, frame: Frame, settings: ConversionSettings) -> Frame:
        return frame


def split_sizes(total: int, segments: int) -> List[int]:
    """Partition ``total`` into ``segments`` sizes by accumulated rounding."""
    sizes = []
    remaining = total
    for left in range(segments, 0, -1):
        size = int(remaining / left + 0.499999)
        sizes.append(size)
        remaining -= size
    return sizes


def split_rectangles(width: int, height: int, segments_x: int,
                     segments_y: int) -> List[tuple[int, int, int, int]]:
    """Tile rectangles (x, y, w, h) in row-major segment order."""
    rects = []
    y = 0
    for h in split_sizes(height, segments_y):
        x = 0
        for w in split_sizes(width, segments_x):
            rects.append((x, y, w, h))
            x += w
        y += h
    return rects


def auto_segments(size: int, limit: int = LEGACY_MAX_DIMENSION) -> int:
    """Smallest segment count so that each segment fits ``limit``, capped at MAX_SPLITS + 1."""
    for count in range(1, MAX_SPLITS + 2):
        if size <= limit * count:
            return count
    return MAX_SPLITS + 1


def crop_segment(frame: Frame, rect: tuple[int, int, int, int]) -> Frame:
    """Cut a tile out of a frame; the pivot is moved into tile coordinates."""
    x, y, w, h = rect
    if w <= 0 or h <= 0:
        pixels = empty_plane(frame, 1, 1)
    else:
        pixels = frame.pixels[y:y + h, x:x + w].copy()
    return frame.derive(pixels, center_x=frame.center_x - x, center_y=frame.center_y - y)


class SplitOutputFilter(OutputFilter):
    """Splits frames into tiles and writes one file per tile position."""

    DIGIT_CHOICES = [str(d) for d in range(1, 8)]

    def __init__(self):
        split = dict(param_type=ParameterType.INT, value=0, min_val=0, max_val=MAX_SPLITS)
        super().__init__(
            kind=FilterKind.OUTPUT_SPLIT,
            name="Split BAM",
            description=(
                "Splits each frame into a grid of segments and writes every segment "
                "into its own numbered file."
            ),
            parameters={
                "split_x": FilterParameter(name="Horizontal Splits", **split),
                "split_y": FilterParameter(name="Vertical Splits", **split),
                "auto": FilterParameter(
                    name="Auto Split", param_type=ParameterType.BOOL, value=True,
                    description="Split as needed to keep segments within 255 pixels",
                ),
                "digits": FilterParameter(
                    name="Suffix Digits", param_type=ParameterType.INT, value=1,
                    min_val=0, max_val=6, options=self.DIGIT_CHOICES,
                ),
                "suffix_start": FilterParameter(
                    name="Suffix Start", param_type=ParameterType.INT, value=0,
                    min_val=0, max_val=100000,
                ),
                "suffix_step": FilterParameter(
                    name="Suffix Step", param_type=ParameterType.INT, value=1,
                    min_val=1, max_val=10000,
                ),
            },
        )

    def segment_counts(self, frame_set: FrameSet) -> tuple[int, int]:
        if self.value("auto"):
            max_w = max((f.width for f in frame_set.frames), default=0)
            max_h = max((f.height for f in frame_set.frames), default=0)
            return auto_segments(max_w), auto_segments(max_h)
        return self.value("split_x") + 1, self.value("split_y") + 1

    def segment_path(self, output_path: Path, segment: int) -> Path:
        suffix = self.value("suffix_start") + segment * self.value("suffix_step")
        extension = output_path.suffix[1:] if output_path.suffix else "BAM"
        return numbered_path(output_path, suffix, self.value("digits") + 1, extension)

    def split(self, frame_set: FrameSet) -> List[FrameSet]:
        """One frame set per segment index; cycles and options are copied."""
        segments_x, segments_y = self.segment_counts(frame_set)
        per_frame = [split_rectangles(f.width, f.height, segments_x, segments_y)
                     for f in frame_set.frames]
        result = []
        for segment in range(segments_x * segments_y):
            frames = [crop_segment(f, rects[segment]) for f, rects in zip(frame_set.frames, per_frame)]
            result.append(frame_set.with_frames(frames))
        return result

    def preflight(self, frame_set: FrameSet, settings: ConversionSettings) -> list:
        return [i for i in ValidationEngine.validate_target(frame_set, settings)
                if i.code != "FRAME_TOO_LARGE"]

    def process_frame_set(self, frame_set: FrameSet,
                          settings: ConversionSettings) -> List[OutputFileResult]:
        tiles = TileIndexAllocator(settings.tile_index)
        jobs = []
        for segment, segment_set in enumerate(self.split(frame_set)):
            path = self.segment_path(settings.output_path, segment)
            jobs.append((path, lambda s=segment_set, p=path: encode_frame_set(s, p, settings, tiles)))
        logger.info("%s: writing %d segment file(s)", self.name, len(jobs))
        return write_each(jobs)


class ImageOutputFilter(OutputFilter):
    """Exports every frame as a separate image file."""

    TYPE_PNG = 0
    TYPE_BMP = 1
    IMAGE_TYPES = ["PNG", "BMP"]

    def __init__(self):
        super().__init__(
            kind=FilterKind.OUTPUT_IMAGE,
            name="Export frames as images",
            description="Writes each frame into its own PNG or BMP file.",
            parameters={
                "type": FilterParameter(
                    name="Image Type", param_type=ParameterType.INT, value=self.TYPE_PNG,
                    min_val=0, max_val=1, options=self.IMAGE_TYPES,
                ),
                "digits": FilterParameter(
                    name="Digits", param_type=ParameterType.INT, value=5, min_val=1, max_val=9,
                ),
                "transparent": FilterParameter(
                    name="Transparency", param_type=ParameterType.BOOL, value=True,
                    description="Keep the transparent palette entry",
                ),
            },
        )

    def preflight(self, frame_set: FrameSet, settings: ConversionSettings) -> list:
        issues = []
        if self.value("type") == self.TYPE_BMP and not settings.is_legacy:
            issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                code="BMP_REQUIRES_LEGACY",
                message="BMP export is only available for the legacy target.",
            ))
        return issues

    def frame_path(self, output_path: Path, index: int) -> Path:
        extension = self.IMAGE_TYPES[self.value("type")]
        if output_path.suffix[1:].islower():
            extension = extension.lower()
        return numbered_path(output_path, index, self.value("digits"), extension)

    def frame_pixels(self, frame: Frame) -> np.ndarray:
        """Rows of RGBA (or RGB when transparency is dropped) bytes."""
        keep_alpha = self.value("transparent") or self.value("type") == self.TYPE_BMP
        if frame.is_indexed and not keep_alpha:
            plane = frame.palette[frame.pixels]
            _, r, g, b = unpack_argb(plane)
            return np.stack([r, g, b], axis=-1).astype(np.uint8)
        a, r, g, b = unpack_argb(to_argb_plane(frame))
        if self.value("type") == self.TYPE_BMP:
            return np.stack([r, g, b], axis=-1).astype(np.uint8)
        return np.stack([r, g, b, a], axis=-1).astype(np.uint8)

    def process_frame_set(self, frame_set: FrameSet,
                          settings: ConversionSettings) -> List[OutputFileResult]:
        jobs = []
        for index, frame in enumerate(frame_set.frames):
            path = self.frame_path(settings.output_path, index)
            jobs.append((path, lambda f=frame, p=path: OiioAdapter.write_image(p, self.frame_pixels(f))))
        return write_each(jobs)


class GifOutputFilter(OutputFilter):
    """Exports each cycle as an animated GIF."""

    def __init__(self):
        super().__init__(
            kind=FilterKind.OUTPUT_GIF,
            name="Export cycles as GIF",
            description="Writes every cycle as a looping animated GIF.",
            parameters={
                "frame_rate": FilterParameter(
                    name="Frame Rate", param_type=ParameterType.INT, value=15,
                    min_val=1, max_val=60, description="Frames per second",
                ),
                "loop": FilterParameter(name="Loop", param_type=ParameterType.BOOL, value=True),
            },
        )

    def preflight(self, frame_set: FrameSet, settings: ConversionSettings) -> list:
        issues = ValidationEngine.validate_indexed(frame_set)
        issues.extend(ValidationEngine.validate_uniform_dimensions(frame_set))
        return issues

    @staticmethod
    def cycles_of(frame_set: FrameSet) -> List[Cycle]:
        if frame_set.cycles:
            return frame_set.cycles
        return [Cycle(list(range(frame_set.frame_count())))]

    def cycle_path(self, output_path: Path, cycle_index: int, cycle_count: int) -> Path:
        if cycle_count == 1:
            return output_path.with_suffix(".gif")
        return output_path.with_name(f"{output_path.stem}_{cycle_index}.gif")

    @staticmethod
    def palette_image(frame: Frame) -> Image.Image:
        """Pillow "P" image of an indexed frame; the empty entry becomes the GIF transparency."""
        height, width = frame.pixels.shape
        img = Image.frombytes("P", (width, height), np.ascontiguousarray(frame.pixels, dtype=np.uint8).tobytes())
        _, r, g, b = unpack_argb(frame.palette.astype(np.uint32))
        img.putpalette(np.stack([r, g, b], axis=-1).astype(np.uint8).ravel().tolist())
        key = transparent_index(frame)
        if effective_palette(frame)[key] >> 24 == 0:
            img.info["transparency"] = key
        return img

    @staticmethod
    def write_gif(path: Path, images: List[Image.Image], frame_rate: int, loop: bool) -> None:
        """Save palette images as one animated GIF, keeping each frame's palette."""
        options = {
            "save_all": True,
            "append_images": images[1:],
            "duration": 1000 // frame_rate,
            "disposal": 2,
            "optimize": False,
        }
        if loop:
            options["loop"] = 0
        try:
            images[0].save(path, format="GIF", **options)
        except (OSError, ValueError) as e:
            raise OutputIOError(f"Could not write {path}: {e}", path)
        logger.debug("Wrote %s (%d frames @ %d fps)", path, len(images), frame_rate)

    def process_frame_set(self, frame_set: FrameSet,
                          settings: ConversionSettings) -> List[OutputFileResult]:
        cycles = self.cycles_of(frame_set)
        jobs = []
        for index, cycle in enumerate(cycles):
            if not cycle.frame_indices:
                logger.warning("%s: skipping empty cycle %d", self.name, index)
                continue
            images = [self.palette_image(frame_set.frames[i]) for i in cycle.frame_indices]
            path = self.cycle_path(settings.output_path, index, len(cycles))
            jobs.append((path, lambda im=images, p=path: self.write_gif(
                p, im, self.value("frame_rate"), self.value("loop"))))
        return write_each(jobs)
