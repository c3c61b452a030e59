"""
Core data types for the BAM filter pipeline.

Frames, frame sets and the conversion settings that are handed to every
filter. All types use @dataclass and Enum; pixel planes are numpy arrays.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from pathlib import Path
from typing import Any, Callable, Optional, TYPE_CHECKING

import numpy as np

# Avoid circular imports
if TYPE_CHECKING:
    from .encoders import IndexedEncoder, TrueColorEncoder


PALETTE_SIZE = 256

# Sentinel color (0, 255, 0) marking the transparent palette entry
KEY_COLOR = 0x0000FF00


class FilterCategory(Enum):
    """Filter family. The enum order is the pipeline sort order."""
    COLOR = 0
    TRANSFORM = 1
    OUTPUT = 2


class TargetVersion(Enum):
    """Target container version."""
    LEGACY = auto()     # palette-indexed, frames limited to 255x255
    TRUECOLOR = auto()  # ARGB frames stored via block compression


class DxtType(Enum):
    """Block compression type used by the true-color encoder."""
    AUTO = auto()
    DXT1 = auto()
    DXT5 = auto()


class ValidationSeverity(Enum):
    """Validation issue severity."""
    ERROR = auto()
    WARNING = auto()


@dataclass
class Frame:
    """
    A single sprite frame.

    Indexed frames hold a (height, width) uint8 plane plus a 256-entry ARGB
    palette; true-color frames hold a (height, width) uint32 ARGB plane.
    ``center_x``/``center_y`` is the pivot used when frames are composed.
    """
    pixels: np.ndarray
    center_x: int = 0
    center_y: int = 0
    palette: Optional[np.ndarray] = None
    palette_has_alpha: bool = False
    transparent_index: int = -1  # explicitly flagged transparent entry, -1 = none
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.pixels.ndim != 2:
            raise ValueError("Frame pixel plane must be two-dimensional")
        if self.palette is not None:
            if self.pixels.dtype != np.uint8:
                self.pixels = self.pixels.astype(np.uint8)
            palette = np.zeros(PALETTE_SIZE, dtype=np.uint32)
            count = min(len(self.palette), PALETTE_SIZE)
            palette[:count] = np.asarray(self.palette, dtype=np.uint32)[:count]
            self.palette = palette
        elif self.pixels.dtype != np.uint32:
            self.pixels = self.pixels.astype(np.uint32)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def is_indexed(self) -> bool:
        return self.palette is not None

    def derive(self, pixels: np.ndarray, **changes: Any) -> "Frame":
        """Create a new frame in the same representation with a new pixel plane."""
        fields = {
            "pixels": pixels,
            "palette": None if self.palette is None else self.palette.copy(),
            "options": dict(self.options),
        }
        fields.update(changes)
        return replace(self, **fields)

    def copy(self) -> "Frame":
        """Deep copy of pixels, palette and options."""
        return self.derive(self.pixels.copy())


@dataclass
class Cycle:
    """A named animation: ordered frame indices, repeats allowed."""
    frame_indices: list[int] = field(default_factory=list)
    name: str = ""

    def __len__(self) -> int:
        return len(self.frame_indices)


@dataclass
class FrameSet:
    """Ordered frames plus the cycles referencing them."""
    frames: list[Frame] = field(default_factory=list)
    cycles: list[Cycle] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)

    def frame_count(self) -> int:
        return len(self.frames)

    def frame_at(self, index: int) -> Frame:
        return self.frames[index]

    def cycle_list(self) -> list[tuple[str, list[int]]]:
        """Cycles as (name, frame indices) pairs."""
        return [(c.name, list(c.frame_indices)) for c in self.cycles]

    def invalid_cycle_references(self) -> list[tuple[int, int]]:
        """Return (cycle index, frame index) pairs that point outside the frame list."""
        bad = []
        for ci, cycle in enumerate(self.cycles):
            for idx in cycle.frame_indices:
                if not 0 <= idx < len(self.frames):
                    bad.append((ci, idx))
        return bad

    def copy(self) -> "FrameSet":
        """Deep copy suitable for a conversion run."""
        return FrameSet(
            frames=[f.copy() for f in self.frames],
            cycles=[Cycle(list(c.frame_indices), c.name) for c in self.cycles],
            options=dict(self.options),
        )

    def with_frames(self, frames: list[Frame]) -> "FrameSet":
        """Same cycles and options, different frame list."""
        return FrameSet(
            frames=frames,
            cycles=[Cycle(list(c.frame_indices), c.name) for c in self.cycles],
            options=dict(self.options),
        )


class TileIndexAllocator:
    """Hands out consecutive tile (texture page) indices to the true-color encoder."""

    def __init__(self, start: int = 0):
        self.start = start
        self._next = start

    def next_index(self) -> int:
        index = self._next
        self._next += 1
        return index

    def peek(self) -> int:
        return self._next


@dataclass(frozen=True)
class ConversionSettings:
    """Immutable global settings passed explicitly to every filter."""
    target: TargetVersion = TargetVersion.LEGACY
    output_path: Path = Path("output.bam")
    rle_index: int = 0
    compressed: bool = False
    dxt_type: DxtType = DxtType.AUTO
    tile_index: int = 0
    indexed_encoder: Optional["IndexedEncoder"] = None
    truecolor_encoder: Optional["TrueColorEncoder"] = None
    frame_set_loader: Optional[Callable[[Path], FrameSet]] = None

    @property
    def is_legacy(self) -> bool:
        return self.target == TargetVersion.LEGACY


@dataclass
class ValidationIssue:
    """A validation problem."""
    severity: ValidationSeverity
    code: str
    message: str
    context: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.severity.name}] {self.code}: {self.message}"


@dataclass
class OutputFileResult:
    """Outcome of writing one output file."""
    path: Path
    success: bool
    error: str = ""


@dataclass
class ConversionResult:
    """Outcome of a full conversion run."""
    success: bool
    message: str
    files: list[OutputFileResult] = field(default_factory=list)
    failed_filter: Optional[str] = None

    @property
    def written(self) -> list[Path]:
        return [f.path for f in self.files if f.success]

    @property
    def failures(self) -> list[OutputFileResult]:
        return [f for f in self.files if not f.success]
