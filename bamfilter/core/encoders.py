"""
Encoder sinks.

The container encoders live outside this package; output filters talk to
them through these two protocols.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from .types import DxtType, FrameSet, TileIndexAllocator


@dataclass(frozen=True)
class IndexedOptions:
    """Options for the palette-indexed (legacy) encoder."""
    rle_index: int = 0
    compressed: bool = False


@runtime_checkable
class IndexedEncoder(Protocol):
    """Encodes a palette-indexed frame set into one file."""

    def encode_indexed(self, frame_set: FrameSet, output_path: Path,
                       options: IndexedOptions) -> None:
        ...


@runtime_checkable
class TrueColorEncoder(Protocol):
    """Encodes a true-color frame set using block compression."""

    def encode_truecolor(self, frame_set: FrameSet, output_path: Path,
                         dxt_type: DxtType, tiles: TileIndexAllocator) -> None:
        ...
