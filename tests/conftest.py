"""Shared fixtures: frame factories and recording encoders."""

from pathlib import Path

import numpy as np
import pytest

from bamfilter.core import ConversionSettings, Cycle, Frame, FrameSet, TargetVersion
from bamfilter.core.types import KEY_COLOR


def gray_palette() -> np.ndarray:
    """Index 0 is the key color, index i is (i, i, i) otherwise."""
    palette = np.array([0xFF000000 | (i << 16) | (i << 8) | i for i in range(256)], dtype=np.uint32)
    palette[0] = KEY_COLOR
    return palette


def make_indexed(pixels, center=(0, 0), palette=None, has_alpha=False) -> Frame:
    """Palette frame from a nested list or array of indices."""
    return Frame(
        pixels=np.asarray(pixels, dtype=np.uint8),
        center_x=center[0],
        center_y=center[1],
        palette=gray_palette() if palette is None else palette,
        palette_has_alpha=has_alpha,
    )


def make_truecolor(pixels, center=(0, 0)) -> Frame:
    """True-color frame from a nested list or array of ARGB words."""
    return Frame(
        pixels=np.asarray(pixels, dtype=np.uint32),
        center_x=center[0],
        center_y=center[1],
    )


def make_set(*frames, cycles=None) -> FrameSet:
    if cycles is None:
        cycles = [Cycle(list(range(len(frames))))]
    return FrameSet(frames=list(frames), cycles=cycles)


class RecordingEncoder:
    """Encoder sink keeping every call for inspection."""

    def __init__(self, fail_on=None):
        self.indexed_calls = []
        self.truecolor_calls = []
        self.fail_on = set(fail_on or [])

    def _check(self, output_path: Path) -> None:
        if output_path.name in self.fail_on:
            raise OSError(f"disk full: {output_path.name}")

    def encode_indexed(self, frame_set, output_path, options):
        self._check(output_path)
        self.indexed_calls.append((frame_set, output_path, options))

    def encode_truecolor(self, frame_set, output_path, dxt_type, tiles):
        self._check(output_path)
        self.truecolor_calls.append((frame_set, output_path, dxt_type, tiles.next_index()))


@pytest.fixture
def encoder():
    return RecordingEncoder()


@pytest.fixture
def legacy_settings(tmp_path, encoder):
    return ConversionSettings(
        target=TargetVersion.LEGACY,
        output_path=tmp_path / "out.bam",
        indexed_encoder=encoder,
        truecolor_encoder=encoder,
    )


@pytest.fixture
def truecolor_settings(tmp_path, encoder):
    return ConversionSettings(
        target=TargetVersion.TRUECOLOR,
        output_path=tmp_path / "out.bam",
        indexed_encoder=encoder,
        truecolor_encoder=encoder,
    )


@pytest.fixture
def indexed_frame():
    """4x4 palette frame with a transparent border column."""
    return make_indexed(
        [
            [0, 10, 20, 30],
            [0, 40, 50, 60],
            [0, 70, 80, 90],
            [0, 100, 110, 120],
        ],
        center=(1, 2),
    )


@pytest.fixture
def truecolor_frame():
    """3x3 ARGB frame; the top-left pixel is fully transparent."""
    return make_truecolor(
        [
            [0x00123456, 0xFF102030, 0x80405060],
            [0xFF708090, 0xFFA0B0C0, 0xFFD0E0F0],
            [0xFF000000, 0xFFFFFFFF, 0x40FF0000],
        ],
        center=(1, 1),
    )
