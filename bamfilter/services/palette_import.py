"""
Palette import for the palette replacement filter.

Detects the file type from its leading bytes and extracts a 256-entry
ARGB palette. Windows BMP and indexed PNG are read with Pillow; RIFF PAL,
BAM V1 (plain or zlib compressed) and headerless Photoshop ACT are parsed
directly.
"""

import logging
import struct
import zlib
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..core.errors import ConfigurationError, OutputIOError
from ..core.types import KEY_COLOR, PALETTE_SIZE

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
ACT_SIZE = 768
ACT_SIZE_EXTENDED = 772  # with color count and transparent index


class PaletteImporter:
    """Loads palettes from auxiliary files."""

    @staticmethod
    def load(path: Path, preserve_alpha: bool = False) -> np.ndarray:
        """
        Load a palette, sniffing the format from the file signature.

        Args:
            path: Palette source file
            preserve_alpha: Keep alpha values stored in PNG/BAM palettes

        Returns:
            uint32 array of 256 ARGB entries; missing entries are black

        Raises:
            ConfigurationError: unsupported or malformed palette data
            OutputIOError: the file cannot be read
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise OutputIOError(f"Cannot read palette file {path}: {e}", path)

        if data[:2] == b"BM" or data[:4] == PNG_SIGNATURE[:4]:
            colors = PaletteImporter._from_image(path, preserve_alpha)
        elif data[:4] == b"RIFF":
            colors = PaletteImporter._from_pal(data)
        elif data[:4] in (b"BAM ", b"BAMC"):
            if data[4:8] != b"V1  ":
                raise ConfigurationError(f'BAM file "{path.name}" does not contain palette data.')
            colors = PaletteImporter._from_bam(data, preserve_alpha)
        else:
            colors = PaletteImporter._from_act(data)

        if not colors:
            raise ConfigurationError(f"No palette found in file {path.name}")
        palette = np.zeros(PALETTE_SIZE, dtype=np.uint32)
        count = min(len(colors), PALETTE_SIZE)
        palette[:count] = np.asarray(colors[:count], dtype=np.uint32)
        logger.info("Loaded %d palette entries from %s", count, path)
        return palette

    # ========== Formats ==========

    @staticmethod
    def _from_image(path: Path, preserve_alpha: bool) -> list:
        """BMP and PNG: palette of a "P" mode image; tRNS alpha only on request."""
        try:
            with Image.open(path) as img:
                if img.mode != "P":
                    raise ConfigurationError(
                        f"{img.format} file {path.name} does not contain a color palette (mode {img.mode})"
                    )
                rgb = img.getpalette() or []
                transparency = img.info.get("transparency")
        except (UnidentifiedImageError, OSError) as e:
            raise ConfigurationError(f"Error loading palette from {path.name}: {e}")

        count = len(rgb) // 3
        alpha = [0xFF] * count
        if preserve_alpha:
            if isinstance(transparency, bytes):
                for i, a in enumerate(transparency[:count]):
                    alpha[i] = a
            elif isinstance(transparency, int) and 0 <= transparency < count:
                alpha[transparency] = 0
        return [
            (alpha[i] << 24) | (rgb[3 * i] << 16) | (rgb[3 * i + 1] << 8) | rgb[3 * i + 2]
            for i in range(count)
        ]

    @staticmethod
    def _from_pal(data: bytes) -> list:
        if len(data) < 12 or data[8:12] != b"PAL ":
            raise ConfigurationError("Invalid Windows palette file")
        offset = 12
        while offset + 8 <= len(data):
            chunk_id, size = struct.unpack_from("<4sI", data, offset)
            if chunk_id == b"data":
                break
            offset += 8 + size
        else:
            raise ConfigurationError("Windows palette file has no data chunk")

        _, count = struct.unpack_from("<HH", data, offset + 8)
        if not 2 <= count <= PALETTE_SIZE:
            raise ConfigurationError(f"Invalid number of color entries in Windows palette file: {count}")
        start = offset + 12
        if len(data) < start + count * 4:
            raise ConfigurationError("Truncated Windows palette file")
        colors = []
        for i in range(count):
            r, g, b, _ = data[start + 4 * i:start + 4 * i + 4]
            colors.append(0xFF000000 | (r << 16) | (g << 8) | b)
        return colors

    @staticmethod
    def _from_bam(data: bytes, preserve_alpha: bool) -> list:
        if data[:4] == b"BAMC":
            try:
                data = zlib.decompress(data[12:])
            except zlib.error as e:
                raise ConfigurationError(f"Corrupted compressed BAM: {e}")
        if len(data) < 0x14:
            raise ConfigurationError("Truncated BAM header")
        (offset,) = struct.unpack_from("<I", data, 0x10)
        if offset < 0x18 or offset + PALETTE_SIZE * 4 > len(data):
            raise ConfigurationError("Error loading palette: invalid palette offset")
        colors = list(struct.unpack_from(f"<{PALETTE_SIZE}I", data, offset))
        return [
            c | 0xFF000000 if not preserve_alpha or c & 0xFF000000 == 0 else c
            for c in colors
        ]

    @staticmethod
    def _from_act(data: bytes) -> list:
        if len(data) < ACT_SIZE:
            raise ConfigurationError("Invalid Adobe Photoshop palette file")
        transparent = data[ACT_SIZE + 3] if len(data) == ACT_SIZE_EXTENDED else -1
        colors = []
        for i in range(PALETTE_SIZE):
            if i == transparent:
                colors.append(KEY_COLOR)
            else:
                r, g, b = data[3 * i:3 * i + 3]
                colors.append(0xFF000000 | (r << 16) | (g << 8) | b)
        return colors
