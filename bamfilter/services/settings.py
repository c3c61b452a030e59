"""
Settings management for the BAM filter tools.

Handles persistent storage of user preferences in settings.ini.
"""

import logging
from configparser import ConfigParser, Error as ConfigParserError
from pathlib import Path
from typing import Optional

from ..core.types import DxtType, TargetVersion

logger = logging.getLogger(__name__)


class Settings:
    """Manages application settings via settings.ini."""

    # Settings file location (project root)
    SETTINGS_FILE = Path(__file__).parent.parent.parent / "settings.ini"

    # Section and keys
    SECTION = "preferences"
    KEY_INPUT_DIR = "last_input_dir"
    KEY_OUTPUT_DIR = "last_output_dir"
    KEY_TARGET = "target_version"
    KEY_DXT_TYPE = "dxt_type"
    KEY_TILE_INDEX = "tile_index"
    KEY_RLE_INDEX = "rle_index"
    KEY_COMPRESSED = "compressed"
    KEY_GIF_FRAME_RATE = "gif_frame_rate"
    KEY_LOG_LEVEL = "log_level"

    DEFAULTS = {
        KEY_INPUT_DIR: "",
        KEY_OUTPUT_DIR: "",
        KEY_TARGET: TargetVersion.LEGACY.name,
        KEY_DXT_TYPE: DxtType.AUTO.name,
        KEY_TILE_INDEX: "0",
        KEY_RLE_INDEX: "0",
        KEY_COMPRESSED: "false",
        KEY_GIF_FRAME_RATE: "15",
        KEY_LOG_LEVEL: "INFO",
    }

    def __init__(self, settings_file: Optional[Path] = None):
        """Initialize settings from file or create defaults."""
        if settings_file is not None:
            self.SETTINGS_FILE = Path(settings_file)
        self.config = ConfigParser()
        self._load()

    def _load(self) -> None:
        """Load settings from file or create defaults."""
        if self.SETTINGS_FILE.exists():
            try:
                self.config.read(self.SETTINGS_FILE)
            except ConfigParserError as e:
                logger.warning("Ignoring unreadable settings file %s: %s", self.SETTINGS_FILE, e)
                self.config = ConfigParser()
        if not self.config.has_section(self.SECTION):
            self.config.add_section(self.SECTION)
            for key, value in self.DEFAULTS.items():
                self.config.set(self.SECTION, key, value)
            self._save()

    def _save(self) -> None:
        """Save settings to file."""
        self.SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(self.SETTINGS_FILE, "w") as f:
            self.config.write(f)

    def _get(self, key: str) -> str:
        return self.config.get(self.SECTION, key, fallback=self.DEFAULTS[key])

    def _set(self, key: str, value: str) -> None:
        if not self.config.has_section(self.SECTION):
            self.config.add_section(self.SECTION)
        self.config.set(self.SECTION, key, value)
        self._save()

    def _get_int(self, key: str, min_val: int, max_val: int) -> int:
        try:
            value = int(self._get(key))
        except ValueError:
            return int(self.DEFAULTS[key])
        if not min_val <= value <= max_val:
            return int(self.DEFAULTS[key])
        return value

    # ========== Directories ==========

    def get_input_dir(self) -> Optional[str]:
        """Get last input directory."""
        val = self._get(self.KEY_INPUT_DIR)
        return val if val else None

    def set_input_dir(self, path: str) -> None:
        """Set and save last input directory."""
        self._set(self.KEY_INPUT_DIR, path)

    def get_output_dir(self) -> Optional[str]:
        """Get last output directory."""
        val = self._get(self.KEY_OUTPUT_DIR)
        return val if val else None

    def set_output_dir(self, path: str) -> None:
        """Set and save last output directory."""
        self._set(self.KEY_OUTPUT_DIR, path)

    # ========== Conversion ==========

    def get_target(self) -> TargetVersion:
        """Get target version (default: LEGACY)."""
        try:
            return TargetVersion[self._get(self.KEY_TARGET).upper()]
        except KeyError:
            return TargetVersion.LEGACY

    def set_target(self, target: TargetVersion) -> None:
        self._set(self.KEY_TARGET, target.name)

    def get_dxt_type(self) -> DxtType:
        """Get block compression type (default: AUTO)."""
        try:
            return DxtType[self._get(self.KEY_DXT_TYPE).upper()]
        except KeyError:
            return DxtType.AUTO

    def set_dxt_type(self, dxt_type: DxtType) -> None:
        self._set(self.KEY_DXT_TYPE, dxt_type.name)

    def get_tile_index(self) -> int:
        return self._get_int(self.KEY_TILE_INDEX, 0, 99999)

    def set_tile_index(self, index: int) -> None:
        self._set(self.KEY_TILE_INDEX, str(int(index)))

    def get_rle_index(self) -> int:
        return self._get_int(self.KEY_RLE_INDEX, 0, 255)

    def set_rle_index(self, index: int) -> None:
        self._set(self.KEY_RLE_INDEX, str(int(index)))

    def get_compressed(self) -> bool:
        return self._get(self.KEY_COMPRESSED).strip().lower() == "true"

    def set_compressed(self, compressed: bool) -> None:
        self._set(self.KEY_COMPRESSED, "true" if compressed else "false")

    def get_gif_frame_rate(self) -> int:
        """Get GIF frame rate (default: 15)."""
        return self._get_int(self.KEY_GIF_FRAME_RATE, 1, 60)

    def set_gif_frame_rate(self, rate: int) -> None:
        self._set(self.KEY_GIF_FRAME_RATE, str(int(rate)))

    # ========== Logging ==========

    def get_log_level(self) -> str:
        level = self._get(self.KEY_LOG_LEVEL).strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            return "INFO"
        return level

    def set_log_level(self, level: str) -> None:
        self._set(self.KEY_LOG_LEVEL, level.upper())
