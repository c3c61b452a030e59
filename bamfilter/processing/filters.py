"""
Filter base classes for the processing pipeline.

Every filter owns a set of typed parameters that round-trip through a
compact ``;``-separated configuration string. Two capabilities exist:
PixelFilter (one frame in, one frame out; color and transform filters) and
FrameSetFilter (the whole frame set in, output files out).
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from ..core.errors import ConfigurationError
from ..core.types import (
    ConversionSettings,
    FilterCategory,
    Frame,
    FrameSet,
    OutputFileResult,
    PALETTE_SIZE,
)
from . import config_codec as codec

logger = logging.getLogger(__name__)


class ParameterType(Enum):
    """Type of filter parameter."""
    FLOAT = auto()
    INT = auto()
    BOOL = auto()
    INDEX_LIST = auto()  # palette indices, e.g. the exclude set
    COLOR_LIST = auto()  # ARGB values, e.g. a replacement palette


class FilterKind(Enum):
    """Tag identifying each concrete filter. Member order is the display order."""
    BCG = "bcg"
    HSL = "hsl"
    LAB = "lab"
    BALANCE = "balance"
    REPLACE = "replace"
    SWAP = "swap"
    INVERT = "invert"
    BLUR = "blur"
    EDGE_DETECT = "edge_detect"
    RESIZE = "resize"
    ROTATE = "rotate"
    MIRROR = "mirror"
    TRIM = "trim"
    CENTER = "center"
    OUTPUT_DEFAULT = "output_default"
    OUTPUT_COMBINE = "output_combine"
    OUTPUT_SPLIT = "output_split"
    OUTPUT_IMAGE = "output_image"
    OUTPUT_GIF = "output_gif"
    OUTPUT_OVERLAY = "output_overlay"


@dataclass
class FilterParameter:
    """A single parameter for a filter."""
    name: str
    param_type: ParameterType
    value: Any
    min_val: Optional[float] = None
    max_val: Optional[float] = None
    options: Optional[List[str]] = None
    description: str = ""

    def validate(self) -> tuple[bool, str]:
        """Validate parameter value. Returns (is_valid, error_message)."""

        if self.param_type == ParameterType.FLOAT:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
                return False, f"{self.name} must be a number"
            if self.min_val is not None and self.value < self.min_val:
                return False, f"{self.name} must be >= {self.min_val}"
            if self.max_val is not None and self.value > self.max_val:
                return False, f"{self.name} must be <= {self.max_val}"

        elif self.param_type == ParameterType.INT:
            if isinstance(self.value, bool) or not isinstance(self.value, int):
                return False, f"{self.name} must be an integer"
            if self.min_val is not None and self.value < self.min_val:
                return False, f"{self.name} must be >= {int(self.min_val)}"
            if self.max_val is not None and self.value > self.max_val:
                return False, f"{self.name} must be <= {int(self.max_val)}"

        elif self.param_type == ParameterType.BOOL:
            if not isinstance(self.value, bool):
                return False, f"{self.name} must be a boolean"

        elif self.param_type == ParameterType.INDEX_LIST:
            if not all(isinstance(v, int) and 0 <= v < PALETTE_SIZE for v in self.value):
                return False, f"{self.name} must contain palette indices 0-{PALETTE_SIZE - 1}"

        elif self.param_type == ParameterType.COLOR_LIST:
            if len(self.value) > PALETTE_SIZE:
                return False, f"{self.name} holds at most {PALETTE_SIZE} colors"
            if not all(isinstance(v, int) and 0 <= v <= 0xFFFFFFFF for v in self.value):
                return False, f"{self.name} must contain 32-bit ARGB values"

        return True, ""

    def encode(self) -> str:
        """Render the value as a configuration field."""
        if self.param_type == ParameterType.FLOAT:
            return codec.encode_float(self.value)
        if self.param_type == ParameterType.BOOL:
            return codec.encode_bool(self.value)
        if self.param_type == ParameterType.INDEX_LIST:
            return codec.encode_int_list(sorted(set(self.value)))
        if self.param_type == ParameterType.COLOR_LIST:
            return codec.encode_int_list(self.value)
        return str(self.value)

    def decode(self, text: str) -> Any:
        """Parse a configuration field; raises ConfigurationError."""
        if self.param_type == ParameterType.FLOAT:
            return codec.decode_float(text, self.min_val, self.max_val)
        if self.param_type == ParameterType.INT:
            low = None if self.min_val is None else int(self.min_val)
            high = None if self.max_val is None else int(self.max_val)
            return codec.decode_int(text, low, high)
        if self.param_type == ParameterType.BOOL:
            return codec.decode_bool(text)
        if self.param_type == ParameterType.INDEX_LIST:
            return sorted(set(codec.decode_int_list(text, 0, PALETTE_SIZE - 1)))
        if self.param_type == ParameterType.COLOR_LIST:
            colors = codec.decode_color_list(text)
            if len(colors) > PALETTE_SIZE:
                raise ConfigurationError(f"{self.name} holds at most {PALETTE_SIZE} colors")
            return colors
        raise ConfigurationError(f"Unsupported parameter type {self.param_type}")


@dataclass
class BamFilter:
    """Base class for all filters."""
    kind: FilterKind
    name: str
    category: FilterCategory
    description: str = ""
    enabled: bool = True
    order: int = 0
    parameters: Dict[str, FilterParameter] = field(default_factory=dict)

    # ========== Parameters ==========

    def validate_parameters(self) -> tuple[bool, List[str]]:
        """Validate all parameters. Returns (is_valid, list_of_errors)."""
        errors = []
        for param in self.parameters.values():
            is_valid, error_msg = param.validate()
            if not is_valid:
                errors.append(error_msg)
        return len(errors) == 0, errors

    def get_parameter(self, name: str) -> Optional[FilterParameter]:
        """Get a parameter by name."""
        return self.parameters.get(name)

    def value(self, name: str) -> Any:
        return self.parameters[name].value

    def set_parameter(self, name: str, value: Any) -> bool:
        """Set a parameter value if it validates. Returns success."""
        param = self.parameters.get(name)
        if param is None:
            return False
        previous = param.value
        param.value = value
        is_valid, error = param.validate()
        if not is_valid:
            param.value = previous
            logger.debug("Rejected %s=%r for %s: %s", name, value, self.name, error)
        return is_valid

    def clone(self) -> "BamFilter":
        """Create a deep copy of this filter with same parameters."""
        return deepcopy(self)

    # ========== Configuration string ==========

    def get_configuration(self) -> str:
        """Serialize parameters as ``;``-separated positional fields."""
        return codec.join_fields(p.encode() for p in self.parameters.values())

    def parse_configuration(self, config: Optional[str]) -> Dict[str, Any]:
        """
        Decode a configuration string without applying it.

        Returns the values of the fields present. Raises ConfigurationError
        if any present field is malformed or out of range.
        """
        fields = codec.split_fields(config)
        values = {}
        for index, (key, text) in enumerate(zip(self.parameters, fields)):
            try:
                values[key] = self.parameters[key].decode(text)
            except ConfigurationError as e:
                raise ConfigurationError(f"Field {index} ({key}): {e}", index)
        return values

    def set_configuration(self, config: Optional[str]) -> bool:
        """
        Apply a configuration string. Returns False, leaving the state
        unchanged, if the string is missing or any field is invalid.
        """
        try:
            values = self.parse_configuration(config)
        except ConfigurationError as e:
            logger.warning("Invalid configuration for %s: %s", self.name, e)
            return False
        for key, value in values.items():
            self.parameters[key].value = value
        return True

    def is_output(self) -> bool:
        return self.category == FilterCategory.OUTPUT


class PixelFilter(BamFilter):
    """Filter transforming a single frame (color and transform filters)."""

    def prepare(self, original: FrameSet, settings: ConversionSettings) -> None:
        """Hook run once per pass with the unfiltered frame set."""

    def process_frame(self, frame: Frame, settings: ConversionSettings) -> Frame:
        raise NotImplementedError

    def update_preview(self, frame: Frame, settings: ConversionSettings) -> Frame:
        """Render the effect for preview; same as processing unless overridden."""
        return self.process_frame(frame, settings)


class FrameSetFilter(BamFilter):
    """Terminal filter consuming the whole frame set and writing output files."""

    def preflight(self, frame_set: FrameSet, settings: ConversionSettings) -> list:
        """Return ValidationIssues to check before any file is written."""
        return []

    def process_frame_set(self, frame_set: FrameSet,
                          settings: ConversionSettings) -> List[OutputFileResult]:
        raise NotImplementedError

    def update_preview(self, frame: Frame, settings: ConversionSettings) -> Frame:
        return frame
