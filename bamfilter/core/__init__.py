"""Core frame model, errors and validation."""
from .types import (
    PALETTE_SIZE,
    KEY_COLOR,
    FilterCategory,
    TargetVersion,
    DxtType,
    ValidationSeverity,
    Frame,
    Cycle,
    FrameSet,
    TileIndexAllocator,
    ConversionSettings,
    ValidationIssue,
    OutputFileResult,
    ConversionResult,
)
from .errors import (
    BamFilterError,
    ConfigurationError,
    UnsupportedCombinationError,
    DecoderInvariantError,
    OutputIOError,
    ConversionCancelled,
    FilterProcessingError,
)
from .pixels import PixelBuffer
from .validation import ValidationEngine

__all__ = [
    "PALETTE_SIZE",
    "KEY_COLOR",
    "FilterCategory",
    "TargetVersion",
    "DxtType",
    "ValidationSeverity",
    "Frame",
    "Cycle",
    "FrameSet",
    "TileIndexAllocator",
    "ConversionSettings",
    "ValidationIssue",
    "OutputFileResult",
    "ConversionResult",
    "BamFilterError",
    "ConfigurationError",
    "UnsupportedCombinationError",
    "DecoderInvariantError",
    "OutputIOError",
    "ConversionCancelled",
    "FilterProcessingError",
    "PixelBuffer",
    "ValidationEngine",
]
