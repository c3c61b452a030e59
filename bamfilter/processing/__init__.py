"""
Processing system for the BAM filter pipeline.

Provides configurable color, transform and output filters that operate on
decoded frame sets. Filters are stored as configuration strings and applied
in Color -> Transform -> Output order.
"""

from .pipeline import FilterPipeline
from .filters import (
    BamFilter,
    FilterKind,
    FilterParameter,
    FrameSetFilter,
    ParameterType,
    PixelFilter,
)
from .color_filters import (
    BalanceFilter,
    BlurFilter,
    BrightnessContrastGammaFilter,
    EdgeDetectFilter,
    HslFilter,
    InvertFilter,
    LabFilter,
    ReplacePaletteFilter,
    SwapFilter,
)
from .transform_filters import (
    CenterFilter,
    MirrorFilter,
    ResizeFilter,
    RotateFilter,
    TrimFilter,
)
from .output_filters import (
    CombineOutputFilter,
    DefaultOutputFilter,
    GifOutputFilter,
    ImageOutputFilter,
    SplitOutputFilter,
)
from .overlay import OverlayMode, OverlayOutputFilter
from .registry import (
    FILTER_REGISTRY,
    create_filter,
    get_all_categories,
    get_filters_by_category,
)

__all__ = [
    "FilterPipeline",
    "BamFilter",
    "FilterKind",
    "FilterParameter",
    "FrameSetFilter",
    "ParameterType",
    "PixelFilter",
    # Helpers
    "create_filter",
    "get_filters_by_category",
    "get_all_categories",
    "FILTER_REGISTRY",
    # Color
    "BrightnessContrastGammaFilter",
    "HslFilter",
    "LabFilter",
    "BalanceFilter",
    "SwapFilter",
    "InvertFilter",
    "BlurFilter",
    "EdgeDetectFilter",
    "ReplacePaletteFilter",
    # Transform
    "ResizeFilter",
    "RotateFilter",
    "MirrorFilter",
    "TrimFilter",
    "CenterFilter",
    # Output
    "DefaultOutputFilter",
    "CombineOutputFilter",
    "SplitOutputFilter",
    "ImageOutputFilter",
    "GifOutputFilter",
    "OverlayOutputFilter",
    "OverlayMode",
]
