"""
Filter registry.

Static mapping from FilterKind to filter class.
"""

from typing import List, Optional, Union

from ..core.types import FilterCategory
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
from .filters import BamFilter, FilterKind
from .output_filters import (
    CombineOutputFilter,
    DefaultOutputFilter,
    GifOutputFilter,
    ImageOutputFilter,
    SplitOutputFilter,
)
from .overlay import OverlayOutputFilter
from .transform_filters import (
    CenterFilter,
    MirrorFilter,
    ResizeFilter,
    RotateFilter,
    TrimFilter,
)


# Registry of all available filters
FILTER_REGISTRY = {
    FilterKind.BCG: BrightnessContrastGammaFilter,
    FilterKind.HSL: HslFilter,
    FilterKind.LAB: LabFilter,
    FilterKind.BALANCE: BalanceFilter,
    FilterKind.REPLACE: ReplacePaletteFilter,
    FilterKind.SWAP: SwapFilter,
    FilterKind.INVERT: InvertFilter,
    FilterKind.BLUR: BlurFilter,
    FilterKind.EDGE_DETECT: EdgeDetectFilter,
    FilterKind.RESIZE: ResizeFilter,
    FilterKind.ROTATE: RotateFilter,
    FilterKind.MIRROR: MirrorFilter,
    FilterKind.TRIM: TrimFilter,
    FilterKind.CENTER: CenterFilter,
    FilterKind.OUTPUT_DEFAULT: DefaultOutputFilter,
    FilterKind.OUTPUT_COMBINE: CombineOutputFilter,
    FilterKind.OUTPUT_SPLIT: SplitOutputFilter,
    FilterKind.OUTPUT_IMAGE: ImageOutputFilter,
    FilterKind.OUTPUT_GIF: GifOutputFilter,
    FilterKind.OUTPUT_OVERLAY: OverlayOutputFilter,
}


def resolve_kind(kind: Union[FilterKind, str]) -> Optional[FilterKind]:
    """Accept a FilterKind, its value ("bcg") or its name ("BCG")."""
    if isinstance(kind, FilterKind):
        return kind
    text = str(kind).strip()
    try:
        return FilterKind(text.lower())
    except ValueError:
        return FilterKind.__members__.get(text.upper())


def create_filter(kind: Union[FilterKind, str]) -> Optional[BamFilter]:
    """Create a filter instance by kind. Returns None if filter not found."""
    resolved = resolve_kind(kind)
    if resolved is None or resolved not in FILTER_REGISTRY:
        return None
    return FILTER_REGISTRY[resolved]()


def get_filters_by_category(category: FilterCategory) -> List[BamFilter]:
    """Get all filters in a specific category."""
    filters = []
    for filter_class in FILTER_REGISTRY.values():
        f = filter_class()
        if f.category == category:
            filters.append(f)
    return filters


def get_all_categories() -> List[FilterCategory]:
    """Get all filter categories in pipeline order."""
    seen = {filter_class().category for filter_class in FILTER_REGISTRY.values()}
    return [category for category in FilterCategory if category in seen]
