"""Services module initialization."""
from .settings import Settings
from .pipeline_serializer import PipelineSerializer
from .palette_import import PaletteImporter
from .frame_loader import FrameLoader
from .conversion_runner import ConversionManager, ConversionRunner, ConversionSignals

__all__ = [
    "Settings",
    "PipelineSerializer",
    "PaletteImporter",
    "FrameLoader",
    "ConversionManager",
    "ConversionRunner",
    "ConversionSignals",
]
