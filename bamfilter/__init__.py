"""BAM frame filter pipeline."""

__version__ = "1.0.0"
