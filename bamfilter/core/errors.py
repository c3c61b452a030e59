"""
Error taxonomy for the filter pipeline.

ConfigurationError is recovered inside ``set_configuration``; the others
abort a conversion (or, for multi-file outputs, a single file).
"""

from typing import Optional


class BamFilterError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(BamFilterError):
    """Malformed or out-of-range configuration string."""

    def __init__(self, message: str, field_index: Optional[int] = None):
        super().__init__(message)
        self.field_index = field_index


class UnsupportedCombinationError(BamFilterError):
    """Filter cannot run with the selected target or frame representation."""


class DecoderInvariantError(BamFilterError):
    """The decoded frame set violates a structural precondition."""


class OutputIOError(BamFilterError, IOError):
    """Writing or reading an output/auxiliary file failed."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class ConversionCancelled(BamFilterError):
    """Conversion stopped on request between frames or filters."""


class FilterProcessingError(BamFilterError):
    """A filter failed while processing; records which one."""

    def __init__(self, filter_name: str, cause: BaseException):
        super().__init__(f"{filter_name}: {cause}")
        self.filter_name = filter_name
        self.cause = cause
