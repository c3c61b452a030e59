"""
Filter pipeline management.

Holds the user's filter chain, keeps it in Color -> Transform -> Output
order with exactly one output stage, renders single-frame previews and
drives full conversions.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..core.errors import BamFilterError, ConversionCancelled, FilterProcessingError
from ..core.types import (
    ConversionResult,
    ConversionSettings,
    FilterCategory,
    Frame,
    FrameSet,
)
from ..core.validation import ValidationEngine
from .filters import BamFilter, FrameSetFilter, PixelFilter
from .output_filters import DefaultOutputFilter
from .registry import create_filter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

# Share of the progress range used by per-frame processing; output takes the rest
FRAME_PROGRESS_SHARE = 80


@dataclass
class FilterPipeline:
    """Container for a sequence of filters."""

    filters: List[BamFilter] = field(default_factory=list)
    preview_frame: int = 0
    on_changed: List[Callable[["FilterPipeline"], None]] = field(
        default_factory=list, repr=False, compare=False
    )

    _preview_source: Optional[FrameSet] = field(default=None, init=False, repr=False, compare=False)
    _preview_settings: Optional[ConversionSettings] = field(default=None, init=False, repr=False, compare=False)
    preview_result: Optional[Frame] = field(default=None, init=False, repr=False, compare=False)

    # ========== Editing ==========

    def add_filter(self, filter: BamFilter) -> bool:
        """
        Add a filter to the pipeline. Returns success.

        An output filter replaces the current output filter unless both are
        of the same kind, in which case the new one is rejected.
        """
        if filter.is_output():
            current = self.output_filter_index()
            if current is not None:
                if self.filters[current].kind == filter.kind:
                    logger.warning("Output filter %s is already in the pipeline", filter.name)
                    return False
                logger.info("Replacing output %s with %s", self.filters[current].name, filter.name)
                del self.filters[current]
        self.filters.append(filter)
        self._renumber()
        self._pipeline_changed()
        return True

    def remove_filter(self, index: int) -> bool:
        """Remove a filter by index. Returns success."""
        if 0 <= index < len(self.filters):
            del self.filters[index]
            self._renumber()
            self._pipeline_changed()
            return True
        return False

    def move_filter(self, from_index: int, to_index: int) -> bool:
        """Move a filter from one position to another. Returns success."""
        if not (0 <= from_index < len(self.filters) and 0 <= to_index < len(self.filters)):
            return False

        filter = self.filters.pop(from_index)
        self.filters.insert(to_index, filter)
        self._renumber()
        self._pipeline_changed()
        return True

    def get_filter(self, index: int) -> Optional[BamFilter]:
        """Get a filter by index."""
        if 0 <= index < len(self.filters):
            return self.filters[index]
        return None

    def set_filter_configuration(self, index: int, config: Optional[str]) -> bool:
        """Apply a configuration string to the filter at ``index``."""
        filter = self.get_filter(index)
        if filter is None or not filter.set_configuration(config):
            return False
        self._pipeline_changed()
        return True

    def set_filter_parameter(self, index: int, name: str, value: Any) -> bool:
        filter = self.get_filter(index)
        if filter is None or not filter.set_parameter(name, value):
            return False
        self._pipeline_changed()
        return True

    def set_filter_enabled(self, index: int, enabled: bool) -> bool:
        filter = self.get_filter(index)
        if filter is None:
            return False
        filter.enabled = enabled
        self._pipeline_changed()
        return True

    def clear(self) -> None:
        """Remove all filters from pipeline."""
        self.filters.clear()
        self._pipeline_changed()

    def validate(self) -> tuple[bool, List[str]]:
        """Validate all filters in pipeline. Returns (is_valid, errors)."""
        errors = []
        for i, filter in enumerate(self.filters):
            is_valid, filter_errors = filter.validate_parameters()
            if not is_valid:
                for error in filter_errors:
                    errors.append(f"Filter {i} ({filter.name}): {error}")
        return len(errors) == 0, errors

    def is_empty(self) -> bool:
        return len(self.filters) == 0

    def __len__(self) -> int:
        return len(self.filters)

    def __iter__(self):
        return iter(self.filters)

    def _renumber(self) -> None:
        for i, f in enumerate(self.filters):
            f.order = i

    # ========== Ordering ==========

    def output_filter_index(self) -> Optional[int]:
        for i, f in enumerate(self.filters):
            if f.is_output():
                return i
        return None

    def normalized_filters(self) -> List[BamFilter]:
        """
        Enabled filters in execution order.

        Sorted stably by category; the output stage is always last and a
        default output is supplied when none is enabled.
        """
        enabled = [f for f in self.filters if f.enabled]
        ordered = sorted(enabled, key=lambda f: f.category.value)
        outputs = [f for f in ordered if f.category == FilterCategory.OUTPUT]
        result = [f for f in ordered if f.category != FilterCategory.OUTPUT]
        result.append(outputs[-1] if outputs else DefaultOutputFilter())
        return result

    def pixel_filters(self) -> List[PixelFilter]:
        return [f for f in self.normalized_filters() if isinstance(f, PixelFilter)]

    def output_filter(self) -> FrameSetFilter:
        return self.normalized_filters()[-1]

    # ========== Preview ==========

    def preview(self, frame_set: FrameSet, settings: ConversionSettings,
                index: Optional[int] = None) -> Frame:
        """
        Render one frame through the color and transform filters.

        The frame set and settings are remembered so that later edits of the
        pipeline re-render the preview.
        """
        if index is not None:
            self.preview_frame = index
        self._preview_source = frame_set
        self._preview_settings = settings
        self.preview_result = self._render_preview()
        return self.preview_result

    def _render_preview(self) -> Frame:
        source = self._preview_source
        settings = self._preview_settings
        if source.frame_count() == 0:
            raise IndexError("Frame set is empty")
        index = min(max(self.preview_frame, 0), source.frame_count() - 1)
        frame = source.frame_at(index)
        filters = self.normalized_filters()
        for f in filters:
            if isinstance(f, PixelFilter):
                f.prepare(source, settings)
            frame = f.update_preview(frame, settings)
        return frame

    def _pipeline_changed(self) -> None:
        """Re-render the cached preview and notify listeners."""
        if self._preview_source is not None and self._preview_source.frame_count() > 0:
            try:
                self.preview_result = self._render_preview()
            except BamFilterError as e:
                logger.error("Preview failed: %s", e)
                self.preview_result = None
        for callback in self.on_changed:
            callback(self)

    # ========== Conversion ==========

    def convert(
        self,
        frame_set: FrameSet,
        settings: ConversionSettings,
        should_stop: Optional[Callable[[], bool]] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ConversionResult:
        """
        Run the full pipeline over every frame and write the output.

        Args:
            frame_set: Decoded frame set (left unmodified)
            settings: Global conversion settings
            should_stop: Polled between frames and filters; True cancels
            progress: Receives (percent, message)

        Returns:
            ConversionResult describing written files and failures
        """
        def _report(percent: int, message: str) -> None:
            if progress:
                progress(percent, message)

        def _check_stop() -> None:
            if should_stop and should_stop():
                raise ConversionCancelled("Conversion cancelled")

        filters = self.normalized_filters()
        logger.info("Converting %d frame(s) with: %s",
                    frame_set.frame_count(), ", ".join(f.name for f in filters))
        try:
            ValidationEngine.raise_for_errors(ValidationEngine.validate_frame_set(frame_set))
            is_valid, errors = self.validate()
            if not is_valid:
                raise FilterProcessingError("pipeline", ValueError("; ".join(errors)))

            pixel_filters = [f for f in filters if isinstance(f, PixelFilter)]
            output = filters[-1]
            for f in pixel_filters:
                _run_filter(f, f.prepare, frame_set, settings)

            working = frame_set.copy()
            total = working.frame_count()
            frames = []
            for i, frame in enumerate(working.frames):
                for f in pixel_filters:
                    _check_stop()
                    frame = _run_filter(f, f.process_frame, frame, settings)
                frames.append(frame)
                _report(int((i + 1) * FRAME_PROGRESS_SHARE / total), f"Processed frame {i + 1}/{total}")
            working = working.with_frames(frames)

            _check_stop()
            try:
                ValidationEngine.raise_for_errors(output.preflight(working, settings))
            except BamFilterError as e:
                raise FilterProcessingError(output.name, e)
            _report(FRAME_PROGRESS_SHARE, f"Writing output ({output.name})")
            files = _run_filter(output, output.process_frame_set, working, settings)
        except ConversionCancelled as e:
            logger.warning("%s", e)
            return ConversionResult(success=False, message=str(e))
        except FilterProcessingError as e:
            logger.error("Conversion failed in %s: %s", e.filter_name, e.cause)
            return ConversionResult(success=False, message=str(e), failed_filter=e.filter_name)
        except BamFilterError as e:
            logger.error("Conversion failed: %s", e)
            return ConversionResult(success=False, message=str(e))

        result = ConversionResult(success=True, message="", files=files)
        if result.failures:
            result.success = False
            result.failed_filter = output.name
            result.message = f"{len(result.failures)} of {len(files)} file(s) could not be written"
        else:
            result.message = f"Wrote {len(files)} file(s)"
        _report(100, result.message)
        logger.info("%s", result.message)
        return result

    # ========== Serialization ==========

    def to_dict(self) -> Dict[str, Any]:
        """Serialize pipeline to dictionary."""
        return {
            "preview_frame": self.preview_frame,
            "filters": [self._serialize_filter(f) for f in self.filters],
        }

    @staticmethod
    def _serialize_filter(filter: BamFilter) -> Dict[str, Any]:
        return {
            "kind": filter.kind.value,
            "name": filter.name,
            "enabled": filter.enabled,
            "configuration": filter.get_configuration(),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "FilterPipeline":
        """Deserialize pipeline from dictionary."""
        pipeline = FilterPipeline()
        pipeline.preview_frame = data.get("preview_frame") or 0

        for filter_data in data.get("filters", []):
            filter_obj = FilterPipeline._deserialize_filter(filter_data)
            if filter_obj:
                pipeline.add_filter(filter_obj)

        return pipeline

    @staticmethod
    def _deserialize_filter(data: Dict[str, Any]) -> Optional[BamFilter]:
        kind = data.get("kind")
        if not kind:
            return None

        filter_obj = create_filter(kind)
        if not filter_obj:
            logger.warning("Skipping unknown filter kind %r", kind)
            return None

        config = data.get("configuration", "")
        if not filter_obj.set_configuration(config):
            logger.warning("Using defaults for %s: invalid configuration %r", filter_obj.name, config)
        filter_obj.enabled = data.get("enabled", True)
        return filter_obj


def _run_filter(filter: BamFilter, method: Callable, *args):
    """Call a filter method, tagging any failure with the filter's name."""
    try:
        return method(*args)
    except ConversionCancelled:
        raise
    except Exception as e:
        raise FilterProcessingError(filter.name, e) from e
