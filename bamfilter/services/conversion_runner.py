"""
Threaded conversion runner.

Runs a pipeline conversion in a QRunnable and reports progress, log
lines and the final outcome through Qt signals.
"""

import logging
import traceback
from typing import Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from ..core.types import ConversionResult, ConversionSettings, FrameSet
from ..processing import FilterPipeline

logger = logging.getLogger(__name__)


class ConversionSignals(QObject):
    """Signals emitted by ConversionRunner."""
    progress = Signal(int, str)  # (percent, message)
    finished = Signal(bool, str)  # (success, final_message)
    log = Signal(str)  # log message


class ConversionRunner(QRunnable):
    """Runnable for conversion operations."""

    def __init__(self, pipeline: FilterPipeline, frame_set: FrameSet, settings: ConversionSettings):
        super().__init__()
        # The worker owns its own filter instances for the duration of the run
        self.pipeline = FilterPipeline(
            filters=[f.clone() for f in pipeline.filters],
            preview_frame=pipeline.preview_frame,
        )
        self.frame_set = frame_set
        self.settings = settings
        self.signals = ConversionSignals()
        self.stop_requested = False  # Flag to stop conversion
        self.result: Optional[ConversionResult] = None

    def request_stop(self) -> None:
        """Request the conversion to stop between frames."""
        self.stop_requested = True

    def run(self) -> None:
        """Execute the conversion."""
        try:
            self._log("=" * 60)
            self._log(f"Starting conversion to {self.settings.output_path}")
            self._log("=" * 60)
            for f in self.pipeline.normalized_filters():
                self._log(f"  {f.name}: {f.get_configuration() or '-'}")

            self.result = self.pipeline.convert(
                self.frame_set,
                self.settings,
                should_stop=lambda: self.stop_requested,
                progress=self.signals.progress.emit,
            )

            for item in self.result.files:
                if item.success:
                    self._log(f"Wrote {item.path}")
                else:
                    self._log(f"[ERROR] {item.path}: {item.error}")
            if self.result.failed_filter:
                self._log(f"[ERROR] Failed filter: {self.result.failed_filter}")
            self._log(self.result.message)
            self.signals.finished.emit(self.result.success, self.result.message)
        except Exception as e:
            logger.exception("Conversion crashed")
            self._log(traceback.format_exc())
            self.signals.finished.emit(False, f"Conversion failed: {e}")

    def _log(self, message: str) -> None:
        """Emit a log message."""
        logger.info("%s", message)
        self.signals.log.emit(message)


class ConversionManager(QObject):
    """Manages conversion thread pool."""

    finished = Signal(bool, str)  # (success, message)
    log = Signal(str)
    progress = Signal(int, str)  # (percent, message)

    def __init__(self):
        super().__init__()
        self.thread_pool = QThreadPool()
        self.current_runner: Optional[ConversionRunner] = None

    def start_conversion(self, pipeline: FilterPipeline, frame_set: FrameSet,
                         settings: ConversionSettings) -> None:
        """Start a conversion in a worker thread."""
        if self.current_runner:
            self.log.emit("Conversion already in progress")
            return

        self.current_runner = ConversionRunner(pipeline, frame_set, settings)
        self.current_runner.signals.finished.connect(self._on_finished)
        self.current_runner.signals.log.connect(self.log.emit)
        self.current_runner.signals.progress.connect(self.progress.emit)

        self.thread_pool.start(self.current_runner)

    def stop_conversion(self) -> None:
        """Request the current conversion to stop."""
        if self.current_runner:
            self.current_runner.request_stop()

    def is_running(self) -> bool:
        return self.current_runner is not None

    def _on_finished(self, success: bool, message: str) -> None:
        """Handle conversion completion."""
        self.current_runner = None
        self.finished.emit(success, message)
