"""Tests for the threaded conversion runner."""

import pytest
from PySide6.QtCore import QCoreApplication

from bamfilter.processing import BalanceFilter, FilterPipeline, InvertFilter
from bamfilter.services import ConversionManager, ConversionRunner

from conftest import make_indexed, make_set


@pytest.fixture(scope="module")
def qt_app():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


@pytest.fixture
def runner_events():
    return {"progress": [], "finished": [], "log": []}


def _connect(runner, events):
    runner.signals.progress.connect(lambda p, m: events["progress"].append((p, m)))
    runner.signals.finished.connect(lambda ok, m: events["finished"].append((ok, m)))
    runner.signals.log.connect(events["log"].append)


class TestConversionRunner:
    """Running conversions outside the caller's thread."""

    def test_run_reports_progress_and_result(self, qt_app, runner_events, legacy_settings, encoder):
        pipeline = FilterPipeline()
        pipeline.add_filter(InvertFilter())
        runner = ConversionRunner(pipeline, make_set(make_indexed([[10]])), legacy_settings)
        _connect(runner, runner_events)

        runner.run()

        assert runner_events["finished"] == [(True, "Wrote 1 file(s)")]
        assert runner_events["progress"][-1] == (100, "Wrote 1 file(s)")
        assert any("Invert colors" in line for line in runner_events["log"])
        assert any(line.startswith("Wrote ") for line in runner_events["log"])
        assert runner.result.success
        assert len(encoder.indexed_calls) == 1

    def test_stop_request_cancels(self, qt_app, runner_events, legacy_settings, encoder):
        pipeline = FilterPipeline()
        pipeline.add_filter(InvertFilter())
        runner = ConversionRunner(pipeline, make_set(make_indexed([[10]])), legacy_settings)
        _connect(runner, runner_events)

        runner.request_stop()
        runner.run()

        assert runner_events["finished"] == [(False, "Conversion cancelled")]
        assert encoder.indexed_calls == []

    def test_runner_owns_its_filters(self, qt_app, legacy_settings):
        pipeline = FilterPipeline()
        pipeline.add_filter(BalanceFilter())
        runner = ConversionRunner(pipeline, make_set(make_indexed([[10]])), legacy_settings)
        pipeline.set_filter_parameter(0, "red", 100)
        assert runner.pipeline.get_filter(0).value("red") == 0

    def test_failed_output_is_logged(self, qt_app, runner_events, legacy_settings, truecolor_frame):
        runner = ConversionRunner(FilterPipeline(), make_set(truecolor_frame), legacy_settings)
        _connect(runner, runner_events)
        runner.run()
        assert runner_events["finished"][0][0] is False
        assert "[ERROR] Failed filter: Default output" in runner_events["log"]


class TestConversionManager:
    """Thread pool wrapper around ConversionRunner."""

    def test_conversion_in_worker_thread(self, qt_app, legacy_settings, encoder):
        manager = ConversionManager()
        finished = []
        manager.finished.connect(lambda ok, m: finished.append((ok, m)))

        manager.start_conversion(FilterPipeline(), make_set(make_indexed([[10]])), legacy_settings)
        assert manager.is_running()
        manager.thread_pool.waitForDone()
        for _ in range(10):
            qt_app.processEvents()

        assert finished == [(True, "Wrote 1 file(s)")]
        assert not manager.is_running()
        assert len(encoder.indexed_calls) == 1

    def test_second_start_is_refused(self, qt_app, legacy_settings):
        manager = ConversionManager()
        messages = []
        manager.log.connect(messages.append)
        busy = ConversionRunner(FilterPipeline(), make_set(make_indexed([[10]])), legacy_settings)
        manager.current_runner = busy

        manager.start_conversion(FilterPipeline(), make_set(make_indexed([[10]])), legacy_settings)
        manager.stop_conversion()

        assert messages == ["Conversion already in progress"]
        assert manager.current_runner is busy
        assert busy.stop_requested
