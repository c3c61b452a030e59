"""Tests for logging setup."""

import logging

import pytest

from bamfilter.logconf import LOG_FILE_NAME, log_path, setup_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in saved[0]:
        root.addHandler(handler)
    root.setLevel(saved[1])


class TestSetupLogging:
    """Console and file handlers on the root logger."""

    def test_level_by_name(self, restore_root, tmp_path):
        path = setup_logging("warning", tmp_path)
        assert path == (tmp_path / LOG_FILE_NAME).resolve()
        assert log_path() == path
        console, file_handler = restore_root.handlers
        assert console.level == logging.WARNING
        assert file_handler.level == logging.DEBUG

    def test_unknown_name_falls_back_to_info(self, restore_root, tmp_path):
        setup_logging("chatty", tmp_path)
        assert restore_root.handlers[0].level == logging.INFO

    def test_file_records_debug(self, restore_root, tmp_path):
        path = setup_logging(logging.ERROR, tmp_path / "nested")
        logging.getLogger("bamfilter.test").debug("hidden from the console")
        for handler in restore_root.handlers:
            handler.flush()
        assert "hidden from the console" in path.read_text()
        assert logging.getLogger("PIL").level == logging.WARNING
