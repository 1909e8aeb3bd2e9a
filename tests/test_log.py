"""Tests for logging setup."""

from __future__ import annotations

import logging

import pytest

from httpctl.local.config import effective_settings
from httpctl.log import get_console_handler, setup_logging
from httpctl.log.setup import MainFormatter

pytestmark = [pytest.mark.unit]


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in saved_handlers:
            handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


class TestSetupLogging:
    def test_console_and_file_handlers(self, restore_root_logger, monkeypatch, tmp_path):
        log_file = tmp_path / "logs" / "httpctl.log"
        monkeypatch.setattr(effective_settings, "LOG_FILE_PATH", log_file)

        setup_logging(logging.INFO)
        logging.getLogger("tests.log").info("hello file")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert get_console_handler().level == logging.INFO
        assert any(isinstance(h, logging.FileHandler) for h in restore_root_logger.handlers)
        assert "hello file" in log_file.read_text()

    def test_unwritable_log_file_keeps_console(self, restore_root_logger, monkeypatch, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        monkeypatch.setattr(effective_settings, "LOG_FILE_PATH", blocker / "httpctl.log")

        setup_logging(logging.DEBUG)

        assert get_console_handler().level == logging.DEBUG
        assert not any(isinstance(h, logging.FileHandler) for h in restore_root_logger.handlers)

    def test_repeated_setup_does_not_duplicate(self, restore_root_logger, monkeypatch, tmp_path):
        monkeypatch.setattr(effective_settings, "LOG_FILE_PATH", tmp_path / "httpctl.log")

        setup_logging()
        setup_logging()

        assert len(restore_root_logger.handlers) == 2


class TestMainFormatter:
    def _record(self, name, message):
        return logging.LogRecord(name, logging.INFO, __file__, 1, message, None, None)

    def test_child_output_is_raw(self):
        assert MainFormatter().format(self._record("proc.asgi_server", "raw line")) == "raw line"

    def test_application_record_is_formatted(self):
        formatted = MainFormatter().format(self._record("httpctl.supervisor", "hello"))

        assert "[httpctl.supervisor] - hello" in formatted
        assert "INFO" in formatted
