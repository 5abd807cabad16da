# tests/test_logging_setup.py
import logging
import logging as std_logging

import structlog
from config import settings

import utils.logging as logging_utils


class RecordingLogger:
    def __init__(self):
        self.errors: list[str] = []

    def error(self, msg, *args, **_kw):
        self.errors.append(msg % args)


def test_setup_logging_file_error(monkeypatch, tmp_path):
    root_logger = std_logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level

    def raise_handler(*_a, **_k):
        raise OSError("fail")

    recorder = RecordingLogger()
    monkeypatch.setattr(logging_utils, "logger", recorder)
    monkeypatch.setattr(std_logging.handlers, "RotatingFileHandler", raise_handler)
    monkeypatch.setattr(settings, "LOG_FILE", "temp.log")
    monkeypatch.setattr(settings, "LOG_DIR", str(tmp_path))
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", False)
    try:
        logging_utils.setup_logging_forge()
        assert any("Error setting up file logger" in msg for msg in recorder.errors)
        assert [type(h) for h in root_logger.handlers] == [std_logging.StreamHandler]
    finally:
        root_logger.handlers = handlers
        root_logger.setLevel(level)
        structlog.reset_defaults()


def test_setup_logging_writes_file(monkeypatch, tmp_path):
    root_logger = std_logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    monkeypatch.setattr(settings, "LOG_FILE", "forge.log")
    monkeypatch.setattr(settings, "LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", True)
    try:
        logging_utils.setup_logging_forge("debug")
        assert root_logger.level == logging.DEBUG
        assert (tmp_path / "logs" / "forge.log").exists()
        assert std_logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers = handlers
        root_logger.setLevel(level)
        structlog.reset_defaults()


def _record():
    return std_logging.LogRecord("forge", logging.INFO, __file__, 1, "msg", None, None)


def test_run_context_tags_records_and_clears_on_exit():
    run_filter = logging_utils.RunContextFilter()

    with logging_utils.run_log_context("abc123") as run_id:
        assert run_id == "abc123"
        inside_before_intent = _record()
        run_filter.filter(inside_before_intent)
        logging_utils.bind_run_intent("MODIFY_EXISTING")
        inside = _record()
        run_filter.filter(inside)

    after = _record()
    run_filter.filter(after)

    assert inside_before_intent.forge_run == "run_id=abc123"
    assert inside.forge_run == "run_id=abc123 intent=MODIFY_EXISTING"
    assert after.forge_run == "-"
    assert "intent" not in structlog.contextvars.get_contextvars()


def test_run_context_generates_short_ids():
    with logging_utils.run_log_context() as first:
        pass
    with logging_utils.run_log_context() as second:
        pass
    assert len(first) == 8 and len(second) == 8
    assert first != second


def test_file_log_lines_carry_run_context(monkeypatch, tmp_path):
    root_logger = std_logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    monkeypatch.setattr(settings, "LOG_FILE", "forge.log")
    monkeypatch.setattr(settings, "LOG_DIR", str(tmp_path))
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", False)
    try:
        logging_utils.setup_logging_forge("info")
        with logging_utils.run_log_context("feedbeef"):
            logging_utils.bind_run_intent("CREATE_NEW")
            std_logging.getLogger("forge.test").info("stage finished")
        for handler in root_logger.handlers:
            handler.flush()
        lines = (tmp_path / "forge.log").read_text(encoding="utf-8").splitlines()
        assert any(
            "[run_id=feedbeef intent=CREATE_NEW]" in line and "stage finished" in line
            for line in lines
        )
    finally:
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers = handlers
        root_logger.setLevel(level)
        structlog.reset_defaults()
