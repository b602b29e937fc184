import logging
import sys

import pytest

from pomodoro_api import logging_setup
from pomodoro_api.logging_setup import LogBufferHandler, log_buffer, log_crash, recent_logs


@pytest.fixture
def buffered_logger():
    log_buffer.clear()
    log = logging.getLogger("pomodoro_api.test_buffer")
    handler = LogBufferHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    log.addHandler(handler)
    log.setLevel(logging.DEBUG)
    yield log
    log.removeHandler(handler)
    log_buffer.clear()


def test_buffer_captures_records(buffered_logger):
    buffered_logger.info("Preset created")
    entry = recent_logs()[-1]
    assert entry["level"] == "INFO"
    assert entry["message"] == "Preset created"
    assert entry["logger"] == "pomodoro_api.test_buffer"


def test_buffer_is_bounded(buffered_logger):
    for i in range(150):
        buffered_logger.debug(f"line {i}")
    assert len(log_buffer) == 100
    assert recent_logs(2)[-1]["message"] == "line 149"
    assert recent_logs(0) == []


def test_crash_log_written(tmp_path):
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        log_crash(type(e), e, e.__traceback__, context="test", logs_dir=tmp_path)
    text = (tmp_path / "crash.log").read_text()
    assert "CRASH [test]" in text
    assert "RuntimeError: boom" in text


def test_configure_logging_once(tmp_path, monkeypatch):
    monkeypatch.setattr(logging_setup, "_configured", False)
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    log = logging_setup.logger
    before = list(log.handlers)
    try:
        logging_setup.configure_logging(level="INFO", logs_dir=tmp_path, to_console=False)
        added = len(log.handlers) - len(before)
        logging_setup.configure_logging(level="INFO", logs_dir=tmp_path, to_console=False)
        assert len(log.handlers) - len(before) == added == 3
        assert (tmp_path / logging_setup.config.DEPLOYMENT_ENV / "app.log").exists()
    finally:
        for handler in log.handlers[len(before):]:
            handler.close()
        log.handlers[:] = before
        for name in ("uvicorn", "fastapi"):
            other = logging.getLogger(name)
            other.handlers[:] = [h for h in other.handlers if not isinstance(h, LogBufferHandler)]
