"""Logging for the API server and the terminal client."""

import logging
import sys
import traceback
from collections import deque
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Deque, Optional

from . import config

logger = logging.getLogger("pomodoro_api")

# Circular buffer of recent log entries (max 100)
log_buffer: Deque[dict] = deque(maxlen=100)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


class LogBufferHandler(logging.Handler):
    """Logging handler that captures records to the circular buffer."""

    def emit(self, record: logging.LogRecord):
        try:
            log_buffer.append({
                "timestamp": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            })
        except Exception:
            self.handleError(record)


def recent_logs(limit: int = 100) -> list[dict]:
    entries = list(log_buffer)
    return entries[-limit:] if limit > 0 else []


def _file_handler(path: Path, level: int, backup_count: int) -> logging.Handler:
    handler = TimedRotatingFileHandler(path, when="midnight", backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def log_crash(exc_type, exc_value, exc_tb, context: str = "unhandled", logs_dir: Optional[Path] = None):
    """Write crash info to a persistent file for post-mortem debugging."""
    crash_path = (logs_dir or config.LOGS_DIR) / "crash.log"
    try:
        timestamp = datetime.now().strftime(DATE_FORMAT)
        tb_str = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        with open(crash_path, "a") as f:
            f.write(f"\n{'=' * 60}\n")
            f.write(f"CRASH [{context}] at {timestamp}\n")
            f.write(f"{'=' * 60}\n")
            f.write(tb_str)
            f.write("\n")
    except OSError:
        pass
    print(f"CRASH [{context}]: {exc_type.__name__}: {exc_value}", file=sys.stderr)


def _global_exception_handler(exc_type, exc_value, exc_tb):
    log_crash(exc_type, exc_value, exc_tb, context="sync")
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def configure_logging(level: str = config.LOG_LEVEL, logs_dir: Optional[Path] = None,
                      to_files: bool = True, to_console: bool = True) -> logging.Logger:
    """Attach handlers once. Safe to call from both the server and the CLI."""
    global _configured
    if _configured:
        return logger
    _configured = True

    logger.setLevel(level)

    buffer_handler = LogBufferHandler()
    buffer_handler.setLevel(logging.DEBUG)
    buffer_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(buffer_handler)
    logging.getLogger("uvicorn").addHandler(buffer_handler)
    logging.getLogger("fastapi").addHandler(buffer_handler)

    if to_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(console)

    if to_files:
        target = (logs_dir or config.LOGS_DIR) / config.DEPLOYMENT_ENV
        try:
            target.mkdir(parents=True, exist_ok=True)
            logger.addHandler(_file_handler(target / "app.log", logging.INFO, 14))
            logger.addHandler(_file_handler(target / "error.log", logging.ERROR, 30))
            sys.excepthook = _global_exception_handler
        except OSError as e:
            logger.warning(f"File logging disabled, cannot use {target}: {e}")

    return logger
