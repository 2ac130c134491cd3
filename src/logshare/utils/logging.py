from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import TextIO


ROOT_LOGGER = "logshare"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_FILE = Path(".logshare") / "logshare-cli.log"

# console lines are short, the file keeps full timestamps and logger names
CONSOLE_FORMAT = "%(asctime)s [logshare-cli] %(levelname)s %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# loop mode runs until killed, so the file is rotated by size
FILE_MAX_BYTES = 5 * 1024 * 1024
FILE_BACKUP_COUNT = 3


def resolve_log_level(level: str | None) -> int:
    name = (level or "INFO").upper().strip()
    if name not in LOG_LEVELS:
        return logging.INFO
    return logging.getLevelName(name)


def _console_handler(level: str, stream: TextIO | None) -> logging.Handler:
    # stdout carries fetched records
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolve_log_level(level))
    handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=FILE_MAX_BYTES,
        backupCount=FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def configure_logging(
    *,
    level: str = "INFO",
    log_file: str | Path | None = None,
    enable_file: bool = True,
    stream: TextIO | None = None,
) -> Path | None:
    """
    Set up the "logshare" logger once per process.

    Calling it again replaces (and closes) the handlers from the previous call.
    Returns the log file path, or None when file logging is off.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG)
    root.propagate = False
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    root.addHandler(_console_handler(level, stream))

    if not enable_file:
        return None
    file_path = Path(log_file) if log_file else DEFAULT_LOG_FILE
    root.addHandler(_file_handler(file_path))
    return file_path


def get_logger(name: str) -> logging.Logger:
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
