# src/bifrost_tasks/logging_setup.py

from __future__ import annotations

"""
Logging for the console app.

Two sinks on the root logger:
- <data_dir>/bifrost.log gets everything from file_level up
- stderr shares the terminal with the command prompt, so it is filtered:
  the periodic loops (recurrence monitor, sync scheduler, reconciler) log a
  line per pass at INFO and only reach the console at WARNING+.
"""

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FILE_NAME = "bifrost.log"

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that fire on every timer pass.
BACKGROUND_LOGGERS: tuple[str, ...] = (
    "bifrost_tasks.recurrence.monitor",
    "bifrost_tasks.sync.scheduler",
    "bifrost_tasks.sync.reconciler",
)

APP_PREFIX = "bifrost_tasks"


class ConsoleFilter(logging.Filter):
    """Per-logger console thresholds; anything not from the app needs ERROR."""

    def __init__(
        self,
        *,
        background: Iterable[str] = BACKGROUND_LOGGERS,
        background_level: int = logging.WARNING,
        foreign_level: int = logging.ERROR,
    ) -> None:
        super().__init__()
        self._background = tuple(background)
        self._background_level = background_level
        self._foreign_level = foreign_level

    def _threshold(self, name: str) -> int:
        if any(name == b or name.startswith(b + ".") for b in self._background):
            return self._background_level
        if name == APP_PREFIX or name.startswith(APP_PREFIX + "."):
            return logging.NOTSET
        # py.warnings, googleapiclient, google.auth, urllib3, ...
        return self._foreign_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self._threshold(record.name)


def _formatter() -> logging.Formatter:
    return logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_formatter())
    handler.addFilter(ConsoleFilter())
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(str(path), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_formatter())
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/bifrost",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Replace the root handlers with the console and file sinks.

    Returns the log file path. Call before the first log line is written.
    """
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / LOG_FILE_NAME

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(min(console_level, file_level))
    root.addHandler(_console_handler(console_level))
    root.addHandler(_file_handler(log_file, file_level))

    logging.captureWarnings(True)
    # discovery_cache warns on every build() without oauth2client installed.
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return log_file
