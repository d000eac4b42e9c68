"""Logging setup for the CLI.

Library modules only call ``logging.getLogger(__name__)``; handlers are
attached here, and only by the CLI.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "shareline"


class _JsonFormatter(logging.Formatter):
    """Emit one JSON object per log line for machine-readable log files.

    Each line is independently ``json.loads``-able with keys:
    ``ts``, ``level``, ``logger``, ``msg`` (plus ``exc`` when present).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_file_logging(log_dir: str = "logs", level: int = logging.INFO) -> str:
    """Write ``shareline`` logs as JSON lines to ``{log_dir}/upload-YYYYMMDD.log``.

    Calling this twice does not add a second file handler.

    Returns:
        Path of the log file.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, f"upload-{datetime.now().strftime('%Y%m%d')}.log")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(min(logger.level or level, level))
    if any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return log_path

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_JsonFormatter())
    logger.addHandler(handler)
    return log_path


def configure_console_logging(console: Console, verbose: bool = False) -> None:
    """Route ``shareline`` logs through Rich so they render above progress bars."""
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(min(logger.level or level, level))
    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setLevel(level)
    logger.addHandler(handler)
