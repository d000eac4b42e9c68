"""Tests for JSON-lines file logging."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from shareline.logging_config import LOGGER_NAME, configure_file_logging


@pytest.fixture
def clean_logger():
    logger = logging.getLogger(LOGGER_NAME)
    saved_handlers, saved_level = list(logger.handlers), logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in saved_handlers:
            handler.close()
    logger.handlers = saved_handlers
    logger.setLevel(saved_level)


class TestFileLogging:
    def test_writes_json_lines(self, tmp_path, clean_logger):
        log_path = configure_file_logging(str(tmp_path))
        logging.getLogger("shareline.upload.store").info("queued %s", "a.txt")
        for handler in clean_logger.handlers:
            handler.flush()

        lines = Path(log_path).read_text().splitlines()
        entry = json.loads(lines[-1])
        assert entry["msg"] == "queued a.txt"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "shareline.upload.store"

    def test_second_call_adds_no_handler(self, tmp_path, clean_logger):
        configure_file_logging(str(tmp_path))
        count = len(clean_logger.handlers)
        configure_file_logging(str(tmp_path))
        assert len(clean_logger.handlers) == count
