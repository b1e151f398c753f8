"""Tests for loguru setup."""

import json
import logging

from loguru import logger

from app.core.logger import setup_logger


def test_json_file_sink(tmp_path):
    log_file = tmp_path / "logs" / "tempo.log"
    try:
        setup_logger(level="INFO", log_file=str(log_file), json_logs=True)
        logger.info("[RECONCILE] hello")
        logger.debug("below level")
    finally:
        setup_logger(level="INFO")

    records = [json.loads(line)["record"] for line in log_file.read_text().splitlines()]
    messages = [r["message"] for r in records]
    assert "[RECONCILE] hello" in messages
    assert "below level" not in messages


def test_noisy_loggers_quieted():
    setup_logger(level="DEBUG")
    try:
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        setup_logger(level="INFO")
