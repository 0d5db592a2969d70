"""Tests for logging setup."""

import json
import logging

from config import Config
from logging_config import JSONFormatter, ROOT_LOGGER, get_logger, setup_logging


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        name="rent_tracker.services.contracts",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Contract created",
        args=(),
        exc_info=None,
    )
    record.contract_id = 5

    data = json.loads(JSONFormatter().format(record))
    assert data["level"] == "INFO"
    assert data["message"] == "Contract created"
    assert data["extra"] == {"contract_id": 5}


def test_get_logger_nests_under_application_logger():
    assert get_logger("database").name == f"{ROOT_LOGGER}.database"


def test_setup_logging_writes_json_file(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "rent.db"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    Config.reset()
    try:
        logger = setup_logging(Config())
        get_logger("test").info("Hello", extra={"property_id": 1})
        for handler in logger.handlers:
            handler.flush()

        lines = (tmp_path / "logs" / "rent-tracker.log").read_text().splitlines()
        entries = [json.loads(line) for line in lines]
        assert entries[-1]["message"] == "Hello"
        assert entries[-1]["extra"] == {"property_id": 1}
        assert logger.level == logging.DEBUG
    finally:
        Config.reset()
        root = logging.getLogger(ROOT_LOGGER)
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)
