"""Tests for logging setup."""

import logging
from pathlib import Path

from contact_backup.contact_merger import merge_contacts
from contact_backup.contact_model import Contact
from contact_backup.logger import (
    LOGGER_NAME,
    log_merge_operation,
    log_statistics,
    setup_logger,
)


def test_setup_logger_writes_debug_to_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "run.log"

    logger = setup_logger("WARNING", log_file, console_output=False)
    logger.debug("debug detail")

    assert logger.name == LOGGER_NAME
    assert "debug detail" in log_file.read_text(encoding="utf-8")


def test_setup_logger_replaces_handlers(tmp_path: Path) -> None:
    setup_logger(log_file=tmp_path / "a.log")
    logger = setup_logger(log_file=tmp_path / "b.log")

    assert len(logger.handlers) == 2
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_log_helpers(caplog) -> None:
    logger = logging.getLogger(LOGGER_NAME)
    sources = [Contact(id="1", first_name="Ali"),
               Contact(id="2", first_name="Ali")]

    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        log_merge_operation(logger, merge_contacts(sources), sources)
        log_statistics(logger, {'total_contacts': 2, 'reduction_percent': 50})

    assert "Merged 2 contacts into Ali (id 1)" in caplog.text
    assert "Deleted ids: 2" in caplog.text
    assert "Reduction: 50.0%" in caplog.text
