"""Shared pytest configuration."""

import logging

import pytest

from contact_backup.logger import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop handlers installed by setup_logger during a test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
