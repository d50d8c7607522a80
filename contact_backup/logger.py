"""
Logging configuration and utilities for the contact backup tool.

All modules log through the "contact_backup" logger. The file handler
records everything at DEBUG; the console handler shows the requested level
on stderr so that command output on stdout stays clean.

Dependencies:
    - logging: Standard library for logging functionality
    - sys: Standard library for the console stream
    - pathlib: Standard library for path handling
    - datetime: Standard library for log file timestamps
    - typing: Standard library for type hints
"""
# pylint: disable=logging-fstring-interpolation

import logging
import sys
from datetime import datetime
from logging import Logger
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from contact_backup.contact_merger import MergedContact
from contact_backup.contact_model import Contact

LOGGER_NAME = "contact_backup"
LOG_DIR = Path("logs")

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_SUMMARY_LINES = (
    ('total_contacts', "Total contacts processed: {}"),
    ('duplicate_groups', "Duplicate groups found: {}"),
    ('contacts_merged', "Contacts merged: {}"),
    ('final_contacts', "Final contact count: {}"),
)


def _default_log_file() -> Path:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return LOG_DIR / f"contact_backup_{timestamp}.log"


def setup_logger(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    console_output: bool = True
) -> Logger:
    """
    Set up and configure the application logger.

    Calling it again replaces the handlers of the previous call.

    :param log_level: Console logging level (DEBUG, INFO, WARNING, ERROR)
    :param log_file: Optional path to log file. If None, creates timestamped
                     log in logs/
    :param console_output: Whether to output logs to console
    :return: Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(
            getattr(logging, log_level.upper(), logging.INFO)
        )
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    log_file = log_file or _default_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    logger.debug(f"Logging initialized. Log file: {log_file}")

    return logger


def log_duplicate_group(
    logger: Logger,
    group_id: int,
    contacts: Sequence[Contact],
    match_criteria: str
) -> None:
    """
    Log a duplicate group detection.

    :param logger: Logger instance
    :param group_id: Position of the group in the detector output
    :param contacts: Contacts in the group
    :param match_criteria: Description of how duplicates were matched
    """
    logger.info(
        f"Duplicate Group #{group_id}: {len(contacts)} contacts, "
        f"{match_criteria}"
    )
    for contact in contacts:
        logger.debug(f"  [{contact.id}] {contact.full_name}")


def log_merge_operation(
    logger: Logger,
    result: MergedContact,
    source_contacts: Sequence[Contact]
) -> None:
    """
    Log a merge that was written to the store.

    :param logger: Logger instance
    :param result: Merge result that was applied
    :param source_contacts: Contacts that went into the merge, primary first
    """
    merged = result.contact
    logger.info(
        f"Merged {len(source_contacts)} contacts into {merged.full_name} "
        f"(id {merged.id})"
    )
    logger.debug(f"  Deleted ids: {', '.join(result.deleted_ids)}")
    logger.debug(
        f"  Result: {len(merged.phones)} phones, {len(merged.emails)} emails, "
        f"{len(merged.addresses)} addresses, "
        f"{len(merged.organizations)} organizations"
    )


def log_statistics(logger: Logger, stats: Dict[str, Any]) -> None:
    """
    Log summary statistics.

    :param logger: Logger instance
    :param stats: Dictionary containing statistics
    """
    logger.info("=" * 60)
    logger.info("PROCESSING SUMMARY")
    logger.info("=" * 60)
    for key, template in _SUMMARY_LINES:
        logger.info(template.format(stats.get(key, 0)))
    logger.info(f"Reduction: {stats.get('reduction_percent', 0):.1f}%")
    logger.info("=" * 60)
