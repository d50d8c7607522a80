#!/usr/bin/env python3
"""
Main entry point for the contact backup tool.

This module provides the command-line interface over an address book kept
in a vCard file: finding and merging duplicates, exporting contacts for
sharing, importing vCard files and searching.

Dependencies:
    - argparse: Standard library for command-line argument parsing
    - sys: Standard library for system-specific parameters
    - pathlib: Standard library for path handling
    - contact_backup.repository: Local module orchestrating store operations
    - contact_backup.vcard_store: Local module for the vCard address book
    - contact_backup.duplicate_detector: Local module for duplicate detection
    - contact_backup.contact_merger: Local module for contact merging
    - contact_backup.preview_generator: Local module for preview generation
    - contact_backup.logger: Local module for logging configuration
"""
# pylint: disable=logging-fstring-interpolation, broad-except

import argparse
import sys
from logging import Logger
from pathlib import Path
from typing import Dict, List, Optional

from contact_backup.contact_merger import ContactMerger, MergedContact
from contact_backup.contact_model import Contact, ContactFormat
from contact_backup.duplicate_detector import DuplicateDetector, DuplicateGroup
from contact_backup.errors import ContactBackupError, InsufficientContactsError
from contact_backup.logger import (
    log_duplicate_group,
    log_statistics,
    setup_logger,
)
from contact_backup.normalizer import get_default_region
from contact_backup.preview_generator import PreviewGenerator
from contact_backup.repository import ContactRepository
from contact_backup.vcard_store import VCardFileStore

AUTO_REGION = "auto"


def _validate_fuzzy_threshold(threshold: Optional[int], logger: Logger) -> None:
    """
    Validate fuzzy threshold value.

    :param threshold: Fuzzy threshold value
    :param logger: Logger instance
    :raises SystemExit: If threshold is invalid
    """
    if threshold is not None and not 0 <= threshold <= 100:
        logger.error("Fuzzy threshold must be between 0 and 100")
        sys.exit(1)


def _resolve_phone_region(
    phone_region: Optional[str],
    logger: Logger
) -> Optional[str]:
    """
    Validate the --phone-region option.

    :param phone_region: Region passed on the command line, "auto" to use
                         the locale, or None
    :param logger: Logger instance
    :return: Valid region code, or None for digit-only phone matching
    :raises SystemExit: If no valid region can be determined
    """
    if not phone_region:
        return None

    auto = phone_region.strip().lower() == AUTO_REGION
    region = get_default_region(
        provided_region=None if auto else phone_region,
        auto_detect=auto,
        require_explicit=True
    )
    if not region:
        logger.error(
            "Could not detect a phone region from the locale" if auto
            else f"Invalid phone region '{phone_region}'. "
                 f"Use a 2-letter country code such as US, GB or TR."
        )
        sys.exit(1)
    return region


def _build_repository(args: argparse.Namespace, logger: Logger) -> ContactRepository:
    """
    Create the repository for the address book given on the command line.

    :param args: Parsed command-line arguments
    :param logger: Logger instance
    :return: Configured repository
    """
    phone_region = _resolve_phone_region(args.phone_region, logger)
    return ContactRepository(
        store=VCardFileStore(Path(args.book)),
        export_dir=Path(getattr(args, 'output_dir', None) or '.'),
        detector=DuplicateDetector(phone_region=phone_region),
        merger=ContactMerger(
            compare_normalized_phones=args.compare_normalized_phones
        ),
    )


def _print_contact(contact: Contact) -> None:
    """
    Print one contact on a few lines.

    :param contact: Contact to print
    """
    print(f"[{contact.id}] {contact.full_name}")
    for phone in contact.phones:
        kind = phone.label or phone.type
        print(f"    tel:   {phone.number}" + (f" ({kind})" if kind else ''))
    for email in contact.emails:
        print(f"    email: {email.address}")
    for address in contact.addresses:
        print(f"    adr:   {address.formatted_address}")
    for organization in contact.organizations:
        print(f"    org:   {organization.name}")


def _build_duplicate_groups(
    repository: ContactRepository,
    logger: Logger
) -> List[DuplicateGroup]:
    """
    Find and log duplicate groups.

    :param repository: Contact repository
    :param logger: Logger instance
    :return: Duplicate groups
    """
    duplicate_groups = repository.find_duplicates()

    for group_id, group in enumerate(duplicate_groups, 1):
        criteria = repository.detector.get_match_criteria(group)
        log_duplicate_group(logger, group_id, group.contacts, criteria)

    return duplicate_groups


def _preview_merges(
    repository: ContactRepository,
    duplicate_groups: List[DuplicateGroup]
) -> Dict[int, MergedContact]:
    """
    Compute the merge result of every group without writing.

    :param repository: Contact repository
    :param duplicate_groups: Groups to preview
    :return: Merge result per 1-based group number
    """
    return {
        group_id: repository.preview_merge(group.contact_ids)
        for group_id, group in enumerate(duplicate_groups, 1)
    }


def _command_duplicates(args: argparse.Namespace, logger: Logger) -> None:
    repository = _build_repository(args, logger)
    duplicate_groups = _build_duplicate_groups(repository, logger)

    preview_gen = PreviewGenerator()
    preview_data = preview_gen.generate_preview(
        duplicate_groups,
        len(repository.snapshot()),
        _preview_merges(repository, duplicate_groups)
    )
    preview_gen.display_preview(preview_data)

    if args.preview_file:
        preview_gen.save_preview_to_file(Path(args.preview_file), preview_data)


def _command_merge(args: argparse.Namespace, logger: Logger) -> None:
    repository = _build_repository(args, logger)
    merged = repository.merge_contacts(args.ids)
    logger.info(f"Merge completed: {merged.full_name} (id {merged.id})")
    _print_contact(merged)


def _command_merge_duplicates(
    args: argparse.Namespace,
    logger: Logger
) -> None:
    """
    Merge every duplicate group, after a preview and confirmation.

    Groups can share contacts; a group whose members were already absorbed
    by an earlier merge shrinks accordingly and is skipped once fewer than
    two of its contacts remain.
    """
    repository = _build_repository(args, logger)
    duplicate_groups = _build_duplicate_groups(repository, logger)
    total_contacts = len(repository.snapshot())

    if not duplicate_groups:
        logger.info("No duplicate contacts found")
        return

    preview_gen = PreviewGenerator()
    preview_data = preview_gen.generate_preview(
        duplicate_groups,
        total_contacts,
        _preview_merges(repository, duplicate_groups)
    )
    preview_gen.display_preview(preview_data)

    if not args.no_confirm and not preview_gen.confirm():
        logger.info("Merge cancelled by user")
        return

    merged_groups = 0
    for group_id, group in enumerate(duplicate_groups, 1):
        try:
            repository.merge_contacts(group.contact_ids)
            merged_groups += 1
        except InsufficientContactsError:
            logger.info(
                f"Skipping group #{group_id}: its contacts were already merged"
            )

    final_contacts = len(repository.snapshot())
    log_statistics(logger, {
        'total_contacts': total_contacts,
        'duplicate_groups': len(duplicate_groups),
        'contacts_merged': total_contacts - final_contacts,
        'final_contacts': final_contacts,
        'reduction_percent': (
            (total_contacts - final_contacts) / total_contacts * 100
            if total_contacts else 0
        ),
    })
    logger.info(f"Merged {merged_groups} duplicate groups")


def _command_export(args: argparse.Namespace, logger: Logger) -> None:
    repository = _build_repository(args, logger)
    contact_ids = args.ids or [c.id for c in repository.get_all_contacts()]
    output_path = repository.export_vcard(contact_ids)
    print(output_path)


def _command_import(args: argparse.Namespace, logger: Logger) -> None:
    repository = _build_repository(args, logger)
    file_format = ContactFormat.from_label(args.format)
    count = repository.import_file(Path(args.file), file_format)
    logger.info(f"Imported {count} contacts into {args.book}")


def _command_search(args: argparse.Namespace, logger: Logger) -> None:
    _validate_fuzzy_threshold(args.fuzzy_threshold, logger)
    repository = _build_repository(args, logger)
    results = repository.search_contacts(args.query, args.fuzzy_threshold)
    for contact in results:
        _print_contact(contact)
    logger.info(f"{len(results)} contacts match '{args.query}'")


def _create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    :return: Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog='contact-backup',
        description='Back up, deduplicate and merge contacts kept in a '
                    'vCard address book',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--book', '-b',
        type=str,
        required=True,
        help='Path to the address book vCard file (.vcf)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Log file path (default: logs/contact_backup_<timestamp>.log)'
    )

    parser.add_argument(
        '--phone-region',
        type=str,
        default=None,
        metavar='CODE',
        help='2-letter country code, or "auto" for the system locale; '
             'when given, phone numbers are matched by their E.164 form '
             'for that region (e.g. TR, US, GB)'
    )

    parser.add_argument(
        '--compare-normalized-phones',
        action='store_true',
        help='When merging, treat phone numbers with the same digits as '
             'the same number'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    duplicates = subparsers.add_parser(
        'duplicates', help='List duplicate groups and their merge preview'
    )
    duplicates.add_argument(
        '--preview-file',
        type=str,
        help='Also save the preview as JSON to this path'
    )
    duplicates.set_defaults(handler=_command_duplicates)

    merge = subparsers.add_parser(
        'merge', help='Merge contacts into the first given id'
    )
    merge.add_argument('ids', nargs='+', help='Contact ids, primary first')
    merge.set_defaults(handler=_command_merge)

    merge_all = subparsers.add_parser(
        'merge-duplicates', help='Merge every duplicate group'
    )
    merge_all.add_argument(
        '--no-confirm',
        action='store_true',
        help='Skip confirmation prompt (use with caution)'
    )
    merge_all.set_defaults(handler=_command_merge_duplicates)

    export = subparsers.add_parser(
        'export', help='Export contacts to a vCard file for sharing'
    )
    export.add_argument(
        'ids', nargs='*', help='Contact ids to export (default: all)'
    )
    export.add_argument(
        '--output-dir', '-o',
        type=str,
        default='.',
        help='Directory for the exported file (default: current directory)'
    )
    export.set_defaults(handler=_command_export)

    import_parser = subparsers.add_parser(
        'import', help='Add the contacts of a vCard file to the address book'
    )
    import_parser.add_argument('file', help='File to import')
    import_parser.add_argument(
        '--format',
        type=str,
        default=ContactFormat.VCARD.label,
        choices=[fmt.label for fmt in ContactFormat],
        help='Format of the file (only vcard is supported)'
    )
    import_parser.set_defaults(handler=_command_import)

    search = subparsers.add_parser(
        'search', help='Find contacts by name, phone or email'
    )
    search.add_argument('query', help='Search text')
    search.add_argument(
        '--fuzzy-threshold',
        type=int,
        default=None,
        help='Also match names at least this similar, 0-100'
    )
    search.set_defaults(handler=_command_search)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main application entry point."""
    parser = _create_argument_parser()
    args = parser.parse_args(argv)

    logger = setup_logger(
        log_level=args.log_level,
        log_file=Path(args.log_file) if args.log_file else None
    )

    try:
        args.handler(args, logger)
    except ContactBackupError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
