"""
Dry-run reports for duplicate detection and merging.

A preview lists every duplicate group, what merging it would produce and
how many contacts would remain, without writing to the address book. It
can be printed or saved as JSON.

Dependencies:
    - json: Standard library for the saved report
    - logging: Standard library for logging
    - pathlib: Standard library for path handling
    - sys: Standard library for the interactive terminal check
    - typing: Standard library for type hints
"""
# pylint: disable=logging-fstring-interpolation

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from contact_backup.contact_merger import MergedContact
from contact_backup.contact_model import Contact
from contact_backup.duplicate_detector import DuplicateGroup

logger = logging.getLogger("contact_backup")

MAX_GROUPS_TO_SHOW = 10

_STATISTIC_LABELS = (
    ('total_contacts', "Total contacts"),
    ('duplicate_groups', "Duplicate groups found"),
    ('contacts_in_duplicates', "Contacts in duplicate groups"),
    ('contacts_merged', "Contacts to be merged"),
    ('final_contacts', "Final contact count"),
)


def _contact_summary(contact: Contact) -> Dict[str, Any]:
    return {
        'id': contact.id,
        'name': contact.full_name,
        'phones': [p.number for p in contact.phones],
        'emails': [e.address for e in contact.emails],
        'addresses': [a.formatted_address for a in contact.addresses],
        'organizations': [o.name for o in contact.organizations],
    }


class PreviewGenerator:
    """
    Builds, prints and saves merge previews.
    """

    def __init__(self) -> None:
        self.preview_data: Dict[str, Any] = {
            'duplicate_groups': [],
            'statistics': {}
        }

    def generate_preview(
        self,
        duplicate_groups: Sequence[DuplicateGroup],
        total_contacts: int,
        merged_contacts_map: Dict[int, MergedContact]
    ) -> Dict[str, Any]:
        """
        Describe each group and the merge that would resolve it.

        :param duplicate_groups: Groups returned by the detector
        :param total_contacts: Number of contacts in the snapshot
        :param merged_contacts_map: Merge result per group number
                                    (1-based); groups without an entry are
                                    listed without a merge result
        :return: Preview data dictionary
        """
        entries = []
        for number, group in enumerate(duplicate_groups, 1):
            result = merged_contacts_map.get(number)
            entries.append({
                'id': number,
                'match_criteria': group.match_criteria,
                'key': group.key,
                'contacts': [_contact_summary(c) for c in group],
                'merged_contact': (
                    _contact_summary(result.contact) if result else None
                ),
                'deleted_ids': list(result.deleted_ids) if result else [],
            })

        # Groups may overlap, so count each contact once
        involved = {cid for group in duplicate_groups for cid in group.ids}
        deleted = {
            cid
            for result in merged_contacts_map.values()
            for cid in result.deleted_ids
        }

        self.preview_data = {
            'duplicate_groups': entries,
            'statistics': {
                'total_contacts': total_contacts,
                'duplicate_groups': len(entries),
                'contacts_in_duplicates': len(involved),
                'contacts_merged': len(deleted),
                'final_contacts': total_contacts - len(deleted),
                'reduction_percent': (
                    len(deleted) / total_contacts * 100
                    if total_contacts > 0 else 0
                ),
            }
        }
        return self.preview_data

    def display_preview(
        self,
        preview_data: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Print a preview; at most MAX_GROUPS_TO_SHOW groups are listed.

        :param preview_data: Preview to print (default: the last generated)
        """
        data = preview_data if preview_data is not None else self.preview_data
        stats = data.get('statistics', {})
        groups = data.get('duplicate_groups', [])
        rule = "=" * 80

        print(f"\n{rule}\nDUPLICATE DETECTION PREVIEW\n{rule}\n")
        print("STATISTICS:")
        for key, label in _STATISTIC_LABELS:
            print(f"  {label}: {stats.get(key, 0)}")
        print(f"  Reduction: {stats.get('reduction_percent', 0):.1f}%")
        print()

        if groups:
            shown = groups[:MAX_GROUPS_TO_SHOW]
            print(f"DUPLICATE GROUPS (showing {len(shown)} of {len(groups)}):")
            print()
            for group in shown:
                self._display_group(group)

        print(rule)
        print()

    def _display_group(self, group: Dict[str, Any]) -> None:
        print(
            f"Group #{group['id']} ({len(group['contacts'])} contacts, "
            f"same {group['match_criteria']}: {group['key']}):"
        )
        for position, contact in enumerate(group['contacts'], 1):
            print(f"  {position}. {contact['name']} [id {contact['id']}]")
            self._display_channels(contact)

        merged = group.get('merged_contact')
        if merged:
            print(f"  -> Merged into {merged['name']} [id {merged['id']}]")
            self._display_channels(merged)
            if group['deleted_ids']:
                print(f"     Deletes: {', '.join(group['deleted_ids'])}")
        print()

    def _display_channels(self, summary: Dict[str, Any]) -> None:
        if summary['phones']:
            print(f"     Phones: {self._format_list(summary['phones'])}")
        if summary['emails']:
            print(f"     Emails: {self._format_list(summary['emails'])}")

    def save_preview_to_file(
        self,
        output_path: Path,
        preview_data: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Write a preview as UTF-8 JSON, creating parent directories.

        :param output_path: Destination file
        :param preview_data: Preview to save (default: the last generated)
        """
        data = preview_data if preview_data is not None else self.preview_data
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8'
        )
        logger.info(f"Preview saved to {output_path}")

    def confirm(self, prompt: str = "Proceed with merge? (yes/no): ") -> bool:
        """
        Ask the user to confirm. Non-interactive input counts as "no".

        :param prompt: Question shown to the user
        :return: True if the user answered yes
        """
        if not sys.stdin.isatty():
            logger.info("Non-interactive mode detected, merge not confirmed")
            return False
        try:
            response = input(prompt).strip().lower()
        except (EOFError, KeyboardInterrupt):
            return False
        return response in ['yes', 'y']

    @staticmethod
    def _format_list(values: List[str], max_display: int = 3) -> str:
        """
        Format a value list for display.

        :param values: Values to show
        :param max_display: Maximum number of values to display
        :return: Comma-separated string
        """
        text = ', '.join(values[:max_display])
        if len(values) > max_display:
            text += f" (+{len(values) - max_display} more)"
        return text
