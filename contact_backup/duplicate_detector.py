"""
Duplicate detection over two independent keys: display name and phone number.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Set
import logging

from contact_backup.contact_model import Contact
from contact_backup.normalizer import phone_match_key

logger = logging.getLogger("contact_backup")

MATCH_BY_NAME = "name"
MATCH_BY_PHONE = "phone"


@dataclass(frozen=True)
class DuplicateGroup:
    """
    Two or more contacts that share a name or a phone number.

    Attributes:
        contacts: Members in snapshot order
        match_criteria: MATCH_BY_NAME or MATCH_BY_PHONE
        key: The full name or normalized phone number they share
    """

    contacts: tuple
    match_criteria: str
    key: str
    ids: FrozenSet[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'contacts', tuple(self.contacts))
        object.__setattr__(
            self, 'ids', frozenset(contact.id for contact in self.contacts)
        )

    def __len__(self) -> int:
        return len(self.contacts)

    def __iter__(self) -> Iterator[Contact]:
        return iter(self.contacts)

    def __getitem__(self, index: int) -> Contact:
        return self.contacts[index]

    @property
    def contact_ids(self) -> List[str]:
        """Member ids in order, primary (merge target) first."""
        return [contact.id for contact in self.contacts]


class DuplicateDetector:
    """
    Detects duplicate contacts by exact full name and by phone number.

    The detector holds no state between calls and only reads its input, so
    one instance can serve any number of concurrent callers.
    """

    def __init__(self, phone_region: Optional[str] = None):
        """
        Initialize the duplicate detector.

        Args:
            phone_region: Optional 2-letter region. When set, phone numbers
                are keyed by their E.164 form for that region instead of
                their plain digits.
        """
        self.phone_region = phone_region

    def find_duplicates(
        self,
        contacts: Sequence[Contact]
    ) -> List[DuplicateGroup]:
        """
        Find all duplicate groups in the contact list.

        Name groups come first, then phone groups whose id-set was not
        already reported.

        Args:
            contacts: Snapshot of contacts

        Returns:
            List of duplicate groups
        """
        logger.info(
            f"Starting duplicate detection for {len(contacts)} contacts..."
        )
        if len(contacts) < 2:
            return []

        groups = self._group_by_name(contacts)
        name_group_count = len(groups)
        seen_id_sets: Set[FrozenSet[str]] = {group.ids for group in groups}

        for group in self._group_by_phone(contacts):
            if group.ids in seen_id_sets:
                logger.debug(
                    f"Skipping phone group {group.key}: "
                    f"same contacts already reported"
                )
                continue
            seen_id_sets.add(group.ids)
            groups.append(group)

        logger.info(
            f"Found {len(groups)} duplicate groups "
            f"({name_group_count} by name, "
            f"{len(groups) - name_group_count} by phone)"
        )
        return groups

    def _group_by_name(
        self,
        contacts: Sequence[Contact]
    ) -> List[DuplicateGroup]:
        """
        Group contacts sharing the same full name.

        Contacts without any name parts share the placeholder full name,
        which is not a real name and is never used as a key.
        """
        buckets: Dict[str, List[Contact]] = {}
        for contact in contacts:
            if not contact.has_name:
                continue
            buckets.setdefault(contact.full_name, []).append(contact)

        return [
            DuplicateGroup(members, MATCH_BY_NAME, name)
            for name, members in buckets.items()
            if name and len(members) >= 2
        ]

    def _group_by_phone(
        self,
        contacts: Sequence[Contact]
    ) -> List[DuplicateGroup]:
        """
        Group contacts sharing a normalized phone number.

        A contact listing the same number twice is counted once per bucket.
        """
        buckets: Dict[str, Dict[str, Contact]] = {}
        for contact in contacts:
            for phone in contact.phones:
                key = self.phone_key(phone.number)
                if not key:
                    continue
                buckets.setdefault(key, {}).setdefault(contact.id, contact)

        return [
            DuplicateGroup(tuple(members.values()), MATCH_BY_PHONE, key)
            for key, members in buckets.items()
            if len(members) >= 2
        ]

    def phone_key(self, number: str) -> str:
        """Return the grouping key for a raw phone number."""
        return phone_match_key(number, self.phone_region)

    def get_match_criteria(self, group: DuplicateGroup) -> str:
        """
        Describe how a group was matched, for logs and previews.

        Args:
            group: A group returned by find_duplicates

        Returns:
            Description of match criteria
        """
        if group.match_criteria == MATCH_BY_NAME:
            return f"Exact name ({group.key})"
        if group.match_criteria == MATCH_BY_PHONE:
            return f"Phone number ({group.key})"
        return "Unknown"


def find_duplicates(
    contacts: Sequence[Contact],
    phone_region: Optional[str] = None
) -> List[DuplicateGroup]:
    """Find duplicate groups with a default-configured detector."""
    return DuplicateDetector(phone_region=phone_region).find_duplicates(
        contacts
    )
