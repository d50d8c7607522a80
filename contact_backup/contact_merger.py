"""
Contact merging: fold several contacts into the first one by field union.
"""

from dataclasses import dataclass
from functools import reduce
from typing import Callable, Dict, Hashable, List, Sequence, Tuple, TypeVar
import logging

from contact_backup.contact_model import (
    Address,
    Contact,
    EmailAddress,
    Organization,
    PhoneNumber,
)
from contact_backup.errors import InsufficientContactsError
from contact_backup.normalizer import normalize_phone

logger = logging.getLogger("contact_backup")

T = TypeVar('T')


@dataclass(frozen=True)
class MergedContact:
    """
    Result of a merge: the primary's new field set and the ids to delete.

    Attributes:
        contact: The primary contact (same id) carrying the merged fields
        deleted_ids: Ids of the absorbed contacts, in input order
    """

    contact: Contact
    deleted_ids: Tuple[str, ...]

    @property
    def primary_id(self) -> str:
        return self.contact.id


def _union(
    existing: Tuple[T, ...],
    incoming: Sequence[T],
    key: Callable[[T], Hashable]
) -> Tuple[T, ...]:
    """
    Append items from ``incoming`` whose key is not yet present.

    Returns a new tuple; ``existing`` keeps its order and comes first.
    """
    seen = {key(item) for item in existing}
    added = []
    for item in incoming:
        item_key = key(item)
        if item_key in seen:
            continue
        seen.add(item_key)
        added.append(item)
    return existing + tuple(added)


def _raw_phone_key(phone: PhoneNumber) -> str:
    return phone.number


def _normalized_phone_key(phone: PhoneNumber) -> str:
    return normalize_phone(phone.number) or phone.number


def _email_key(email: EmailAddress) -> str:
    return email.address


def _address_key(address: Address) -> str:
    return address.formatted_address


def _organization_key(organization: Organization) -> str:
    return organization.name


class ContactMerger:
    """
    Merges duplicate contacts into the first contact of the group.

    The first contact is the primary: it keeps its id, names and photo.
    Phones, emails, addresses and organizations of the others are appended
    when not already present. Nothing is written anywhere; the caller
    applies the result to the store.
    """

    def __init__(self, compare_normalized_phones: bool = False):
        """
        Args:
            compare_normalized_phones: Compare phone numbers by their digits
                only instead of by exact text.
        """
        self.compare_normalized_phones = compare_normalized_phones

    def merge_contacts(self, contacts: Sequence[Contact]) -> MergedContact:
        """
        Merge a group of duplicate contacts into a single contact.

        Args:
            contacts: Contacts to merge, primary first

        Returns:
            MergedContact with the primary's merged fields and the ids of
            the contacts to delete

        Raises:
            InsufficientContactsError: If fewer than 2 distinct contacts
        """
        distinct = self._distinct_by_id(contacts)
        if len(distinct) < 2:
            raise InsufficientContactsError()

        primary, duplicates = distinct[0], distinct[1:]
        merged = reduce(self._merge_two_contacts, duplicates, primary)

        logger.debug(
            f"Merged {len(duplicates)} contacts into {primary.full_name} "
            f"({len(merged.phones)} phones, {len(merged.emails)} emails, "
            f"{len(merged.addresses)} addresses)"
        )
        return MergedContact(
            contact=merged,
            deleted_ids=tuple(contact.id for contact in duplicates)
        )

    def _distinct_by_id(self, contacts: Sequence[Contact]) -> List[Contact]:
        """Drop repeated ids, keeping the first occurrence."""
        by_id: Dict[str, Contact] = {}
        for contact in contacts:
            by_id.setdefault(contact.id, contact)
        return list(by_id.values())

    def _merge_two_contacts(self, base: Contact, other: Contact) -> Contact:
        """
        Merge ``other`` into ``base``; base takes precedence.

        Args:
            base: Accumulated primary contact
            other: Contact to absorb

        Returns:
            New contact with base's identity and the union of both
        """
        phone_key = (
            _normalized_phone_key if self.compare_normalized_phones
            else _raw_phone_key
        )
        return base.with_fields(
            phones=_union(base.phones, other.phones, phone_key),
            emails=_union(base.emails, other.emails, _email_key),
            addresses=_union(base.addresses, other.addresses, _address_key),
            organizations=_union(
                base.organizations, other.organizations, _organization_key
            ),
            # Photo: prefer base, but use other if base doesn't have one
            photo=base.photo if base.photo else other.photo,
        )


def merge_contacts(contacts: Sequence[Contact]) -> MergedContact:
    """Merge with the default merger (raw phone comparison)."""
    return ContactMerger().merge_contacts(contacts)
