"""
Canonical contact model shared by the detector, merger and vCard codec.

All value types are frozen dataclasses backed by tuples: a fetched snapshot
can be handed to any number of readers without being copied.

Dependencies:
    - dataclasses: Standard library for value types
    - enum: Standard library for the contact file format enumeration
    - typing: Standard library for type hints
    - contact_backup.normalizer: Local module for display name splitting
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional, Tuple

from contact_backup.normalizer import split_display_name

UNNAMED_CONTACT = "unnamed contact"

PHONE_TYPE_MOBILE = "mobile"
PHONE_TYPE_HOME = "home"
PHONE_TYPE_WORK = "work"
PHONE_TYPE_OTHER = "other"
EMAIL_TYPE_HOME = "home"
EMAIL_TYPE_WORK = "work"
ADDRESS_TYPE_HOME = "home"
ADDRESS_TYPE_WORK = "work"


@dataclass(frozen=True)
class PhoneNumber:
    """A phone number as stored; ``number`` is never normalized here."""

    number: str
    label: str = ""
    type: str = PHONE_TYPE_MOBILE


@dataclass(frozen=True)
class EmailAddress:
    address: str
    label: str = ""
    type: str = EMAIL_TYPE_HOME


@dataclass(frozen=True)
class Address:
    """A postal address. Compared by ``formatted_address`` when merging."""

    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    label: str = ""
    type: str = ADDRESS_TYPE_HOME

    @property
    def formatted_address(self) -> str:
        components = [
            self.street,
            self.city,
            self.state,
            self.postal_code,
            self.country,
        ]
        return ", ".join(part for part in components if part)


@dataclass(frozen=True)
class Organization:
    name: str
    department: str = ""
    title: str = ""


def _as_tuple(values: Optional[Iterable]) -> tuple:
    if values is None:
        return ()
    return tuple(values)


@dataclass(frozen=True)
class Contact:
    """
    A single contact from the store, or one built in memory.

    Attributes:
        id: Opaque store identifier. Empty for contacts parsed from a file
            that have not been written yet.
        first_name: Given name, may be empty
        last_name: Family name, may be empty
        phones: Phone numbers in store order
        emails: Email addresses in store order
        addresses: Postal addresses in store order
        organizations: Organizations in store order
        photo: Raw image bytes, if any

    Lists passed to the constructor are stored as tuples.
    """

    id: str
    first_name: str = ""
    last_name: str = ""
    phones: Tuple[PhoneNumber, ...] = field(default_factory=tuple)
    emails: Tuple[EmailAddress, ...] = field(default_factory=tuple)
    addresses: Tuple[Address, ...] = field(default_factory=tuple)
    organizations: Tuple[Organization, ...] = field(default_factory=tuple)
    photo: Optional[bytes] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        for name in ('phones', 'emails', 'addresses', 'organizations'):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))

    @property
    def full_name(self) -> str:
        """
        Display name used everywhere contacts are matched by name.

        First and last name joined with a single space, skipping empty
        parts; a fixed placeholder when both are empty.
        """
        name = " ".join(part for part in (self.first_name, self.last_name)
                        if part)
        return name if name else UNNAMED_CONTACT

    @property
    def has_name(self) -> bool:
        return bool(self.first_name or self.last_name)

    def with_id(self, contact_id: str) -> "Contact":
        return replace(self, id=contact_id)

    def with_fields(self, **changes) -> "Contact":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_display_name(
        cls,
        contact_id: str,
        display_name: str,
        **fields
    ) -> "Contact":
        """
        Build a contact from a store that only exposes a display name.

        :param contact_id: Store identifier
        :param display_name: Single display name field
        :param fields: Any other Contact fields (phones, emails, ...)
        :return: Contact with first/last name split from display_name
        """
        first_name, last_name = split_display_name(display_name)
        return cls(
            id=contact_id,
            first_name=first_name,
            last_name=last_name,
            **fields
        )


class ContactFormat(Enum):
    """File formats offered for import; only VCARD has a codec."""

    VCARD = ("vcard", (".vcf",))
    CSV = ("csv", (".csv",))
    EXCEL = ("excel", (".xlsx", ".xls"))
    JSON = ("json", (".json",))
    PDF = ("pdf", (".pdf",))

    def __init__(self, label: str, extensions: Tuple[str, ...]):
        self.label = label
        self.extensions = extensions

    def matches(self, file_name: str) -> bool:
        """Return True if ``file_name`` carries one of this format's extensions."""
        lowered = file_name.lower()
        return any(lowered.endswith(ext) for ext in self.extensions)

    @classmethod
    def from_label(cls, label: str) -> "ContactFormat":
        for fmt in cls:
            if fmt.label == label.strip().lower():
                return fmt
        raise ValueError(f"Unknown contact format: {label}")
