"""
Address book persisted as a single vCard file.

Unlike the share export, records written here keep their UID, phone/email/
address types and labels, every organization and the photo, so fetching
after a write returns the same contacts.

Dependencies:
    - os, tempfile: Standard library for the atomic file replace
    - vobject: Third-party library, for its serialization errors
    - pathlib: Standard library for path handling
    - contact_backup.vcard_codec: Local module for vCard conversion
    - contact_backup.store: Local module for batch operations
"""
# pylint: disable=logging-fstring-interpolation

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from vobject.base import VObjectError

from contact_backup.contact_model import Contact
from contact_backup.errors import StoreWriteError
from contact_backup.store import BatchOperation, RecordTable
from contact_backup.vcard_codec import (
    export_vcards,
    parse_vcards,
    read_vcard_file,
)

logger = logging.getLogger("contact_backup")


class VCardFileStore:
    """
    Contact store backed by one .vcf file.

    The file is re-read on every fetch. Records without a UID get the next
    free numeric id when loaded and keep it once the file is rewritten.
    The raw handle of a record is its id.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def request_access(self) -> bool:
        if self.path.exists():
            return os.access(self.path, os.R_OK | os.W_OK)
        parent = self.path.parent
        return parent.exists() and os.access(parent, os.W_OK)

    def _load(self) -> RecordTable:
        table = RecordTable()
        if not self.path.exists():
            return table

        content = read_vcard_file(self.path)
        if 'BEGIN:VCARD' not in content.upper():
            return table

        contacts = parse_vcards(content, preserve=True)

        # First occurrence of a UID keeps it; the rest get free numeric ids
        taken = set()
        has_uid = []
        for contact in contacts:
            keep = bool(contact.id) and contact.id not in taken
            has_uid.append(keep)
            if keep:
                taken.add(contact.id)

        next_id = 1
        for contact, keep in zip(contacts, has_uid):
            if not keep:
                while str(next_id) in taken:
                    next_id += 1
                contact = contact.with_id(str(next_id))
                taken.add(contact.id)
            table.records[contact.id] = contact

        return table

    def fetch_all(self) -> List[Contact]:
        contacts = list(self._load().records.values())
        logger.debug(f"Loaded {len(contacts)} contacts from {self.path}")
        return contacts

    def resolve_raw_id(self, contact_id: str) -> Optional[str]:
        if contact_id in self._load().records:
            return contact_id
        return None

    def apply_batch(self, operations: Sequence[BatchOperation]) -> List[str]:
        staged = self._load()
        raw_to_id = {contact_id: contact_id for contact_id in staged.records}
        inserted = []
        for operation in operations:
            new_id = staged.apply(operation, raw_to_id)
            if new_id is not None:
                inserted.append(new_id)

        self._write(list(staged.records.values()))
        logger.debug(
            f"Applied batch of {len(operations)} operations to {self.path}"
        )
        return inserted

    def _write(self, contacts: List[Contact]) -> None:
        """Replace the file in one step so readers never see a partial book."""
        try:
            content = (
                export_vcards(contacts, preserve=True) if contacts else ''
            )
        except VObjectError as e:
            raise StoreWriteError(
                f"Could not serialize address book {self.path}: {e}", cause=e
            ) from e

        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w', encoding='utf-8', newline='', dir=directory,
                prefix=f".{self.path.name}.", suffix='.tmp', delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(content)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreWriteError(
                f"Could not write address book {self.path}: {e}", cause=e
            ) from e
