"""
Repository facade: runs detection, merging and vCard exchange against a
contact store.

The repository owns one cached snapshot of the last fetch. Detection, merge
previews and exports read from it; every successful write (merge, import)
clears it so the next read sees the store's new state. Writes are
serialized by a lock and each one is submitted as a single atomic batch.
"""
# pylint: disable=logging-fstring-interpolation

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from contact_backup.contact_filter import filter_contacts
from contact_backup.contact_merger import ContactMerger, MergedContact
from contact_backup.contact_model import Contact, ContactFormat
from contact_backup.duplicate_detector import DuplicateDetector, DuplicateGroup
from contact_backup.errors import (
    ContactNotFoundError,
    InsufficientContactsError,
    NoContactsSelectedError,
    PermissionDeniedError,
    StoreWriteError,
)
from contact_backup.logger import log_merge_operation
from contact_backup.store import (
    BatchOperation,
    ContactStore,
    DeleteContact,
    InsertContact,
    UpdateContact,
)
from contact_backup.vcard_codec import (
    check_import_format,
    parse_vcards,
    read_vcard_file,
    write_vcard_export,
)

logger = logging.getLogger("contact_backup")


@dataclass(frozen=True)
class ContactSnapshot:
    """
    Immutable result of one fetch.

    Attributes:
        version: Increases with every fetch made by the same repository
        contacts: Contacts in store order
    """

    version: int
    contacts: Tuple[Contact, ...]
    _by_id: Dict[str, Contact] = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, 'contacts', tuple(self.contacts))
        by_id: Dict[str, Contact] = {}
        for contact in self.contacts:
            by_id.setdefault(contact.id, contact)
        object.__setattr__(self, '_by_id', by_id)

    def __len__(self) -> int:
        return len(self.contacts)

    def get(self, contact_id: str) -> Optional[Contact]:
        return self._by_id.get(contact_id)

    def resolve(self, contact_ids: Sequence[str]) -> List[Contact]:
        """Return the contacts for the given ids, silently dropping unknown ones."""
        resolved = []
        for contact_id in contact_ids:
            contact = self._by_id.get(contact_id)
            if contact is None:
                logger.debug(f"Contact {contact_id} not in snapshot, skipped")
                continue
            resolved.append(contact)
        return resolved


class ContactRepository:
    """
    Orchestrates the core operations against an external contact store.
    """

    def __init__(
        self,
        store: ContactStore,
        export_dir: Optional[Path] = None,
        detector: Optional[DuplicateDetector] = None,
        merger: Optional[ContactMerger] = None
    ) -> None:
        """
        :param store: Contact store to read from and write to
        :param export_dir: Directory receiving vCard exports (default: cwd)
        :param detector: Duplicate detector (default configuration if None)
        :param merger: Contact merger (default configuration if None)
        """
        self.store = store
        self.export_dir = Path(export_dir) if export_dir else Path('.')
        self.detector = detector or DuplicateDetector()
        self.merger = merger or ContactMerger()
        self._lock = threading.RLock()
        self._snapshot: Optional[ContactSnapshot] = None
        self._version = 0

    def _ensure_access(self) -> None:
        if not self.store.request_access():
            raise PermissionDeniedError()

    def snapshot(self) -> ContactSnapshot:
        """
        Return the cached snapshot, fetching from the store if needed.

        :raises PermissionDeniedError: If store access is refused
        """
        with self._lock:
            if self._snapshot is not None:
                return self._snapshot
            self._ensure_access()
            contacts = self.store.fetch_all()
            self._version += 1
            self._snapshot = ContactSnapshot(self._version, tuple(contacts))
            logger.info(
                f"Fetched {len(contacts)} contacts "
                f"(snapshot v{self._version})"
            )
            return self._snapshot

    def invalidate_cache(self) -> None:
        with self._lock:
            self._snapshot = None

    def get_all_contacts(self) -> List[Contact]:
        return list(self.snapshot().contacts)

    def get_contact_by_id(self, contact_id: str) -> Contact:
        """
        :raises ContactNotFoundError: If the id is not in the snapshot
        """
        contact = self.snapshot().get(contact_id)
        if contact is None:
            raise ContactNotFoundError(contact_id)
        return contact

    def search_contacts(
        self,
        query: str,
        fuzzy_threshold: Optional[int] = None
    ) -> List[Contact]:
        return filter_contacts(
            self.snapshot().contacts, query, fuzzy_threshold
        )

    def find_duplicates(self) -> List[DuplicateGroup]:
        return self.detector.find_duplicates(self.snapshot().contacts)

    def preview_merge(self, contact_ids: Sequence[str]) -> MergedContact:
        """
        Compute a merge without writing anything.

        :param contact_ids: Ids to merge, primary first
        :return: Merged field set and deletion ids
        :raises InsufficientContactsError: If fewer than 2 ids resolve
        """
        if len(contact_ids) < 2:
            raise InsufficientContactsError()
        contacts = self.snapshot().resolve(contact_ids)
        return self.merger.merge_contacts(contacts)

    def merge_contacts(self, contact_ids: Sequence[str]) -> Contact:
        """
        Merge contacts into the first one and delete the others.

        The update of the primary and the deletions are submitted as one
        batch. Unknown ids are dropped before the contact count is checked.

        :param contact_ids: Ids to merge, primary first
        :return: The primary contact as stored after the merge
        :raises InsufficientContactsError: If fewer than 2 contacts remain
        :raises ContactNotFoundError: If the primary is no longer in the store
        :raises StoreWriteError: If the batch could not be applied
        """
        if len(contact_ids) < 2:
            raise InsufficientContactsError()

        with self._lock:
            sources = self.snapshot().resolve(contact_ids)
            result = self.merger.merge_contacts(sources)

            raw_id = self.store.resolve_raw_id(result.primary_id)
            if raw_id is None:
                # Cached snapshot is stale; the primary is gone from the store
                self.invalidate_cache()
                raise ContactNotFoundError(result.primary_id)

            operations: List[BatchOperation] = [
                UpdateContact(raw_id=raw_id, contact=result.contact)
            ]
            operations.extend(
                DeleteContact(contact_id) for contact_id in result.deleted_ids
            )
            self._apply(operations)
            self.invalidate_cache()

            log_merge_operation(logger, result, sources)
            return self.get_contact_by_id(result.primary_id)

    def export_vcard(self, contact_ids: Sequence[str]) -> Path:
        """
        Export contacts to a vCard file in ``export_dir``.

        :param contact_ids: Ids to export; unknown ids are skipped
        :return: Path of the written file
        :raises NoContactsSelectedError: If no id resolves to a contact
        """
        contacts = self.snapshot().resolve(contact_ids)
        if not contacts:
            raise NoContactsSelectedError(
                "No contacts found with the provided IDs"
            )
        return write_vcard_export(contacts, self.export_dir)

    def import_file(
        self,
        file_path: Path,
        file_format: ContactFormat = ContactFormat.VCARD
    ) -> int:
        """
        Import every record of a vCard file as a new contact.

        Each record is written as its own atomic batch.

        :param file_path: File to import
        :param file_format: Format selected for the file
        :return: Number of contacts written
        :raises UnsupportedFormatError: For non-vCard selections
        :raises ContactImportError: If the file is unreadable or empty
        :raises StoreWriteError: If a record could not be written; its
                                 ``written`` attribute holds the count of
                                 records written before the failure
        """
        file_path = Path(file_path)
        check_import_format(file_path, file_format)
        self._ensure_access()

        contacts = parse_vcards(read_vcard_file(file_path))

        imported = 0
        with self._lock:
            try:
                for contact in contacts:
                    self._apply([InsertContact(contact)])
                    imported += 1
            except StoreWriteError as e:
                e.written = imported
                raise
            finally:
                if imported:
                    self.invalidate_cache()

        logger.info(f"Imported {imported} contacts from {file_path}")
        return imported

    def _apply(self, operations: Sequence[BatchOperation]) -> List[str]:
        self._ensure_access()
        try:
            return self.store.apply_batch(operations)
        except StoreWriteError:
            raise
        except OSError as e:
            raise StoreWriteError(f"Contact store write failed: {e}",
                                  cause=e) from e
