"""
Contact store boundary: the interface the repository talks to, the batch
operations it submits, and an in-memory implementation.

A store applies a batch atomically: either every operation is committed or
the store is left exactly as it was and StoreWriteError is raised.
"""
# pylint: disable=logging-fstring-interpolation

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Union
import logging

from contact_backup.contact_model import Contact
from contact_backup.errors import StoreWriteError

logger = logging.getLogger("contact_backup")


@dataclass(frozen=True)
class InsertContact:
    """Create a new record; the store assigns its id."""

    contact: Contact


@dataclass(frozen=True)
class UpdateContact:
    """Replace the field set of the record behind ``raw_id``."""

    raw_id: str
    contact: Contact


@dataclass(frozen=True)
class DeleteContact:
    contact_id: str


BatchOperation = Union[InsertContact, UpdateContact, DeleteContact]


class ContactStore(Protocol):
    """Data source and sink for contacts, e.g. a platform address book."""

    def request_access(self) -> bool:
        """Return True if the caller may read and write contacts."""
        ...

    def fetch_all(self) -> Sequence[Contact]:
        """Return every contact in store order."""
        ...

    def resolve_raw_id(self, contact_id: str) -> Optional[str]:
        """Return the raw record handle used for updates, or None."""
        ...

    def apply_batch(self, operations: Sequence[BatchOperation]) -> List[str]:
        """
        Apply all operations atomically.

        Returns the ids assigned to inserted contacts, in order. Raises
        StoreWriteError and leaves the store unchanged on failure.
        """
        ...


class RecordTable:
    """
    Ordered id -> contact table shared by the bundled stores.

    Batches run against a copy which replaces the live table only when every
    operation succeeded.
    """

    def __init__(self, contacts: Sequence[Contact] = (),
                 next_id: int = 1) -> None:
        self.records: Dict[str, Contact] = {c.id: c for c in contacts}
        self.next_id = next_id

    def copy(self) -> "RecordTable":
        table = RecordTable(next_id=self.next_id)
        table.records = dict(self.records)
        return table

    def allocate_id(self) -> str:
        while str(self.next_id) in self.records:
            self.next_id += 1
        contact_id = str(self.next_id)
        self.next_id += 1
        return contact_id

    def apply(self, operation: BatchOperation,
              raw_to_id: Dict[str, str]) -> Optional[str]:
        """
        Apply one operation in place.

        :param operation: Operation to apply
        :param raw_to_id: Raw handle to contact id mapping
        :return: The new id for inserts, otherwise None
        :raises StoreWriteError: If the target record does not exist
        """
        if isinstance(operation, InsertContact):
            contact_id = self.allocate_id()
            self.records[contact_id] = operation.contact.with_id(contact_id)
            return contact_id

        if isinstance(operation, UpdateContact):
            contact_id = raw_to_id.get(operation.raw_id)
            if contact_id is None or contact_id not in self.records:
                raise StoreWriteError(
                    f"No raw contact {operation.raw_id} to update"
                )
            self.records[contact_id] = operation.contact.with_id(contact_id)
            return None

        if isinstance(operation, DeleteContact):
            if operation.contact_id not in self.records:
                raise StoreWriteError(
                    f"No contact {operation.contact_id} to delete"
                )
            del self.records[operation.contact_id]
            return None

        raise StoreWriteError(f"Unknown batch operation: {operation!r}")


class MemoryContactStore:
    """
    Keeps contacts in memory, in insertion order.

    Ids are sequential integers as strings; the raw handle of contact ``7``
    is ``raw-7``. ``granted`` simulates the platform permission prompt.
    """

    RAW_PREFIX = "raw-"

    def __init__(self, contacts: Sequence[Contact] = (),
                 granted: bool = True) -> None:
        self.granted = granted
        self._table = RecordTable()
        for contact in contacts:
            contact_id = contact.id or self._table.allocate_id()
            self._table.records[contact_id] = contact.with_id(contact_id)
        self.batches_applied = 0

    def request_access(self) -> bool:
        return self.granted

    def fetch_all(self) -> List[Contact]:
        return list(self._table.records.values())

    def resolve_raw_id(self, contact_id: str) -> Optional[str]:
        if contact_id not in self._table.records:
            return None
        return f"{self.RAW_PREFIX}{contact_id}"

    def apply_batch(self, operations: Sequence[BatchOperation]) -> List[str]:
        staged = self._table.copy()
        raw_to_id = {
            f"{self.RAW_PREFIX}{contact_id}": contact_id
            for contact_id in staged.records
        }
        inserted = []
        for operation in operations:
            new_id = staged.apply(operation, raw_to_id)
            if new_id is not None:
                inserted.append(new_id)

        self._table = staged
        self.batches_applied += 1
        logger.debug(f"Applied batch of {len(operations)} operations")
        return inserted
