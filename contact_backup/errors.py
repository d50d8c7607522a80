"""
Exception hierarchy for the contact backup core.

Every failure the core can report is a subclass of ContactBackupError so the
command-line layer can catch them in one place.
"""

from typing import Optional


class ContactBackupError(Exception):
    """Base class for all contact backup errors."""


class PermissionDeniedError(ContactBackupError):
    """Access to the contact store was not granted."""

    def __init__(self, message: str = "Access to contacts was not granted"):
        super().__init__(message)


class NoContactsSelectedError(ContactBackupError):
    """An operation was invoked without any contacts."""

    def __init__(self, message: str = "No contacts selected"):
        super().__init__(message)


class InsufficientContactsError(NoContactsSelectedError):
    """A merge was requested with fewer than two distinct contacts."""

    def __init__(
        self,
        message: str = "At least 2 contacts must be selected for merging"
    ):
        super().__init__(message)


class ContactNotFoundError(ContactBackupError):
    """A contact id is absent from the current snapshot."""

    def __init__(self, contact_id: str):
        super().__init__(f"Contact not found with ID: {contact_id}")
        self.contact_id = contact_id


class ContactImportError(ContactBackupError):
    """A vCard file could not be read or yielded no records."""


class UnsupportedFormatError(ContactBackupError):
    """The selected file format has no working codec."""


class StoreWriteError(ContactBackupError):
    """
    An atomic batch could not be applied to the contact store.

    :param message: Description of the failure
    :param written: Number of records committed before the failure
    """

    def __init__(self, message: str, written: int = 0,
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.written = written
        self.cause = cause
