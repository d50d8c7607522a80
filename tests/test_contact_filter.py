"""Tests for contact search."""

from contact_backup.contact_filter import filter_contacts
from contact_backup.contact_model import Contact, EmailAddress, PhoneNumber

CONTACTS = [
    Contact(id="1", first_name="John", last_name="Smith",
            phones=[PhoneNumber("+1 202 555 0100")]),
    Contact(id="2", first_name="Ayşe", last_name="Yılmaz",
            emails=[EmailAddress("Ayse@Example.com")]),
    Contact(id="3", phones=[PhoneNumber("0532 111 22 33")]),
]


def _ids(contacts):
    return [c.id for c in contacts]


def test_blank_query_returns_everything() -> None:
    assert _ids(filter_contacts(CONTACTS, "")) == ["1", "2", "3"]
    assert _ids(filter_contacts(CONTACTS, "   ")) == ["1", "2", "3"]


def test_name_match_is_case_insensitive() -> None:
    assert _ids(filter_contacts(CONTACTS, "SMITH")) == ["1"]


def test_matches_phone_and_email_substrings() -> None:
    assert _ids(filter_contacts(CONTACTS, "555 01")) == ["1"]
    assert _ids(filter_contacts(CONTACTS, "111 22")) == ["3"]
    assert _ids(filter_contacts(CONTACTS, "example.com")) == ["2"]


def test_no_match() -> None:
    assert filter_contacts(CONTACTS, "zeynep") == []


def test_fuzzy_threshold_matches_misspelled_name() -> None:
    assert filter_contacts(CONTACTS, "jonh smith") == []
    assert _ids(filter_contacts(CONTACTS, "jonh smith", fuzzy_threshold=80)) == ["1"]


def test_fuzzy_matching_skips_unnamed_contacts() -> None:
    assert "3" not in _ids(filter_contacts(CONTACTS, "unnamed contakt",
                                           fuzzy_threshold=50))
