"""
Contact list search.

Substring search over name, phone numbers and email addresses, with optional
fuzzy name matching.

Dependencies:
    - rapidfuzz: Third-party library for fuzzy string matching
    - typing: Standard library for type hints
"""

from typing import List, Optional, Sequence

from rapidfuzz import fuzz

from contact_backup.contact_model import Contact


def _matches(contact: Contact, query: str) -> bool:
    if query in contact.full_name.lower():
        return True
    if any(query in phone.number.lower() for phone in contact.phones):
        return True
    return any(query in email.address.lower() for email in contact.emails)


def filter_contacts(
    contacts: Sequence[Contact],
    query: str,
    fuzzy_threshold: Optional[int] = None
) -> List[Contact]:
    """
    Return the contacts matching a search query, in input order.

    A contact matches when its lower-cased full name, one of its phone
    numbers or one of its email addresses contains the lower-cased query.
    With ``fuzzy_threshold`` set, a contact whose name scores at least that
    value (0-100) against the query also matches.

    :param contacts: Contacts to search
    :param query: Search text; blank returns every contact
    :param fuzzy_threshold: Optional minimum partial-ratio similarity
    :return: Matching contacts
    """
    if not query or not query.strip():
        return list(contacts)

    lowered = query.lower()
    results = []
    for contact in contacts:
        if _matches(contact, lowered):
            results.append(contact)
        elif fuzzy_threshold is not None and contact.has_name:
            score = fuzz.partial_ratio(lowered, contact.full_name.lower())
            if score >= fuzzy_threshold:
                results.append(contact)
    return results
