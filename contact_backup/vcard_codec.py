"""
vCard codec for exporting contacts to and importing contacts from .vcf files.

The share export is intentionally lossy: phone, email and address types and
labels are dropped, and only the first organization is written. Import
assigns fixed default types (mobile phone, home email, home address). The
same converters can keep types, labels and UIDs when ``preserve=True``,
which is what the file-backed contact store uses.

Free text never goes into a parameter. Labels, types that are not plain
tokens and the titles of secondary organizations are written as their own
properties, tied to their line by a vCard group:

    item1.TEL:555-0001
    item1.X-ABLABEL:Front desk
"""
# pylint: disable=logging-fstring-interpolation

import itertools
import re
import time
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple
import logging

import vobject
from vobject.base import VObjectError

from contact_backup.contact_model import (
    ADDRESS_TYPE_HOME,
    EMAIL_TYPE_HOME,
    PHONE_TYPE_MOBILE,
    Address,
    Contact,
    ContactFormat,
    EmailAddress,
    Organization,
    PhoneNumber,
)
from contact_backup.errors import (
    ContactImportError,
    NoContactsSelectedError,
    UnsupportedFormatError,
)
from contact_backup.normalizer import split_display_name

logger = logging.getLogger("contact_backup")

EXPORT_FILE_PREFIX = "contacts_export_"
LABEL_PARAM = 'X-LABEL'
LABEL_PROPERTY = 'X-ABLABEL'
TYPE_PROPERTY = 'X-ABTYPE'
ORG_TITLE_PROPERTY = 'X-ORG-TITLE'

_PARAM_TOKEN = re.compile(r'[A-Za-z0-9-]+')


def _split_vcard_blocks(content: str) -> List[str]:
    """
    Split vCard content into individual vCard blocks.

    Args:
        content: Full vCard file content

    Returns:
        List of individual vCard block strings
    """
    blocks = []
    current_block: List[str] = []
    in_block = False

    lines = content.replace('\r\n', '\n').replace('\r', '\n').split('\n')

    for line in lines:
        line_upper = line.strip().upper()

        if line_upper == 'BEGIN:VCARD':
            # An unterminated block is dropped when the next one starts
            if in_block and current_block:
                logger.debug("vCard block without END:VCARD discarded")
            current_block = [line]
            in_block = True
        elif in_block:
            current_block.append(line)
            if line_upper == 'END:VCARD':
                blocks.append('\n'.join(current_block))
                current_block = []
                in_block = False

    if in_block and current_block:
        logger.debug("Trailing vCard block without END:VCARD discarded")

    return blocks


def _text(value: Any) -> str:
    """Flatten a vobject field value (str, list or None) to a string."""
    if value is None:
        return ''
    if isinstance(value, (list, tuple)):
        return ' '.join(_text(v) for v in value if v)
    return str(value)


def _param(line: Any, name: str) -> str:
    """Return a content line parameter joined by commas, or ''."""
    values = line.params.get(name) if hasattr(line, 'params') else None
    if not values:
        return ''
    if isinstance(values, (list, tuple)):
        return ','.join(str(v) for v in values if v)
    return str(values)


def _lines(vcard: vobject.base.Component, name: str) -> list:
    return vcard.contents.get(name, [])


def _grouped_properties(
    vcard: vobject.base.Component
) -> Dict[str, Dict[str, str]]:
    """Map each vCard group to the text of its lines, by property name."""
    grouped: Dict[str, Dict[str, str]] = {}
    for line in vcard.getChildren():
        group = getattr(line, 'group', None)
        if group:
            grouped.setdefault(group.upper(), {})[line.name.upper()] = \
                _text(line.value)
    return grouped


def _extras(line: Any, grouped: Dict[str, Dict[str, str]]) -> Dict[str, str]:
    group = getattr(line, 'group', None)
    return grouped.get(group.upper(), {}) if group else {}


def _type_and_label(
    line: Any,
    grouped: Dict[str, Dict[str, str]],
    default_type: str,
    preserve: bool
) -> Tuple[str, str]:
    """
    Read the type and label of a TEL, EMAIL or ADR line.

    Import ignores both and returns the default type. The store reads its
    grouped properties first, then the older parameter form.
    """
    if not preserve:
        return default_type, ''
    extras = _extras(line, grouped)
    type_value = (
        extras.get(TYPE_PROPERTY) or _param(line, 'TYPE') or default_type
    )
    label = extras.get(LABEL_PROPERTY) or _param(line, LABEL_PARAM)
    return type_value, label


def _phone_number(tel: Any) -> str:
    """
    Return the number of a TEL line.

    vCard 4.0 writes numbers as URIs ("tel:+1-555-0001;ext=12"); the
    scheme and URI parameters are dropped.
    """
    number = _text(tel.value)
    is_uri = _param(tel, 'VALUE').lower() == 'uri'
    if number.strip()[:4].lower() == 'tel:':
        number = number.strip()[4:]
        is_uri = True
    if is_uri:
        number = number.split(';', 1)[0].strip()
    return number


def parse_vcards(content: str, preserve: bool = False) -> List[Contact]:
    """
    Parse vCard text into contacts.

    Each BEGIN:VCARD..END:VCARD block is parsed on its own so that one
    malformed record does not hide the others.

    Args:
        content: vCard text (3.0 or 4.0)
        preserve: Keep UID, types and labels instead of import defaults

    Returns:
        Contacts in file order. Without ``preserve`` their ids are empty.

    Raises:
        ContactImportError: If no record could be parsed
    """
    content = content.lstrip('\ufeff')
    vcard_blocks = _split_vcard_blocks(content)
    logger.debug(f"Split content into {len(vcard_blocks)} vCard blocks")

    contacts = []
    failed_count = 0
    for block_num, block in enumerate(vcard_blocks, 1):
        try:
            for vcard in vobject.readComponents(block):
                if vcard.name.upper() != 'VCARD':
                    continue
                contacts.append(_parse_single_vcard(vcard, preserve))
        except (VObjectError, ValueError, TypeError) as e:
            failed_count += 1
            logger.warning(f"Skipping unparseable vCard block {block_num}: {e}")

    if failed_count > 0:
        logger.warning(
            f"Failed to parse {failed_count} out of "
            f"{len(vcard_blocks)} vCard blocks"
        )

    if not contacts:
        raise ContactImportError("No contacts found in vCard data")

    logger.info(f"Parsed {len(contacts)} contacts from vCard data")
    return contacts


def _parse_single_vcard(
    vcard: vobject.base.Component,
    preserve: bool = False
) -> Contact:
    """
    Convert a single vCard object into a contact.

    Args:
        vcard: vobject vCard component
        preserve: Keep UID, types and labels

    Returns:
        Contact built from the vCard properties
    """
    first_name = last_name = ''
    if hasattr(vcard, 'n'):
        name_parts = vcard.n.value
        first_name = _text(getattr(name_parts, 'given', ''))
        last_name = _text(getattr(name_parts, 'family', ''))
    elif hasattr(vcard, 'fn'):
        first_name, last_name = split_display_name(_text(vcard.fn.value))

    grouped = _grouped_properties(vcard) if preserve else {}

    phones = []
    for tel in _lines(vcard, 'tel'):
        type_value, label = _type_and_label(
            tel, grouped, PHONE_TYPE_MOBILE, preserve
        )
        phones.append(PhoneNumber(
            number=_phone_number(tel), label=label, type=type_value
        ))

    emails = []
    for email in _lines(vcard, 'email'):
        type_value, label = _type_and_label(
            email, grouped, EMAIL_TYPE_HOME, preserve
        )
        emails.append(EmailAddress(
            address=_text(email.value), label=label, type=type_value
        ))

    addresses = []
    for adr in _lines(vcard, 'adr'):
        parts = adr.value
        type_value, label = _type_and_label(
            adr, grouped, ADDRESS_TYPE_HOME, preserve
        )
        addresses.append(Address(
            street=_text(getattr(parts, 'street', '')),
            city=_text(getattr(parts, 'city', '')),
            state=_text(getattr(parts, 'region', '')),
            postal_code=_text(getattr(parts, 'code', '')),
            country=_text(getattr(parts, 'country', '')),
            label=label,
            type=type_value,
        ))

    organizations = _parse_organizations(vcard, grouped, preserve)

    contact_id = ''
    if preserve and hasattr(vcard, 'uid'):
        contact_id = _text(vcard.uid.value)

    return Contact(
        id=contact_id,
        first_name=first_name,
        last_name=last_name,
        phones=phones,
        emails=emails,
        addresses=addresses,
        organizations=organizations,
        photo=_parse_photo(vcard) if preserve else None,
    )


def _parse_organizations(
    vcard: vobject.base.Component,
    grouped: Dict[str, Dict[str, str]],
    preserve: bool
) -> List[Organization]:
    """
    Read ORG (name;department) and TITLE.

    On import only the first ORG is used and TITLE belongs to it. The store
    writes one ORG per organization; titles after the first are grouped
    X-ORG-TITLE properties.
    """
    org_lines = _lines(vcard, 'org')
    if not org_lines:
        return []

    title = _text(vcard.title.value) if hasattr(vcard, 'title') else ''
    if not preserve:
        org_lines = org_lines[:1]

    organizations = []
    for index, org in enumerate(org_lines):
        values = org.value if isinstance(org.value, list) else [org.value]
        org_title = title if index == 0 else ''
        if preserve:
            org_title = (
                _extras(org, grouped).get(ORG_TITLE_PROPERTY)
                or _param(org, 'X-TITLE')
                or org_title
            )
        organizations.append(Organization(
            name=_text(values[0]) if values else '',
            department=_text(values[1]) if len(values) > 1 else '',
            title=org_title,
        ))
    return organizations


def _parse_photo(vcard: vobject.base.Component) -> Optional[bytes]:
    if not hasattr(vcard, 'photo'):
        return None
    value = vcard.photo.value
    # vobject decodes ENCODING=b data to bytes; URI photos are not kept
    return value if isinstance(value, bytes) else None


def _contact_to_vcard(
    contact: Contact,
    preserve: bool = False
) -> vobject.base.Component:
    """
    Convert a contact to a vCard object.

    Args:
        contact: Contact to convert
        preserve: Also write UID, types and labels, every organization
            and the photo

    Returns:
        vobject vCard component
    """
    vcard = vobject.vCard()
    groups = (f"item{number}" for number in itertools.count(1))

    vcard.add('n').value = vobject.vcard.Name(
        family=contact.last_name,
        given=contact.first_name
    )
    vcard.add('fn').value = contact.full_name

    if preserve and contact.id:
        vcard.add('uid').value = contact.id

    for phone in contact.phones:
        tel = vcard.add('tel')
        tel.value = phone.number
        if preserve:
            _add_type_and_label(vcard, tel, phone.type, phone.label, groups)

    for email in contact.emails:
        email_obj = vcard.add('email')
        email_obj.value = email.address
        if preserve:
            _add_type_and_label(
                vcard, email_obj, email.type, email.label, groups
            )

    for address in contact.addresses:
        adr = vcard.add('adr')
        adr.value = vobject.vcard.Address(
            street=address.street,
            city=address.city,
            region=address.state,
            code=address.postal_code,
            country=address.country
        )
        if preserve:
            _add_type_and_label(
                vcard, adr, address.type, address.label, groups
            )

    organizations = contact.organizations if preserve \
        else contact.organizations[:1]
    for index, organization in enumerate(organizations):
        org = vcard.add('org')
        org_parts = [organization.name]
        if organization.department:
            org_parts.append(organization.department)
        org.value = org_parts
        if index == 0:
            if organization.title:
                vcard.add('title').value = organization.title
        elif organization.title:
            _add_grouped(
                vcard, org, {ORG_TITLE_PROPERTY: organization.title}, groups
            )

    if preserve and contact.photo:
        photo = vcard.add('photo')
        photo.encoding_param = 'b'
        photo.value = contact.photo

    return vcard


def _add_grouped(
    vcard: vobject.base.Component,
    line: Any,
    properties: Dict[str, str],
    groups: Iterator[str]
) -> None:
    """Put ``line`` in a new group and add ``properties`` to that group."""
    group = next(groups)
    line.group = group
    for name, value in properties.items():
        vcard.add(name, group=group).value = value


def _add_type_and_label(
    vcard: vobject.base.Component,
    line: Any,
    type_value: str,
    label: str,
    groups: Iterator[str]
) -> None:
    """
    Write a type as TYPE parameters when every comma-separated part is a
    plain token, otherwise as a grouped X-ABTYPE property. A label is
    always a grouped X-ABLABEL property.
    """
    properties = {}
    types = [t.strip() for t in type_value.split(',') if t.strip()]
    if all(_PARAM_TOKEN.fullmatch(t) for t in types):
        if types:
            line.params['TYPE'] = types
    else:
        properties[TYPE_PROPERTY] = type_value
    if label:
        properties[LABEL_PROPERTY] = label
    if properties:
        _add_grouped(vcard, line, properties, groups)


def export_vcards(contacts: List[Contact], preserve: bool = False) -> str:
    """
    Serialize contacts to vCard 3.0 text, one record per contact.

    Args:
        contacts: Contacts to export
        preserve: Keep types, labels, UIDs and photos

    Returns:
        vCard text with CRLF line endings

    Raises:
        NoContactsSelectedError: If ``contacts`` is empty
    """
    if not contacts:
        raise NoContactsSelectedError()

    return ''.join(
        _contact_to_vcard(contact, preserve).serialize()
        for contact in contacts
    )


def write_vcard_export(contacts: List[Contact], directory: Path) -> Path:
    """
    Write a share export file and return its path.

    The file is named contacts_export_<epoch millis>.vcf and encoded as
    UTF-8.

    :param contacts: Contacts to export
    :param directory: Directory receiving the file
    :return: Path of the written file
    """
    content = export_vcards(contacts)
    directory.mkdir(parents=True, exist_ok=True)
    output_path = directory / f"{EXPORT_FILE_PREFIX}{int(time.time() * 1000)}.vcf"

    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)

    logger.info(f"Successfully wrote {len(contacts)} contacts to {output_path}")
    return output_path


def read_vcard_file(file_path: Path) -> str:
    """
    Read a whole vCard file as text.

    :param file_path: Path to the .vcf file
    :return: Decoded file content
    :raises ContactImportError: If the file cannot be read
    """
    try:
        data = file_path.read_bytes()
    except OSError as e:
        raise ContactImportError(f"Cannot read {file_path}: {e}") from e

    try:
        return data.decode('utf-8-sig')
    except UnicodeDecodeError:
        logger.warning(
            f"{file_path} is not valid UTF-8, undecodable bytes replaced"
        )
        return data.decode('utf-8', errors='replace')


def check_import_format(file_path: Path, file_format: ContactFormat) -> None:
    """
    Reject files that do not match the selected format, and every format
    other than vCard.

    :param file_path: File chosen for import
    :param file_format: Format selected by the user
    :raises UnsupportedFormatError: If the file cannot be imported
    """
    if not file_format.matches(file_path.name):
        raise UnsupportedFormatError(
            f"Selected file '{file_path.name}' does not match the "
            f"'{file_format.label}' format"
        )
    if file_format is not ContactFormat.VCARD:
        raise UnsupportedFormatError(
            "Only vCard (.vcf) files are currently supported"
        )
