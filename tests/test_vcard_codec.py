"""Tests for vCard export and import."""

from pathlib import Path

import pytest

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
from contact_backup.vcard_codec import (
    EXPORT_FILE_PREFIX,
    check_import_format,
    export_vcards,
    parse_vcards,
    read_vcard_file,
    write_vcard_export,
)


def _full_contact() -> Contact:
    return Contact(
        id="42",
        first_name="Ayşe",
        last_name="Yılmaz",
        phones=[PhoneNumber("+90 532 111 22 33", label="Cell", type="work")],
        emails=[EmailAddress("ayse@example.com", label="Job", type="work")],
        addresses=[Address(
            street="Bağdat Cd. 10",
            city="İstanbul",
            state="Kadıköy",
            postal_code="34710",
            country="Türkiye",
            label="Office",
            type="work",
        )],
        organizations=[
            Organization("Acme", department="R&D", title="Engineer"),
            Organization("Globex", title="Advisor"),
        ],
    )


SAMPLE_VCF = (
    "BEGIN:VCARD\r\n"
    "VERSION:3.0\r\n"
    "N:Kaya;Ali;;;\r\n"
    "FN:Ali Kaya\r\n"
    "TEL;TYPE=CELL:555-0001\r\n"
    "EMAIL;TYPE=WORK:ali@example.com\r\n"
    "END:VCARD\r\n"
    "BEGIN:VCARD\r\n"
    "VERSION:3.0\r\n"
    "FN:Mehmet Ali Demir\r\n"
    "END:VCARD\r\n"
)


def test_export_requires_contacts() -> None:
    with pytest.raises(NoContactsSelectedError):
        export_vcards([])


def test_share_export_drops_types_and_labels() -> None:
    text = export_vcards([_full_contact()])

    assert text.count("BEGIN:VCARD") == 1
    assert "FN:Ayşe Yılmaz" in text
    assert "TEL:+90 532 111 22 33" in text
    assert "EMAIL:ayse@example.com" in text
    assert "TITLE:Engineer" in text
    assert "TYPE=" not in text
    assert "X-LABEL" not in text
    assert "UID" not in text
    assert "Globex" not in text


def test_one_record_per_contact() -> None:
    text = export_vcards([Contact(id="1", first_name="A"),
                          Contact(id="2", first_name="B")])

    assert text.count("BEGIN:VCARD") == 2
    assert text.count("END:VCARD") == 2


def test_lossy_round_trip_uses_import_defaults() -> None:
    original = _full_contact()

    imported = parse_vcards(export_vcards([original]))

    assert len(imported) == 1
    contact = imported[0]
    assert contact.id == ""
    assert contact.first_name == "Ayşe"
    assert contact.last_name == "Yılmaz"
    assert [p.number for p in contact.phones] == ["+90 532 111 22 33"]
    assert contact.phones[0].type == PHONE_TYPE_MOBILE
    assert contact.phones[0].label == ""
    assert [e.address for e in contact.emails] == ["ayse@example.com"]
    assert contact.emails[0].type == EMAIL_TYPE_HOME
    address = contact.addresses[0]
    assert address.formatted_address == original.addresses[0].formatted_address
    assert address.type == ADDRESS_TYPE_HOME
    assert address.label == ""
    assert contact.organizations == (
        Organization("Acme", department="R&D", title="Engineer"),
    )


def test_import_reads_every_record() -> None:
    contacts = parse_vcards(SAMPLE_VCF)

    assert [c.full_name for c in contacts] == ["Ali Kaya", "Mehmet Ali Demir"]
    assert contacts[0].phones == (PhoneNumber("555-0001"),)
    assert contacts[0].emails == (EmailAddress("ali@example.com"),)


def test_import_without_structured_name_splits_display_name() -> None:
    contact = parse_vcards(SAMPLE_VCF)[1]

    assert contact.first_name == "Mehmet"
    assert contact.last_name == "Ali Demir"


def test_import_skips_malformed_record() -> None:
    broken = (
        "BEGIN:VCARD\r\n"
        "VERSION:3.0\r\n"
        "this line has no separator\r\n"
        "END:VCARD\r\n"
    )

    contacts = parse_vcards(broken + SAMPLE_VCF)

    assert len(contacts) == 2


def test_import_handles_byte_order_mark() -> None:
    assert len(parse_vcards("\ufeff" + SAMPLE_VCF)) == 2


@pytest.mark.parametrize("content", ["", "not a vcard at all"])
def test_import_without_records_fails(content: str) -> None:
    with pytest.raises(ContactImportError):
        parse_vcards(content)


def test_preserve_keeps_identity_types_and_every_organization() -> None:
    original = _full_contact().with_fields(photo=b"\x89PNG\r\n\x00data")

    restored = parse_vcards(
        export_vcards([original], preserve=True), preserve=True
    )[0]

    assert restored == original
    assert restored.photo == original.photo


def test_write_vcard_export_names_file(tmp_path: Path) -> None:
    path = write_vcard_export([_full_contact()], tmp_path / "out")

    assert path.parent == tmp_path / "out"
    assert path.name.startswith(EXPORT_FILE_PREFIX)
    assert path.suffix == ".vcf"
    assert "FN:Ayşe Yılmaz" in path.read_text(encoding="utf-8")


def test_read_vcard_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ContactImportError):
        read_vcard_file(tmp_path / "missing.vcf")


def test_read_vcard_file_tolerates_invalid_utf8(tmp_path: Path) -> None:
    path = tmp_path / "latin1.vcf"
    path.write_bytes(SAMPLE_VCF.replace("Ali Kaya", "Al\xed").encode("latin-1"))

    assert "BEGIN:VCARD" in read_vcard_file(path)


def test_check_import_format() -> None:
    check_import_format(Path("backup.vcf"), ContactFormat.VCARD)

    with pytest.raises(UnsupportedFormatError):
        check_import_format(Path("backup.csv"), ContactFormat.VCARD)
    with pytest.raises(UnsupportedFormatError):
        check_import_format(Path("backup.csv"), ContactFormat.CSV)


V4_CARD = (
    "BEGIN:VCARD\r\n"
    "VERSION:4.0\r\n"
    "FN:Ali Kaya\r\n"
    "N:Kaya;Ali;;;\r\n"
    "TEL;VALUE=uri;TYPE=cell:tel:+1-555-0001\r\n"
    "TEL;VALUE=uri:tel:+1-555-0002;ext=12\r\n"
    "EMAIL:ali@example.com\r\n"
    "END:VCARD\r\n"
)


def test_import_vcard4_uri_phones() -> None:
    (contact,) = parse_vcards(V4_CARD)

    assert contact.full_name == "Ali Kaya"
    assert [p.number for p in contact.phones] == ["+1-555-0001", "+1-555-0002"]
    assert [e.address for e in contact.emails] == ["ali@example.com"]


def test_vcard4_phones_export_without_uri_scheme() -> None:
    text = export_vcards(parse_vcards(V4_CARD))

    assert "TEL:+1-555-0001" in text
    assert "tel:" not in text


def test_preserve_keeps_free_text_out_of_parameters() -> None:
    contact = Contact(
        id="7",
        first_name="Ali",
        phones=[PhoneNumber("555", label='say "hi"\nthere', type='a"b')],
        emails=[EmailAddress("ali@example.com", label="Work; main")],
        organizations=[
            Organization("Acme"),
            Organization("Globex", title="Head of Sales\nEMEA"),
        ],
    )

    text = export_vcards([contact], preserve=True)

    assert "X-ABLABEL" in text
    assert "X-ORG-TITLE" in text
    assert "X-TITLE=" not in text
    assert "X-LABEL=" not in text
    assert parse_vcards(text, preserve=True) == [contact]
