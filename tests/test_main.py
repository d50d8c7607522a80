"""Tests for the command-line interface."""

from pathlib import Path

import pytest

from contact_backup.main import main
from contact_backup.vcard_store import VCardFileStore

BOOK = (
    "BEGIN:VCARD\r\n"
    "VERSION:3.0\r\n"
    "N:Yılmaz;Ayşe;;;\r\n"
    "FN:Ayşe Yılmaz\r\n"
    "TEL:555-0001\r\n"
    "END:VCARD\r\n"
    "BEGIN:VCARD\r\n"
    "VERSION:3.0\r\n"
    "N:Yılmaz;Ayşe;;;\r\n"
    "FN:Ayşe Yılmaz\r\n"
    "TEL:555-0002\r\n"
    "EMAIL:ayse@example.com\r\n"
    "END:VCARD\r\n"
    "BEGIN:VCARD\r\n"
    "VERSION:3.0\r\n"
    "N:Öz;Can;;;\r\n"
    "FN:Can Öz\r\n"
    "END:VCARD\r\n"
)


@pytest.fixture()
def book(tmp_path: Path) -> Path:
    path = tmp_path / "book.vcf"
    path.write_text(BOOK, encoding="utf-8")
    return path


def _run(book: Path, tmp_path: Path, *args: str) -> None:
    main([
        "--book", str(book),
        "--log-file", str(tmp_path / "logs" / "run.log"),
        *args,
    ])


def test_search(book: Path, tmp_path: Path, capsys) -> None:
    _run(book, tmp_path, "search", "can")

    out = capsys.readouterr().out
    assert "[3] Can Öz" in out
    assert "[1]" not in out


def test_duplicates_writes_preview_file(book: Path, tmp_path: Path,
                                        capsys) -> None:
    preview = tmp_path / "preview.json"

    _run(book, tmp_path, "duplicates", "--preview-file", str(preview))

    assert "Group #1 (2 contacts, same name: Ayşe Yılmaz)" in capsys.readouterr().out
    assert preview.exists()
    assert len(VCardFileStore(book).fetch_all()) == 3


def test_merge(book: Path, tmp_path: Path) -> None:
    _run(book, tmp_path, "merge", "1", "2")

    contacts = VCardFileStore(book).fetch_all()
    assert [c.id for c in contacts] == ["1", "3"]
    assert [p.number for p in contacts[0].phones] == ["555-0001", "555-0002"]
    assert [e.address for e in contacts[0].emails] == ["ayse@example.com"]


def test_merge_with_one_id_exits(book: Path, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _run(book, tmp_path, "merge", "1")

    assert excinfo.value.code == 1
    assert len(VCardFileStore(book).fetch_all()) == 3


def test_merge_duplicates_without_confirmation(book: Path,
                                               tmp_path: Path) -> None:
    _run(book, tmp_path, "merge-duplicates", "--no-confirm")

    assert [c.full_name for c in VCardFileStore(book).fetch_all()] == [
        "Ayşe Yılmaz", "Can Öz"
    ]


def test_export_and_import(book: Path, tmp_path: Path, capsys) -> None:
    out_dir = tmp_path / "exports"

    _run(book, tmp_path, "export", "3", "--output-dir", str(out_dir))

    exported = Path(capsys.readouterr().out.strip().splitlines()[-1])
    assert exported.parent == out_dir

    other_book = tmp_path / "other.vcf"
    _run(other_book, tmp_path, "import", str(exported))

    assert [c.full_name for c in VCardFileStore(other_book).fetch_all()] == [
        "Can Öz"
    ]


def test_import_unsupported_format(book: Path, tmp_path: Path) -> None:
    source = tmp_path / "contacts.csv"
    source.write_text("name\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        _run(book, tmp_path, "import", str(source), "--format", "csv")

    assert excinfo.value.code == 1


def test_invalid_phone_region(book: Path, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _run(book, tmp_path, "--phone-region", "XX", "duplicates")

    assert excinfo.value.code == 1
