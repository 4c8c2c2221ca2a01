import datetime as dt
import io
import threading
import zipfile

import pytest

from archive import ArchivePackager, archive_filename, entry_name, pack, sanitize_filename
from errors import PackagingError
from models import GenerationResult


def _ok(pid: str, name: str, body: bytes = b"%PDF-1.4 fake") -> GenerationResult:
    return GenerationResult(participant_id=pid, participant_name=name, success=True, document_bytes=body)


def _failed(pid: str, name: str, message: str) -> GenerationResult:
    return GenerationResult(participant_id=pid, participant_name=name, success=False, error_message=message)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("John Doe", "john-doe"),
        ("  Mary   Jane  O'Neil ", "mary-jane-oneil"),
        ("José Núñez", "jos-nez"),
        ("already-safe", "already-safe"),
        ("../../etc/passwd", "etcpasswd"),
        ("!!!", ""),
        (None, ""),
    ],
)
def test_sanitize_filename(value, expected):
    assert sanitize_filename(value) == expected


def test_sanitize_truncates_and_falls_back():
    assert sanitize_filename("a" * 80) == "a" * 50
    assert sanitize_filename("a" * 80, max_length=30) == "a" * 30
    assert sanitize_filename("###", fallback="participant") == "participant"


def test_entry_names():
    assert entry_name(_ok("u1", "John Doe")) == "certificate-john-doe-u1.pdf"
    assert entry_name(_failed("u2", "Jane Roe", "boom")) == "ERROR-jane-roe-u2.txt"
    assert entry_name(_ok("u3", "***")) == "certificate-participant-u3.pdf"


def test_ids_cannot_create_directories():
    assert entry_name(_ok("../../etc/passwd", "John Doe")) == "certificate-john-doe-.._.._etc_passwd.pdf"
    assert entry_name(_failed("a\\b:c", "Jane Roe", "boom")) == "ERROR-jane-roe-a_b_c.txt"

    archive = pack([_ok("team/1", "Ana Lima"), _ok("team_1", "Ana Lima")], "Event")
    with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
        names = sorted(zf.namelist())
    assert names == ["certificate-ana-lima-team_1-2.pdf", "certificate-ana-lima-team_1.pdf"]
    assert not any("/" in name or "\\" in name for name in names)


def test_archive_filename():
    now = dt.datetime(2024, 3, 15, 9, 5, 7)
    assert archive_filename("Beach Cleanup Volunteer Event", now) == (
        "certificates-beach-cleanup-volunteer-event-2024-03-15T09-05-07.zip"
    )
    assert archive_filename("???", now).startswith("certificates-event-")


def test_every_result_becomes_one_entry():
    results = [
        _ok("u1", "John Doe", b"%PDF-john"),
        _failed("u2", "Jane Roe", "Error generating certificate for Jane Roe: font exploded"),
        _ok("u3", "Ana Lima", b"%PDF-ana"),
    ]
    archive = pack(results, "Beach Cleanup")
    assert archive.filename.startswith("certificates-beach-cleanup-")
    with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
        assert sorted(zf.namelist()) == [
            "ERROR-jane-roe-u2.txt",
            "certificate-ana-lima-u3.pdf",
            "certificate-john-doe-u1.pdf",
        ]
        assert zf.read("certificate-john-doe-u1.pdf") == b"%PDF-john"
        assert zf.read("ERROR-jane-roe-u2.txt").decode() == (
            "Error generating certificate for Jane Roe: font exploded"
        )
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())


def test_colliding_names_are_suffixed():
    packager = ArchivePackager("Event")
    first = packager.add(_ok("u1", "John Doe"))
    second = packager.add(_ok("u1", "John  Doe!"))
    assert (first, second) == ("certificate-john-doe-u1.pdf", "certificate-john-doe-u1-2.pdf")
    archive = packager.finish()
    with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
        assert len(zf.namelist()) == 2


def test_empty_archive_is_still_valid():
    archive = pack([], "Empty Event")
    with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
        assert zf.namelist() == []


def test_missing_document_bytes_is_a_packaging_error():
    packager = ArchivePackager("Event")
    with pytest.raises(PackagingError):
        packager.add(GenerationResult(participant_id="u1", participant_name="John", success=True))
    packager.discard()


def test_finished_archive_rejects_more_work():
    packager = ArchivePackager("Event")
    packager.add(_ok("u1", "John"))
    packager.finish()
    with pytest.raises(PackagingError):
        packager.add(_ok("u2", "Jane"))
    with pytest.raises(PackagingError):
        packager.finish()
    packager.discard()


def test_concurrent_adds_are_serialised():
    packager = ArchivePackager("Event", spool_max_bytes=1024)
    results = [_ok(f"u{i}", f"Person {i}", b"x" * 2048) for i in range(40)]

    threads = [threading.Thread(target=packager.add, args=(r,)) for r in results]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    archive = packager.finish()
    with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
        assert zf.testzip() is None
        assert len(zf.namelist()) == 40
        assert len(packager.entry_names) == 40
