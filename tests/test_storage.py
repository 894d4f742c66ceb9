import asyncio
import io
from datetime import date, time

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from carelink.core.config import get_settings
from carelink.services.document_service import (
    DocumentTooLargeError,
    UnsupportedDocumentTypeError,
    max_document_bytes,
    read_upload_capped,
    validate_document,
)
from carelink.utils.datetime_utils import combine_local_date_time, format_clock_time, format_long_date
from carelink.utils.file_storage import (
    StoragePathError,
    build_document_path,
    get_storage_root,
    resolve_storage_path,
    safe_file_name,
    save_bytes_to_storage,
)


def test_document_path_layout():
    path = build_document_path("patient-1", "consult-9", 1741600000000, "ECG results.pdf", file_id="a1b2c3")
    assert path == "patient-1/consult-9/1741600000000-a1b2c3-ECG results.pdf"


def test_same_name_same_millisecond_gets_distinct_paths():
    first = build_document_path("p", "c", 1741600800000, "report.pdf")
    second = build_document_path("p", "c", 1741600800000, "report.pdf")
    assert first != second
    assert first.endswith("-report.pdf") and second.endswith("-report.pdf")


def test_stored_blob_is_never_overwritten():
    path = build_document_path("p", "c", 2, "scan.png")
    save_bytes_to_storage(b"first", path)

    with pytest.raises(FileExistsError):
        save_bytes_to_storage(b"second", path)
    assert resolve_storage_path(path).read_bytes() == b"first"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\amina\\scan.png", "scan.png"),
        ("report;rm -rf.pdf", "report_rm -rf.pdf"),
        ("", "file"),
        (None, "file"),
        ("..", "file"),
    ],
)
def test_safe_file_name(raw, expected):
    assert safe_file_name(raw) == expected


def test_resolve_rejects_escape():
    with pytest.raises(StoragePathError):
        resolve_storage_path("../outside.txt")


def test_save_and_resolve():
    path = build_document_path("p", "c", 1, "scan.png")
    save_bytes_to_storage(b"\x89PNG", path)

    full = resolve_storage_path(path)
    assert full.read_bytes() == b"\x89PNG"
    assert get_storage_root() in full.parents


@pytest.mark.parametrize(
    "name, mime",
    [
        ("report.pdf", "application/pdf"),
        ("photo.jpg", "image/jpeg"),
        ("photo.jpg", "image/jpg"),
        ("xray.png", "image/png"),
        ("ct.dcm", "application/dicom"),
        ("ct.DCM", "application/octet-stream"),
    ],
)
def test_accepted_document_types(name, mime):
    validate_document(name, mime, 1024)


@pytest.mark.parametrize(
    "name, mime",
    [
        ("notes.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
        ("setup.exe", "application/octet-stream"),
        ("clip.mp4", "video/mp4"),
        ("unknown", None),
    ],
)
def test_rejected_document_types(name, mime):
    with pytest.raises(UnsupportedDocumentTypeError):
        validate_document(name, mime, 1024)


def test_size_limit_is_inclusive():
    validate_document("report.pdf", "application/pdf", max_document_bytes())
    with pytest.raises(DocumentTooLargeError) as exc_info:
        validate_document("report.pdf", "application/pdf", max_document_bytes() + 1)
    assert "20MB" in exc_info.value.reason


def test_type_is_checked_before_size():
    with pytest.raises(UnsupportedDocumentTypeError):
        validate_document("movie.mp4", "video/mp4", max_document_bytes() * 2)


def test_date_formatting():
    scheduled = combine_local_date_time(date(2025, 3, 10), time(21, 5), "UTC")
    assert format_long_date(scheduled) == "Monday, March 10, 2025"
    assert format_clock_time(scheduled) == "09:05 PM"


def _pdf_upload(data: bytes, size: int | None = None) -> tuple[UploadFile, io.BytesIO]:
    stream = io.BytesIO(data)
    upload = UploadFile(
        stream,
        size=size,
        filename="scan.pdf",
        headers=Headers({"content-type": "application/pdf"}),
    )
    return upload, stream


def test_declared_size_is_rejected_before_reading(monkeypatch):
    monkeypatch.setattr(get_settings(), "max_document_mb", 1)
    upload, stream = _pdf_upload(b"%PDF", size=5 * 1024 * 1024)

    with pytest.raises(DocumentTooLargeError):
        asyncio.run(read_upload_capped(upload))
    assert stream.tell() == 0


def test_undeclared_size_reads_at_most_one_byte_past_the_cap(monkeypatch):
    monkeypatch.setattr(get_settings(), "max_document_mb", 1)
    upload, stream = _pdf_upload(b"0" * (3 * 1024 * 1024))

    with pytest.raises(DocumentTooLargeError):
        asyncio.run(read_upload_capped(upload))
    assert stream.tell() == max_document_bytes() + 1


def test_capped_read_returns_the_whole_small_file():
    upload, _ = _pdf_upload(b"%PDF-1.4 small", size=14)
    assert asyncio.run(read_upload_capped(upload)) == b"%PDF-1.4 small"
