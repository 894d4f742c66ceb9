from datetime import datetime, timezone

import pytest

from carelink.core.config import get_settings
from carelink.models.medical_document import MedicalDocument
from carelink.models.user import AppRole
from carelink.services import document_service
from carelink.utils.file_storage import resolve_storage_path

PDF_BYTES = b"%PDF-1.4\n% test report\n"


@pytest.fixture
def case(patient, make_consultation):
    return make_consultation(patient)


def _upload(client, consultation_id, headers, files):
    return client.post(
        f"/api/v1/consultations/{consultation_id}/documents",
        headers=headers,
        files=[("files", f) for f in files],
    )


def test_upload_list_and_download(client, db, patient, case, auth_headers):
    headers = auth_headers(patient)

    res = _upload(
        client,
        case.id,
        headers,
        [("ecg.pdf", PDF_BYTES, "application/pdf"), ("xray.png", b"\x89PNG\r\n", "image/png")],
    )
    assert res.status_code == 201, res.text
    uploaded = res.json()
    assert [d["file_name"] for d in uploaded] == ["ecg.pdf", "xray.png"]
    assert uploaded[0]["file_size"] == len(PDF_BYTES)

    stored = db.query(MedicalDocument).filter(MedicalDocument.file_name == "ecg.pdf").one()
    assert stored.storage_path.startswith(f"{patient.id}/{case.id}/")
    assert resolve_storage_path(stored.storage_path).read_bytes() == PDF_BYTES

    res = client.get(f"/api/v1/consultations/{case.id}/documents", headers=headers)
    assert res.status_code == 200
    assert {d["file_name"] for d in res.json()} == {"ecg.pdf", "xray.png"}

    res = client.get(f"/api/v1/documents/{stored.id}/download", headers=headers)
    assert res.status_code == 200
    assert res.content == PDF_BYTES
    assert res.headers["content-type"].startswith("application/pdf")


def test_unsupported_type_rejects_the_whole_batch(client, db, patient, case, auth_headers):
    res = _upload(
        client,
        case.id,
        auth_headers(patient),
        [("ecg.pdf", PDF_BYTES, "application/pdf"), ("notes.docx", b"PK\x03\x04", "application/msword")],
    )
    assert res.status_code == 415
    assert "notes.docx" in res.json()["detail"]
    assert db.query(MedicalDocument).count() == 0


def test_oversized_file(client, db, patient, case, auth_headers, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_document_mb", 1)

    res = _upload(
        client,
        case.id,
        auth_headers(patient),
        [("scan.pdf", b"0" * (1024 * 1024 + 1), "application/pdf")],
    )
    assert res.status_code == 413
    assert "1MB" in res.json()["detail"]
    assert db.query(MedicalDocument).count() == 0


def test_dicom_by_extension(client, patient, case, auth_headers):
    res = _upload(client, case.id, auth_headers(patient), [("head.dcm", b"DICM", "application/octet-stream")])
    assert res.status_code == 201


def test_other_patients_cannot_touch_documents(client, make_user, patient, case, auth_headers):
    res = _upload(client, case.id, auth_headers(patient), [("ecg.pdf", PDF_BYTES, "application/pdf")])
    document_id = res.json()[0]["id"]

    stranger = auth_headers(make_user(AppRole.PATIENT))
    assert client.get(f"/api/v1/documents/{document_id}/download", headers=stranger).status_code == 404
    assert client.get(f"/api/v1/consultations/{case.id}/documents", headers=stranger).status_code == 404
    assert _upload(client, case.id, stranger, [("x.pdf", PDF_BYTES, "application/pdf")]).status_code == 404


def test_consultation_admin_can_read_documents(client, patient, consultation_admin, case, auth_headers):
    res = _upload(client, case.id, auth_headers(patient), [("ecg.pdf", PDF_BYTES, "application/pdf")])
    document_id = res.json()[0]["id"]

    res = client.get(f"/api/v1/documents/{document_id}/download", headers=auth_headers(consultation_admin))
    assert res.status_code == 200


def test_same_name_uploads_in_one_millisecond_keep_both_blobs(client, db, patient, case, auth_headers, monkeypatch):
    frozen = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)
    monkeypatch.setattr(document_service, "utc_now", lambda: frozen)
    second_pdf = b"%PDF-1.4\n% second report, different\n"

    res = _upload(
        client,
        case.id,
        auth_headers(patient),
        [("report.pdf", PDF_BYTES, "application/pdf"), ("report.pdf", second_pdf, "application/pdf")],
    )
    assert res.status_code == 201, res.text

    docs = db.query(MedicalDocument).filter(MedicalDocument.consultation_id == case.id).all()
    paths = [d.storage_path for d in docs]
    assert len(set(paths)) == 2
    assert {resolve_storage_path(p).read_bytes() for p in paths} == {PDF_BYTES, second_pdf}
