# carelink/services/document_service.py
from pathlib import PurePath
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.config import get_settings
from carelink.models.consultation import Consultation
from carelink.models.medical_document import MedicalDocument
from carelink.utils.datetime_utils import utc_now
from carelink.utils.file_storage import build_document_path, resolve_storage_path, save_bytes_to_storage

ALLOWED_DOCUMENT_TYPES = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/jpg",
        "image/png",
        "application/dicom",
    }
)
DICOM_SUFFIX = ".dcm"


class DocumentNotFoundError(Exception):
    pass


class DocumentRejectedError(Exception):
    """Base for upload rejections; `reason` is safe to show to the user."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class UnsupportedDocumentTypeError(DocumentRejectedError):
    pass


class DocumentTooLargeError(DocumentRejectedError):
    pass


def max_document_bytes() -> int:
    return get_settings().max_document_mb * 1024 * 1024


def validate_document(file_name: str | None, mime_type: str | None, size: int) -> None:
    """
    Type first, then size, so the user gets the specific reason.
    """
    name = (file_name or "").lower()
    if (mime_type or "").lower() not in ALLOWED_DOCUMENT_TYPES and not name.endswith(DICOM_SUFFIX):
        raise UnsupportedDocumentTypeError(
            f"{PurePath(file_name or 'file').name}: unsupported file type. "
            "Upload PDF, JPG, PNG or DICOM files."
        )
    if size > max_document_bytes():
        raise DocumentTooLargeError(
            f"{PurePath(file_name or 'file').name}: file is larger than {get_settings().max_document_mb}MB."
        )


async def read_upload_capped(upload: UploadFile) -> bytes:
    """
    Read an upload without buffering more than one byte past the size cap.

    The declared size (when the client sent one) is checked before reading.
    """
    validate_document(upload.filename, upload.content_type, upload.size or 0)
    data = await upload.read(max_document_bytes() + 1)
    validate_document(upload.filename, upload.content_type, len(data))
    return data


def create_document(
    db: Session,
    *,
    consultation: Consultation,
    uploaded_by_id: UUID | None,
    file_bytes: bytes,
    original_filename: str | None,
    mime_type: str | None,
) -> MedicalDocument:
    """
    Validate, store the blob under the sanctioned path and record it.
    """
    validate_document(original_filename, mime_type, len(file_bytes))

    storage_path = build_document_path(
        patient_id=str(consultation.patient_id),
        consultation_id=str(consultation.id),
        timestamp_ms=int(utc_now().timestamp() * 1000),
        original_filename=original_filename,
    )
    save_bytes_to_storage(file_bytes, storage_path)

    doc = MedicalDocument(
        consultation_id=consultation.id,
        uploaded_by_id=uploaded_by_id,
        file_name=PurePath(original_filename or "file").name,
        mime_type=mime_type,
        file_size=len(file_bytes),
        storage_path=storage_path,
    )

    try:
        db.add(doc)
        db.commit()
        db.refresh(doc)
    except SQLAlchemyError:
        db.rollback()
        resolve_storage_path(storage_path).unlink(missing_ok=True)
        raise

    return doc


def list_documents_for_consultation(db: Session, *, consultation_id: UUID) -> list[MedicalDocument]:
    return (
        db.query(MedicalDocument)
        .filter(MedicalDocument.consultation_id == consultation_id)
        .order_by(MedicalDocument.uploaded_at.desc())
        .all()
    )


def get_document(db: Session, *, document_id: UUID) -> MedicalDocument:
    doc = db.get(MedicalDocument, document_id)
    if not doc:
        raise DocumentNotFoundError("Document not found")
    return doc
