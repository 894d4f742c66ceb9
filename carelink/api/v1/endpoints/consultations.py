# carelink/api/v1/endpoints/consultations.py

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.background.tasks import enqueue_task
from carelink.core.auth_context import AuthContext, get_auth_context
from carelink.core.config import get_settings
from carelink.core.database import get_db
from carelink.core.events import ChangeAction, ConsultationChanged, event_bus
from carelink.models.consultation import Consultation, ConsultationStatus
from carelink.schemas.consultation import (
    ConsultationCreate,
    ConsultationResponse,
    JoinWindowResponse,
)
from carelink.schemas.document import DocumentResponse
from carelink.services.consultation_service import (
    STATUS_DESCRIPTIONS,
    STATUS_LABELS,
    ConsultationNotFoundError,
    create_consultation,
    get_consultation_for_viewer,
    list_consultations_for_patient,
)
from carelink.services.document_service import (
    DocumentTooLargeError,
    UnsupportedDocumentTypeError,
    create_document,
    list_documents_for_consultation,
    read_upload_capped,
)
from carelink.services.hospital_service import HospitalNotFoundError
from carelink.services.join_window_service import evaluate_join_window, join_window_message
from carelink.services.permission_service import AdminSurface
from carelink.utils.datetime_utils import utc_now

router = APIRouter()
logger = logging.getLogger(__name__)


# -------------------------
# Helpers
# -------------------------
def build_consultation_fields(consultation: Consultation) -> dict:
    return {
        "id": consultation.id,
        "patient_id": consultation.patient_id,
        "hospital_id": consultation.hospital_id,
        "hospital_name": consultation.hospital.name if consultation.hospital else None,
        "specialist_name": consultation.specialist_name,
        "specialty": consultation.specialty,
        "condition_description": consultation.condition_description,
        "medical_history": consultation.medical_history,
        "current_medications": consultation.current_medications,
        "urgency_level": consultation.urgency_level,
        "preferred_date": consultation.preferred_date,
        "status": consultation.status,
        "status_label": STATUS_LABELS[consultation.status],
        "status_description": STATUS_DESCRIPTIONS[consultation.status],
        "scheduled_date": consultation.scheduled_date,
        "meeting_link": consultation.meeting_link,
        "admin_notes": consultation.admin_notes,
        "created_at": consultation.created_at,
        "updated_at": consultation.updated_at,
    }


def _load_for_viewer(db: Session, consultation_id: UUID, ctx: AuthContext) -> Consultation:
    try:
        return get_consultation_for_viewer(
            db,
            consultation_id=consultation_id,
            viewer_id=ctx.user.id,
            can_view_all=ctx.can_access(AdminSurface.CONSULTATIONS),
        )
    except ConsultationNotFoundError:
        raise HTTPException(status_code=404, detail="Consultation not found")


# -------------------------
# Patient-facing endpoints
# -------------------------
@router.post("/", response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
def submit_consultation(
    payload: ConsultationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ConsultationResponse:
    """
    Submit a consultation request for the current user. Starts as `pending`.
    """
    try:
        consultation = create_consultation(db, patient=ctx.user, data=payload)
    except HospitalNotFoundError:
        raise HTTPException(status_code=404, detail="Hospital not found")
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit consultation.",
        )

    enqueue_task(
        background_tasks,
        event_bus.publish,
        ConsultationChanged(
            action=ChangeAction.INSERT,
            consultation_id=consultation.id,
            patient_id=consultation.patient_id,
        ),
    )
    return ConsultationResponse(**build_consultation_fields(consultation))


@router.get("/mine", response_model=list[ConsultationResponse])
def list_my_consultations(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[ConsultationResponse]:
    """
    The caller's own consultations, newest first.
    """
    consultations = list_consultations_for_patient(db, patient_id=ctx.user.id)
    return [ConsultationResponse(**build_consultation_fields(c)) for c in consultations]


@router.get("/{consultation_id}", response_model=ConsultationResponse)
def get_consultation(
    consultation_id: UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ConsultationResponse:
    consultation = _load_for_viewer(db, consultation_id, ctx)
    return ConsultationResponse(**build_consultation_fields(consultation))


@router.get("/{consultation_id}/join-window", response_model=JoinWindowResponse)
def get_join_window(
    consultation_id: UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JoinWindowResponse:
    """
    Whether the meeting link may be used right now. Clients poll this.
    """
    settings = get_settings()
    consultation = _load_for_viewer(db, consultation_id, ctx)

    scheduled_at = consultation.scheduled_date if consultation.status == ConsultationStatus.SCHEDULED else None
    window = evaluate_join_window(scheduled_at, utc_now())

    return JoinWindowResponse(
        consultation_id=consultation.id,
        state=window.state,
        can_join=window.can_join,
        message=join_window_message(window, settings.display_timezone),
        detail=join_window_message(window, settings.display_timezone, long_form=True),
        scheduled_date=scheduled_at,
        opens_at=window.opens_at,
        closes_at=window.closes_at,
        meeting_link=consultation.meeting_link if window.can_join else None,
    )


# -------------------------
# Documents
# -------------------------
@router.post(
    "/{consultation_id}/documents",
    response_model=list[DocumentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def upload_documents(
    consultation_id: UUID,
    files: list[UploadFile] = File(...),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[DocumentResponse]:
    """
    Attach one or more files (PDF, JPG, PNG, DICOM) to a consultation.

    Every file is checked before any is stored.
    """
    consultation = _load_for_viewer(db, consultation_id, ctx)

    uploads = []
    for upload in files:
        try:
            data = await read_upload_capped(upload)
        except UnsupportedDocumentTypeError as exc:
            raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=exc.reason)
        except DocumentTooLargeError as exc:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=exc.reason)
        uploads.append((upload, data))

    documents = []
    for upload, data in uploads:
        try:
            doc = create_document(
                db,
                consultation=consultation,
                uploaded_by_id=ctx.user.id,
                file_bytes=data,
                original_filename=upload.filename,
                mime_type=upload.content_type,
            )
        except SQLAlchemyError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to save document.",
            )
        documents.append(DocumentResponse.model_validate(doc))

    return documents


@router.get("/{consultation_id}/documents", response_model=list[DocumentResponse])
def list_consultation_documents(
    consultation_id: UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[DocumentResponse]:
    consultation = _load_for_viewer(db, consultation_id, ctx)
    docs = list_documents_for_consultation(db, consultation_id=consultation.id)
    return [DocumentResponse.model_validate(d) for d in docs]
