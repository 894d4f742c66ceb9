# carelink/api/v1/endpoints/admin_consultations.py
import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.api.v1.endpoints.consultations import build_consultation_fields
from carelink.background.tasks import enqueue_task
from carelink.core.auth_context import AuthContext
from carelink.core.config import get_settings
from carelink.core.database import get_db
from carelink.core.events import event_bus
from carelink.dependencies.authz import require_surface
from carelink.models.consultation import Consultation, ConsultationStatus
from carelink.schemas.consultation import (
    AdminConsultationResponse,
    ConsultationStatusUpdate,
    PatientSummary,
)
from carelink.services.consultation_service import (
    ConsultationNotFoundError,
    SchedulingValidationError,
    apply_status_update,
    get_consultation,
    list_consultations_for_admin,
)
from carelink.services.permission_service import AdminSurface

router = APIRouter()
logger = logging.getLogger(__name__)

require_consultations = require_surface(AdminSurface.CONSULTATIONS)


def _build_admin_response(consultation: Consultation) -> AdminConsultationResponse:
    profile = consultation.patient.profile if consultation.patient else None
    patient = None
    if profile is not None:
        patient = PatientSummary(
            full_name=profile.full_name,
            email=profile.email,
            phone=profile.phone,
            country=profile.country,
            date_of_birth=profile.date_of_birth,
            gender=profile.gender,
        )
    return AdminConsultationResponse(**build_consultation_fields(consultation), patient=patient)


@router.get("/", response_model=list[AdminConsultationResponse])
def list_all_consultations(
    status_filter: ConsultationStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_consultations),
) -> list[AdminConsultationResponse]:
    """
    Every consultation, newest first, optionally filtered by status.
    """
    consultations = list_consultations_for_admin(db, status=status_filter, search=search)
    return [_build_admin_response(c) for c in consultations]


@router.get("/{consultation_id}", response_model=AdminConsultationResponse)
def get_consultation_detail(
    consultation_id: UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_consultations),
) -> AdminConsultationResponse:
    try:
        consultation = get_consultation(db, consultation_id)
    except ConsultationNotFoundError:
        raise HTTPException(status_code=404, detail="Consultation not found")
    return _build_admin_response(consultation)


@router.patch("/{consultation_id}", response_model=AdminConsultationResponse)
def update_consultation_status(
    consultation_id: UUID,
    payload: ConsultationStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_consultations),
) -> AdminConsultationResponse:
    """
    Set status, schedule and admin notes in one write.

    Moving to `scheduled` needs scheduled_date + scheduled_time + meeting_link;
    any other status clears the schedule. The patient email goes out after
    the response and cannot fail this request.
    """
    settings = get_settings()

    # 1) Validate + commit
    try:
        result = apply_status_update(
            db,
            consultation_id=consultation_id,
            update=payload,
            actor_id=ctx.user.id,
            tz_name=settings.schedule_timezone,
        )
    except ConsultationNotFoundError:
        raise HTTPException(status_code=404, detail="Consultation not found")
    except SchedulingValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SQLAlchemyError:
        raise HTTPException(status_code=500, detail="Failed to update consultation.")

    # 2) Publish after commit (best-effort, after the response)
    for event in result.events:
        enqueue_task(background_tasks, event_bus.publish, event)

    # 3) Build + return response
    return _build_admin_response(result.consultation)
