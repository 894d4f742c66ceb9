# carelink/services/consultation_service.py
"""
Consultation lifecycle.

Any of the six statuses may be set at any time by an authorized admin; the
only precondition is on entering SCHEDULED (date + time + link together).
Every status-changing write goes through normalize_status_update(), which
also clears the schedule for every other status, so

    status == SCHEDULED  <=>  scheduled_date and meeting_link are set

holds no matter which client made the change. Concurrent updates are
last-write-wins.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any
from urllib.parse import urlparse
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from carelink.core.events import ChangeAction, ConsultationChanged, ConsultationScheduled
from carelink.models.consultation import Consultation, ConsultationStatus
from carelink.models.hospital import Hospital
from carelink.models.profile import Profile
from carelink.models.user import User
from carelink.schemas.consultation import ConsultationCreate, ConsultationStatusUpdate
from carelink.services.hospital_service import HospitalNotFoundError
from carelink.utils.datetime_utils import as_utc, combine_local_date_time, utc_now

logger = logging.getLogger(__name__)

STATUS_LABELS: dict[ConsultationStatus, str] = {
    ConsultationStatus.PENDING: "Pending",
    ConsultationStatus.UNDER_REVIEW: "Under Review",
    ConsultationStatus.APPROVED: "Approved",
    ConsultationStatus.SCHEDULED: "Scheduled",
    ConsultationStatus.COMPLETED: "Completed",
    ConsultationStatus.CANCELLED: "Cancelled",
}

STATUS_DESCRIPTIONS: dict[ConsultationStatus, str] = {
    ConsultationStatus.PENDING: "Your consultation request is awaiting review by our team.",
    ConsultationStatus.UNDER_REVIEW: "Our medical team is reviewing your case and documents.",
    ConsultationStatus.APPROVED: "Your request has been approved. We will schedule your consultation shortly.",
    ConsultationStatus.SCHEDULED: "Your video consultation has been scheduled.",
    ConsultationStatus.COMPLETED: "Your consultation has been completed.",
    ConsultationStatus.CANCELLED: "This consultation has been cancelled.",
}

# Profile fields a submission may carry
_PROFILE_FIELDS = ("full_name", "email", "phone", "country", "date_of_birth", "gender")


class ConsultationNotFoundError(Exception):
    pass


class SchedulingValidationError(Exception):
    pass


@dataclass(frozen=True)
class ScheduleFields:
    status: ConsultationStatus
    scheduled_date: datetime | None
    meeting_link: str | None


@dataclass
class StatusUpdateResult:
    consultation: Consultation
    events: list[Any] = field(default_factory=list)

    @property
    def notification_queued(self) -> bool:
        return any(isinstance(e, ConsultationScheduled) for e in self.events)


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_status_update(
    *,
    current_status: ConsultationStatus,
    current_scheduled_date: datetime | None,
    current_meeting_link: str | None,
    status: ConsultationStatus | None,
    scheduled_date: date | None,
    scheduled_time: time | None,
    meeting_link: str | None,
    tz_name: str = "UTC",
) -> ScheduleFields:
    """
    Resolve the (status, scheduled_date, meeting_link) triple to persist.

    Raises SchedulingValidationError, before anything is written, when
    SCHEDULED is requested without a date, a time and a non-empty http(s) link.
    """
    target = status or current_status
    scheduling_supplied = any(v is not None for v in (scheduled_date, scheduled_time, meeting_link))

    if target != ConsultationStatus.SCHEDULED:
        if scheduling_supplied:
            logger.debug("Discarding scheduling fields for status=%s", target.value)
        return ScheduleFields(target, None, None)

    if status is None and not scheduling_supplied:
        # notes-only edit of an already scheduled consultation
        return ScheduleFields(
            target,
            as_utc(current_scheduled_date) if current_scheduled_date else None,
            current_meeting_link,
        )

    link = (meeting_link or "").strip()
    missing = []
    if scheduled_date is None:
        missing.append("date")
    if scheduled_time is None:
        missing.append("time")
    if not link:
        missing.append("meeting link")
    if missing:
        raise SchedulingValidationError(
            "Scheduling a consultation requires a date, a time and a meeting link. "
            f"Missing: {', '.join(missing)}."
        )

    if not _is_http_url(link):
        raise SchedulingValidationError("Meeting link must be an http(s) URL.")

    scheduled_at = combine_local_date_time(scheduled_date, scheduled_time, tz_name)
    return ScheduleFields(ConsultationStatus.SCHEDULED, scheduled_at, link)


def normalize_admin_notes(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _schedule_changed(
    before: ScheduleFields,
    after: ScheduleFields,
) -> bool:
    if after.status != ConsultationStatus.SCHEDULED:
        return False
    if before.status != ConsultationStatus.SCHEDULED:
        return True
    return before.scheduled_date != after.scheduled_date or before.meeting_link != after.meeting_link


def _apply_profile_defaults(db: Session, patient: User, data: ConsultationCreate) -> None:
    values = {name: getattr(data, name) for name in _PROFILE_FIELDS if getattr(data, name) is not None}
    if not values:
        return

    profile = db.query(Profile).filter(Profile.user_id == patient.id).first()
    if profile is None:
        profile = Profile(user_id=patient.id, email=patient.email)
        db.add(profile)
    for name, value in values.items():
        setattr(profile, name, str(value) if name == "email" else value)


def create_consultation(db: Session, *, patient: User, data: ConsultationCreate) -> Consultation:
    """
    Patient submission. Starts PENDING with no schedule.
    """
    hospital = db.get(Hospital, data.hospital_id)
    if not hospital or not hospital.is_active:
        raise HospitalNotFoundError("Hospital not found")

    consultation = Consultation(
        patient_id=patient.id,
        hospital_id=hospital.id,
        specialist_name=data.specialist_name,
        specialty=data.specialty,
        condition_description=data.condition_description,
        medical_history=data.medical_history,
        current_medications=data.current_medications,
        urgency_level=data.urgency_level,
        preferred_date=data.preferred_date,
        status=ConsultationStatus.PENDING,
    )

    try:
        _apply_profile_defaults(db, patient, data)
        db.add(consultation)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(consultation)
    return consultation


def get_consultation(db: Session, consultation_id: UUID) -> Consultation:
    consultation = (
        db.query(Consultation)
        .options(
            joinedload(Consultation.hospital),
            joinedload(Consultation.patient).joinedload(User.profile),
        )
        .filter(Consultation.id == consultation_id)
        .first()
    )
    if not consultation:
        raise ConsultationNotFoundError("Consultation not found")
    return consultation


def get_consultation_for_viewer(
    db: Session,
    *,
    consultation_id: UUID,
    viewer_id: UUID,
    can_view_all: bool,
) -> Consultation:
    """
    Owner or consultation admin. Anyone else gets "not found".
    """
    consultation = get_consultation(db, consultation_id)
    if not can_view_all and consultation.patient_id != viewer_id:
        raise ConsultationNotFoundError("Consultation not found")
    return consultation


def list_consultations_for_patient(db: Session, *, patient_id: UUID) -> list[Consultation]:
    return (
        db.query(Consultation)
        .options(joinedload(Consultation.hospital))
        .filter(Consultation.patient_id == patient_id)
        .order_by(Consultation.created_at.desc())
        .all()
    )


def list_consultations_for_admin(
    db: Session,
    *,
    status: ConsultationStatus | None = None,
    search: str | None = None,
) -> list[Consultation]:
    query = (
        db.query(Consultation)
        .outerjoin(Profile, Profile.user_id == Consultation.patient_id)
        .options(
            joinedload(Consultation.hospital),
            joinedload(Consultation.patient).joinedload(User.profile),
        )
    )

    if status is not None:
        query = query.filter(Consultation.status == status)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Consultation.specialty).like(pattern),
                func.lower(Consultation.specialist_name).like(pattern),
                func.lower(Profile.full_name).like(pattern),
                func.lower(Profile.email).like(pattern),
            )
        )

    return query.order_by(Consultation.created_at.desc()).all()


def apply_status_update(
    db: Session,
    *,
    consultation_id: UUID,
    update: ConsultationStatusUpdate,
    actor_id: UUID | None = None,
    tz_name: str = "UTC",
) -> StatusUpdateResult:
    """
    The single admin write path for consultations.

    Returns the refreshed consultation plus the events to publish once the
    caller is done with the request. Nothing is published here.
    """
    consultation = get_consultation(db, consultation_id)

    before = ScheduleFields(
        consultation.status,
        as_utc(consultation.scheduled_date) if consultation.scheduled_date else None,
        consultation.meeting_link,
    )
    after = normalize_status_update(
        current_status=consultation.status,
        current_scheduled_date=consultation.scheduled_date,
        current_meeting_link=consultation.meeting_link,
        status=update.status,
        scheduled_date=update.scheduled_date,
        scheduled_time=update.scheduled_time,
        meeting_link=update.meeting_link,
        tz_name=tz_name,
    )

    try:
        consultation.status = after.status
        consultation.scheduled_date = after.scheduled_date
        consultation.meeting_link = after.meeting_link
        if "admin_notes" in update.model_fields_set:
            consultation.admin_notes = normalize_admin_notes(update.admin_notes)
        # bumped even when nothing else changed
        consultation.updated_at = utc_now()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    consultation = get_consultation(db, consultation_id)
    logger.info(
        "Consultation %s status %s -> %s by %s",
        consultation.id,
        before.status.value,
        after.status.value,
        actor_id,
    )

    events: list[Any] = [
        ConsultationChanged(
            action=ChangeAction.UPDATE,
            consultation_id=consultation.id,
            patient_id=consultation.patient_id,
        )
    ]
    if _schedule_changed(before, after):
        events.append(
            ConsultationScheduled(
                consultation_id=consultation.id,
                patient_id=consultation.patient_id,
                scheduled_date=after.scheduled_date,
                meeting_link=after.meeting_link,
                specialist_name=consultation.specialist_name,
                specialty=consultation.specialty,
                triggered_by_id=actor_id,
            )
        )
    return StatusUpdateResult(consultation=consultation, events=events)
