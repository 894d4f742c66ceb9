# carelink/services/consultation_notifier.py
"""
Emails the patient once a consultation becomes SCHEDULED.

Runs as a ConsultationScheduled subscriber, after the scheduling transaction
has committed and the HTTP response has gone out. It uses its own session
and never lets a failure escape: a lost email is a warning, not an error of
the scheduling action.
"""

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from carelink.core.config import get_settings
from carelink.core.database import session_scope
from carelink.core.events import ConsultationScheduled, EventBus, Subscription
from carelink.models.profile import Profile
from carelink.models.user import User
from carelink.services.notification_service import send_notification_email
from carelink.utils.datetime_utils import format_clock_time, format_long_date, to_display_tz
from carelink.utils.email_templates import render_consultation_scheduled_email

logger = logging.getLogger(__name__)

DEFAULT_PATIENT_NAME = "Patient"
DEFAULT_SPECIALIST_NAME = "Your Specialist"
DEFAULT_SPECIALTY = "Medical Consultation"


class NotificationPayloadError(ValueError):
    pass


@dataclass(frozen=True)
class ScheduledConsultationEmail:
    patient_email: str
    patient_name: str
    specialist_name: str
    specialty: str
    scheduled_date: datetime
    meeting_link: str


def build_scheduled_payload(
    *,
    patient_email: str | None,
    scheduled_date: datetime | None,
    meeting_link: str | None,
    patient_name: str | None = None,
    specialist_name: str | None = None,
    specialty: str | None = None,
) -> ScheduledConsultationEmail:
    """
    Email, timestamp and link are mandatory; names fall back to generic labels.
    """
    if not (patient_email or "").strip() or scheduled_date is None or not (meeting_link or "").strip():
        raise NotificationPayloadError("Missing required fields: patientEmail, scheduledDate, or meetingLink")

    return ScheduledConsultationEmail(
        patient_email=patient_email.strip(),
        patient_name=(patient_name or "").strip() or DEFAULT_PATIENT_NAME,
        specialist_name=(specialist_name or "").strip() or DEFAULT_SPECIALIST_NAME,
        specialty=(specialty or "").strip() or DEFAULT_SPECIALTY,
        scheduled_date=scheduled_date,
        meeting_link=meeting_link.strip(),
    )


def render_scheduled_email(payload: ScheduledConsultationEmail, tz_name: str = "UTC") -> tuple[str, str]:
    local = to_display_tz(payload.scheduled_date, tz_name)
    return render_consultation_scheduled_email(
        patient_name=payload.patient_name,
        specialist_name=payload.specialist_name,
        specialty=payload.specialty,
        date_text=format_long_date(local),
        time_text=format_clock_time(local),
        meeting_link=payload.meeting_link,
    )


def _payload_for_event(db: Session, event: ConsultationScheduled) -> ScheduledConsultationEmail:
    user = db.get(User, event.patient_id)
    profile = db.query(Profile).filter(Profile.user_id == event.patient_id).first()

    email = (profile.email if profile and profile.email else None) or (user.email if user else None)
    return build_scheduled_payload(
        patient_email=email,
        patient_name=profile.full_name if profile else None,
        specialist_name=event.specialist_name,
        specialty=event.specialty,
        scheduled_date=event.scheduled_date,
        meeting_link=event.meeting_link,
    )


def dispatch_consultation_scheduled(
    event: ConsultationScheduled,
    session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
) -> bool:
    """
    Returns True when the email was sent. Never raises.
    """
    settings = get_settings()
    try:
        with session_factory() as db:
            payload = _payload_for_event(db, event)
            subject, html = render_scheduled_email(payload, settings.display_timezone)
            sent = send_notification_email(
                db,
                to_email=payload.patient_email,
                subject=subject,
                body=html,
                triggered_by_id=event.triggered_by_id,
                reason="consultation_scheduled",
                html=True,
                check_patient_flag=True,
            )
    except NotificationPayloadError as exc:
        logger.warning("Scheduled-consultation email not sent. consultation=%s: %s", event.consultation_id, exc)
        return False
    except Exception:
        logger.warning(
            "Non-fatal: scheduled-consultation email failed. consultation=%s",
            event.consultation_id,
            exc_info=True,
        )
        return False

    if not sent:
        logger.warning("Scheduled-consultation email not delivered. consultation=%s", event.consultation_id)
    return sent


def register_consultation_notifier(bus: EventBus) -> Subscription:
    return bus.subscribe(ConsultationScheduled, dispatch_consultation_scheduled)
