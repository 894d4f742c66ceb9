# carelink/services/notification_service.py
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.config import get_settings
from carelink.models.notification import Notification, NotificationChannel, NotificationStatus
from carelink.models.user import User
from carelink.notifications.email.base import send_email

logger = logging.getLogger(__name__)


def _log_notification(
    db: Session,
    *,
    channel: NotificationChannel,
    recipient: str,
    subject: str | None,
    message: str,
    triggered_by_id=None,
    status: NotificationStatus,
    error_message: str | None = None,
    reason: Optional[str] = None,
) -> Optional[Notification]:
    """
    Persist a notification log row in its own commit.

    Only call this after the caller's own work is committed.
    """
    log_message = message or ""
    if len(log_message) > 2000:
        if log_message.strip().startswith("<!DOCTYPE") or log_message.strip().startswith("<html"):
            log_message = f"[HTML Email - {reason or 'email'}] Subject: {subject or 'N/A'}."
        else:
            log_message = log_message[:1997] + "..."

    try:
        notif = Notification(
            channel=channel,
            recipient=recipient,
            subject=subject,
            message=log_message,
            reason=reason,
            triggered_by_id=triggered_by_id,
            status=status,
            error_message=(error_message or "")[:1000] or None,
        )
        db.add(notif)
        db.commit()
        db.refresh(notif)
        return notif
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("[NOTIFICATION LOG ERROR] Failed to log notification: %s", e, exc_info=True)
        return None


def send_notification_email(
    db: Session,
    *,
    to_email: str,
    subject: str,
    body: str,
    triggered_by: Optional[User] = None,
    triggered_by_id=None,
    reason: Optional[str] = None,
    html: bool = False,
    check_patient_flag: bool = False,
) -> bool:
    """
    Send an email and log it. Logging must never break main flow.

    Returns True when the email was handed to the backend.
    """
    settings = get_settings()
    if triggered_by is not None:
        triggered_by_id = triggered_by.id

    if check_patient_flag and not settings.send_email_to_patients:
        logger.warning("Email to patient skipped (SEND_EMAIL_TO_PATIENTS=False): %s, Subject: %s", to_email, subject)
        _log_notification(
            db,
            channel=NotificationChannel.EMAIL,
            recipient=to_email,
            subject=subject,
            message=body,
            triggered_by_id=triggered_by_id,
            status=NotificationStatus.PENDING,
            error_message="Skipped: SEND_EMAIL_TO_PATIENTS=False",
            reason=reason,
        )
        return False

    try:
        send_email(to_email=to_email, subject=subject, body=body, reason=reason, html=html)
    except Exception as exc:
        logger.warning("Failed to send email to %s, Subject: %s, Error: %s", to_email, subject, exc, exc_info=True)
        _log_notification(
            db,
            channel=NotificationChannel.EMAIL,
            recipient=to_email,
            subject=subject,
            message=body,
            triggered_by_id=triggered_by_id,
            status=NotificationStatus.FAILED,
            error_message=str(exc),
            reason=reason,
        )
        return False

    _log_notification(
        db,
        channel=NotificationChannel.EMAIL,
        recipient=to_email,
        subject=subject,
        message=body,
        triggered_by_id=triggered_by_id,
        status=NotificationStatus.SENT,
        reason=reason,
    )
    return True
