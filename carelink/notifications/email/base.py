# carelink/notifications/email/base.py
import logging
from typing import Optional

from carelink.core.config import get_settings

logger = logging.getLogger(__name__)


def send_email(
    to_email: str,
    subject: str,
    body: str,
    *,
    reason: Optional[str] = None,
    html: bool = False,
) -> None:
    """
    Unified email sending abstraction supporting SMTP and Resend.

    - If email_sandbox_mode is True:
        all emails are sent to EMAIL_TEST_RECIPIENT (if set).
    - Otherwise:
        uses EMAIL_BACKEND to choose between SMTP and Resend.

    Raises on delivery failure; callers decide whether that is fatal.
    """
    settings = get_settings()
    debug_reason = f" [{reason}]" if reason else ""

    actual_recipient = to_email
    if settings.email_sandbox_mode and settings.email_test_recipient:
        actual_recipient = str(settings.email_test_recipient)
        logger.info(
            "[EMAIL SANDBOX%s] Original: %s, Redirected to: %s, Subject: %r",
            debug_reason,
            to_email,
            actual_recipient,
            subject,
        )

    if settings.email_backend.lower() == "resend":
        from carelink.notifications.email.resend_client import send_via_resend

        send_via_resend(
            from_email=settings.email_from,
            to_email=actual_recipient,
            subject=subject,
            html_body=body if html else f"<pre>{body}</pre>",
        )
    else:
        from carelink.notifications.email.smtp_client import send_via_smtp

        send_via_smtp(
            from_email=settings.email_from,
            to_email=actual_recipient,
            subject=subject,
            body=body,
            html=html,
        )

    logger.info("[EMAIL SENT%s] To: %s, Subject: %r", debug_reason, actual_recipient, subject)
