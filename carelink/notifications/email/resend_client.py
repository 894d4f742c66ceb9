# carelink/notifications/email/resend_client.py
import logging

import httpx

from carelink.core.config import get_settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


def send_via_resend(
    from_email: str,
    to_email: str,
    subject: str,
    html_body: str,
) -> None:
    """
    Send email via Resend API.
    """
    settings = get_settings()
    if not settings.resend_api_key:
        raise ValueError("RESEND_API_KEY is not configured")

    headers = {
        "Authorization": f"Bearer {settings.resend_api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "from": from_email,
        "to": [to_email],
        "subject": subject,
        "html": html_body,
    }

    try:
        response = httpx.post(RESEND_API_URL, json=payload, headers=headers, timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("[RESEND ERROR] Failed to send email: %s", exc)
        raise
