# carelink/notifications/email/smtp_client.py
import smtplib
from email.message import EmailMessage

from carelink.core.config import get_settings


def send_via_smtp(
    from_email: str,
    to_email: str,
    subject: str,
    body: str,
    html: bool = False,
) -> None:
    """
    Minimal SMTP client using Python's standard library.

    It respects:
        - settings.email_smtp_host
        - settings.email_smtp_port
        - settings.email_smtp_username
        - settings.email_smtp_password

    Connection and protocol errors propagate to the caller.
    """
    settings = get_settings()

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject

    if html:
        msg.set_content(body, subtype="html")
    else:
        msg.set_content(body)

    username = settings.email_smtp_username
    password = settings.email_smtp_password

    with smtplib.SMTP(settings.email_smtp_host, settings.email_smtp_port, timeout=10) as server:
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls()
            server.ehlo()

        if username and password:
            server.login(username, password)

        server.send_message(msg)
