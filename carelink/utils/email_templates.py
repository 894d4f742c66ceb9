# carelink/utils/email_templates.py
from datetime import datetime
from html import escape
from typing import Optional

APP_NAME = "Afaya Care Link"


def render_email_template(
    title: str,
    body_html: str,
    cta_text: Optional[str] = None,
    cta_url: Optional[str] = None,
) -> str:
    """
    Render a unified HTML email template with header, body, CTA button, and footer.
    """
    cta_section = ""
    if cta_text and cta_url:
        cta_section = f"""
        <div style="text-align: center; margin: 30px 0;">
            <a href="{escape(cta_url, quote=True)}" style="
                display: inline-block;
                padding: 14px 32px;
                background-color: #0d9488;
                color: #ffffff;
                text-decoration: none;
                border-radius: 6px;
                font-weight: 600;
                font-size: 16px;
            ">{cta_text}</a>
        </div>
        """

    html = f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>{title}</title>
    </head>
    <body style="
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
        line-height: 1.6;
        color: #333333;
        background-color: #f4f7f6;
        margin: 0;
        padding: 0;
    ">
        <table role="presentation" style="width: 100%; max-width: 600px; margin: 0 auto; background-color: #ffffff;">
            <tr>
                <td style="padding: 40px 30px; background-color: #0d9488; text-align: center;">
                    <h1 style="color: #ffffff; margin: 0; font-size: 24px; font-weight: 600;">{APP_NAME}</h1>
                </td>
            </tr>
            <tr>
                <td style="padding: 40px 30px;">
                    <h2 style="color: #0d9488; margin: 0 0 20px 0; font-size: 20px; font-weight: 600;">{title}</h2>
                    <div style="color: #555555; font-size: 16px;">
                        {body_html}
                    </div>
                    {cta_section}
                </td>
            </tr>
            <tr>
                <td style="
                    padding: 30px;
                    background-color: #f4f7f6;
                    text-align: center;
                    font-size: 12px;
                    color: #888888;
                    border-top: 1px solid #e0e0e0;
                ">
                    <p style="margin: 0 0 10px 0;">
                        &copy; {{{{year}}}} {APP_NAME}. All rights reserved.
                    </p>
                    <p style="margin: 0;">
                        This is an automated message. Please do not reply to this email.
                    </p>
                </td>
            </tr>
        </table>
    </body>
    </html>
    """
    return html.replace("{{year}}", str(datetime.now().year))


def render_consultation_scheduled_email(
    *,
    patient_name: str,
    specialist_name: str,
    specialty: str,
    date_text: str,
    time_text: str,
    meeting_link: str,
) -> tuple[str, str]:
    """
    Render the "consultation scheduled" confirmation.
    Returns (subject, html_body).
    """
    subject = "Your Medical Consultation Has Been Scheduled"
    body_html = f"""
    <p>Dear {escape(patient_name)},</p>
    <p>Great news! Your video consultation has been scheduled.</p>
    <ul>
        <li><strong>Specialist:</strong> {escape(specialist_name)}</li>
        <li><strong>Specialty:</strong> {escape(specialty)}</li>
        <li><strong>Date:</strong> {date_text}</li>
        <li><strong>Time:</strong> {time_text}</li>
    </ul>
    <p><strong>Note:</strong> The meeting link will become active 15 minutes before your scheduled time.
    Please make sure you have a stable internet connection and a quiet, private space.</p>
    <p>If the button does not work, copy this link into your browser:<br>
    <a href="{escape(meeting_link, quote=True)}">{escape(meeting_link)}</a></p>
    """
    html = render_email_template(
        title="Consultation Confirmed",
        body_html=body_html,
        cta_text="Join Video Consultation",
        cta_url=meeting_link,
    )
    return subject, html


def render_password_reset_email(reset_url: str, expires_in_hours: int) -> tuple[str, str]:
    """
    Render password reset email.
    Returns (subject, html_body).
    """
    subject = f"Reset your {APP_NAME} password"
    body_html = f"""
    <p>We received a request to reset the password for your account.</p>
    <p>Click the button below to choose a new password. This link will expire in {expires_in_hours} hour(s).</p>
    <p>If you did not request a password reset, you can safely ignore this email.</p>
    """
    html = render_email_template(
        title="Password Reset",
        body_html=body_html,
        cta_text="Reset Password",
        cta_url=reset_url,
    )
    return subject, html
