# carelink/utils/token_utils.py
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid, text
from sqlalchemy.orm import Session

from carelink.models.base import Base
from carelink.utils.datetime_utils import as_utc, utc_now


class PasswordResetToken(Base):
    """
    Single-use password reset tokens.
    """

    __tablename__ = "password_reset_tokens"

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    token = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False)
    expires_at = Column(
        DateTime(timezone=True),
        nullable=False,
    )
    used_at = Column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )


def generate_token() -> str:
    """Generate a secure random URL-safe token."""
    return secrets.token_urlsafe(32)


def create_password_reset_token(
    db: Session,
    user_id: uuid.UUID,
    email: str,
    expires_in_hours: int = 1,
) -> str:
    """
    Create a password reset token for a user's email.
    Returns the token string.
    """
    token = generate_token()
    expires_at = utc_now() + timedelta(hours=expires_in_hours)

    reset = PasswordResetToken(
        user_id=user_id,
        token=token,
        email=email,
        expires_at=expires_at,
    )
    db.add(reset)
    db.flush()
    return token


def verify_token(db: Session, token: str, now: datetime | None = None) -> Optional[PasswordResetToken]:
    """
    Return the PasswordResetToken if valid.
    Returns None if token is invalid, expired, or already used.
    """
    reset = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
    if not reset:
        return None

    if reset.used_at is not None:
        return None

    if as_utc(reset.expires_at) < (now or utc_now()):
        return None

    return reset


def mark_token_used(db: Session, reset: PasswordResetToken) -> None:
    """Mark a reset token as used."""
    reset.used_at = utc_now()
    db.flush()
