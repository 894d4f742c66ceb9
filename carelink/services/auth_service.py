# carelink/services/auth_service.py
import logging
from contextlib import AbstractContextManager
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.config import get_settings
from carelink.core.database import session_scope
from carelink.core.events import AuthEventKind, AuthStateChanged, event_bus
from carelink.core.security import create_access_token, verify_password
from carelink.models.user import User
from carelink.schemas.auth import LoginRequest
from carelink.services.notification_service import send_notification_email
from carelink.services.user_role_service import get_user_role_set
from carelink.services.user_service import get_user_by_email, set_password
from carelink.utils.email_templates import render_password_reset_email
from carelink.utils.token_utils import create_password_reset_token, mark_token_used, verify_token

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    pass


class InvalidResetTokenError(Exception):
    pass


def authenticate_user(db: Session, login_data: LoginRequest) -> User:
    """
    Authenticate a user given email and password.
    """
    user = get_user_by_email(db, login_data.email)
    if not user:
        raise AuthenticationError("Invalid email or password")

    if not verify_password(login_data.password, user.hashed_password):
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthenticationError("Account is disabled")

    return user


def issue_access_token_for_user(db: Session, user: User) -> str:
    roles = get_user_role_set(db, user.id)
    return create_access_token(subject=str(user.id), roles=roles.as_list())


def request_password_reset(db: Session, email: str) -> User | None:
    """
    Create a reset token and email the link.

    Returns the user when one exists, None otherwise. Callers must not reveal
    which case happened.
    """
    settings = get_settings()
    user = get_user_by_email(db, email)
    if not user or not user.is_active:
        return None

    try:
        token = create_password_reset_token(
            db,
            user_id=user.id,
            email=user.email,
            expires_in_hours=settings.password_reset_expire_hours,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    reset_url = f"{settings.frontend_url.rstrip('/')}/reset-password?token={token}"
    subject, html = render_password_reset_email(reset_url, settings.password_reset_expire_hours)
    try:
        send_notification_email(
            db,
            to_email=user.email,
            subject=subject,
            body=html,
            triggered_by=user,
            reason="password_reset",
            html=True,
        )
    except Exception:
        logger.exception("Non-fatal: password reset email failed. user=%s", user.id)

    return user


def run_password_reset(
    email: str,
    session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
) -> None:
    """
    Background entry point for forgot-password. Never raises.

    Runs after the response is sent, so known and unknown emails answer in
    the same time.
    """
    try:
        with session_factory() as db:
            user = request_password_reset(db, email)
            user_id = user.id if user else None
    except Exception:
        logger.exception("Non-fatal: password reset could not be started")
        return

    if user_id is not None:
        event_bus.publish(AuthStateChanged(kind=AuthEventKind.PASSWORD_RECOVERY, user_id=user_id))


def reset_password(db: Session, *, token: str, new_password: str) -> User:
    reset = verify_token(db, token)
    if not reset:
        raise InvalidResetTokenError("Reset link is invalid or has expired")

    user = db.get(User, reset.user_id)
    if not user:
        raise InvalidResetTokenError("Reset link is invalid or has expired")

    try:
        set_password(db, user, new_password)
        mark_token_used(db, reset)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    return user
