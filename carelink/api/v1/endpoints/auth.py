import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.background.tasks import enqueue_task
from carelink.core.config import get_settings
from carelink.core.database import get_db
from carelink.core.events import AuthEventKind, AuthStateChanged, event_bus
from carelink.core.security import decode_token
from carelink.models.user import User
from carelink.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from carelink.schemas.user import CurrentUserResponse, ProfileResponse
from carelink.services.auth_service import (
    AuthenticationError,
    InvalidResetTokenError,
    authenticate_user,
    issue_access_token_for_user,
    reset_password,
    run_password_reset,
)
from carelink.services.user_role_service import get_user_role_set
from carelink.services.user_service import EmailAlreadyRegisteredError, register_patient

router = APIRouter()
logger = logging.getLogger(__name__)

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_prefix}/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to retrieve the current user from a JWT bearer token.
    """
    return resolve_user_from_token(db, token)


def resolve_user_from_token(db: Session, token: str) -> User:
    try:
        payload = decode_token(token)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    try:
        user_uuid = UUID(str(user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.get(User, user_uuid)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def _build_current_user(db: Session, user: User) -> CurrentUserResponse:
    roles = get_user_role_set(db, user.id)
    return CurrentUserResponse(
        id=user.id,
        email=user.email,
        is_active=user.is_active,
        roles=sorted(roles.roles, key=lambda r: r.value),
        is_admin=roles.is_admin,
        is_super_admin=roles.is_super_admin,
        profile=ProfileResponse.model_validate(user.profile) if user.profile else None,
        created_at=user.created_at,
    )


@router.post("/register", response_model=CurrentUserResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
) -> CurrentUserResponse:
    """
    Patient sign-up: creates the account, its profile and the `patient` role.
    """
    try:
        user = register_patient(db, payload)
    except EmailAlreadyRegisteredError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create account.",
        )

    return _build_current_user(db, user)


@router.post("/login", response_model=TokenResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
) -> TokenResponse:
    """
    OAuth2-style login: `username` carries the email.
    """
    try:
        login_data = LoginRequest(email=form_data.username, password=form_data.password)
        user = authenticate_user(db, login_data)
    except (AuthenticationError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password" if isinstance(exc, ValueError) else str(exc),
        ) from exc

    token = issue_access_token_for_user(db, user)
    event_bus.publish(AuthStateChanged(kind=AuthEventKind.SIGNED_IN, user_id=user.id))
    return TokenResponse(access_token=token)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TokenResponse:
    token = issue_access_token_for_user(db, current_user)
    event_bus.publish(AuthStateChanged(kind=AuthEventKind.TOKEN_REFRESHED, user_id=current_user.id))
    return TokenResponse(access_token=token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(current_user: User = Depends(get_current_user)) -> Response:
    """
    Signing out tears down the user's open realtime listeners.

    Access tokens are stateless JWTs and are not revoked: the token stays
    valid until it expires, so a client holding it can reconnect to the feed
    (and is re-scoped from current roles). Clients must discard the token.
    """
    event_bus.publish(AuthStateChanged(kind=AuthEventKind.SIGNED_OUT, user_id=current_user.id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=CurrentUserResponse)
def read_current_user(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CurrentUserResponse:
    """
    Return the current authenticated user with roles and admin flags.
    """
    return _build_current_user(db, current_user)


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
) -> dict:
    """
    Always answers the same way, and at the same speed, so account existence
    is not revealed. The lookup and the email run after the response.
    """
    enqueue_task(background_tasks, run_password_reset, payload.email)
    return {"message": "If an account exists for this email, a reset link has been sent."}


@router.post("/reset-password")
def reset_password_endpoint(
    payload: ResetPasswordRequest,
    db: Session = Depends(get_db),
) -> dict:
    try:
        user = reset_password(db, token=payload.token, new_password=payload.password)
    except InvalidResetTokenError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset password.",
        )

    event_bus.publish(AuthStateChanged(kind=AuthEventKind.USER_UPDATED, user_id=user.id))
    return {"message": "Password updated successfully."}
