# carelink/api/v1/endpoints/profiles.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.auth_context import AuthContext, get_auth_context
from carelink.core.database import get_db
from carelink.core.events import AuthEventKind, AuthStateChanged, event_bus
from carelink.schemas.user import ProfileResponse, ProfileUpdate
from carelink.services.user_service import get_or_create_profile, update_profile

router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
def read_my_profile(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ProfileResponse:
    try:
        profile = get_or_create_profile(db, ctx.user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load profile.",
        )
    return ProfileResponse.model_validate(profile)


@router.patch("/me", response_model=ProfileResponse)
def update_my_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ProfileResponse:
    try:
        profile = update_profile(db, ctx.user, payload)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile.",
        )

    event_bus.publish(AuthStateChanged(kind=AuthEventKind.USER_UPDATED, user_id=ctx.user.id))
    return ProfileResponse.model_validate(profile)
