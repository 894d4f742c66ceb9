# carelink/api/v1/endpoints/users.py
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.core.auth_context import AuthContext
from carelink.core.database import get_db
from carelink.core.events import RolesChanged, event_bus
from carelink.dependencies.authz import require_surface
from carelink.models.user import AppRole, User
from carelink.schemas.user import RoleGrantRequest, UserWithRolesResponse
from carelink.services.permission_service import AdminSurface
from carelink.services.user_role_service import (
    DuplicateRoleError,
    RoleNotHeldError,
    UserNotFoundError,
    grant_role,
    revoke_role,
)
from carelink.services.user_service import get_user, list_users_with_roles

router = APIRouter()

# USERS has no mapped roles: superadmin only
require_users = require_surface(AdminSurface.USERS)


def _build_user_response(user: User) -> UserWithRolesResponse:
    profile = user.profile
    return UserWithRolesResponse(
        id=user.id,
        email=user.email,
        full_name=profile.full_name if profile else None,
        phone=profile.phone if profile else None,
        country=profile.country if profile else None,
        roles=sorted((r.role for r in user.roles), key=lambda r: r.value),
        created_at=user.created_at,
    )


@router.get("/", response_model=list[UserWithRolesResponse])
def list_users(
    search: str | None = Query(None, max_length=100),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_users),
) -> list[UserWithRolesResponse]:
    return [_build_user_response(u) for u in list_users_with_roles(db, search=search)]


@router.post(
    "/{user_id}/roles",
    response_model=UserWithRolesResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_role(
    user_id: UUID,
    payload: RoleGrantRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_users),
) -> UserWithRolesResponse:
    try:
        grant_role(db, user_id=user_id, role=payload.role)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except DuplicateRoleError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except SQLAlchemyError:
        raise HTTPException(status_code=500, detail="Failed to add role.")

    event_bus.publish(
        RolesChanged(user_id=user_id, role=payload.role.value, granted=True, changed_by_id=ctx.user.id)
    )

    user = get_user(db, user_id)
    db.refresh(user)
    return _build_user_response(user)


@router.delete("/{user_id}/roles/{role}", status_code=status.HTTP_204_NO_CONTENT)
def remove_role(
    user_id: UUID,
    role: AppRole,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_users),
) -> Response:
    """
    Effective immediately: the user's next request is evaluated without it.
    """
    try:
        revoke_role(db, user_id=user_id, role=role)
    except RoleNotHeldError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except SQLAlchemyError:
        raise HTTPException(status_code=500, detail="Failed to remove role.")

    event_bus.publish(RolesChanged(user_id=user_id, role=role.value, granted=False, changed_by_id=ctx.user.id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
