# carelink/core/auth_context.py
from fastapi import Depends
from sqlalchemy.orm import Session

from carelink.api.v1.endpoints.auth import get_current_user
from carelink.core.database import get_db
from carelink.models.user import AppRole, User
from carelink.services.permission_service import AdminSurface, RoleSet
from carelink.services.user_role_service import get_user_role_set


class AuthContext:
    """
    The authenticated user plus their role set, built once per request and
    passed explicitly to whatever needs an authorization decision.

    - user:  current authenticated user
    - roles: RoleSet loaded for this request (empty if loading failed)
    """

    def __init__(self, user: User, roles: RoleSet):
        self.user = user
        self.roles = roles

    @property
    def user_id(self):
        return self.user.id

    @property
    def is_admin(self) -> bool:
        return self.roles.is_admin

    @property
    def is_super_admin(self) -> bool:
        return self.roles.is_super_admin

    def has_role(self, role: AppRole | str) -> bool:
        return self.roles.has_role(role)

    def can_access(self, surface: AdminSurface) -> bool:
        return self.roles.can_access(surface)


def get_auth_context(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AuthContext:
    """
    Roles are re-read on every request, so a grant or revoke takes effect
    on the caller's next request.
    """
    return AuthContext(user=current_user, roles=get_user_role_set(db, current_user.id))
