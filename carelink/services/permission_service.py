# carelink/services/permission_service.py
"""
Role-based access rules.

Pure evaluation over an already-fetched role set: nothing here touches the
database. Fetching lives in user_role_service.
"""

from enum import Enum as PyEnum
from typing import Iterable

from carelink.models.user import AppRole


class AdminSurface(str, PyEnum):
    DASHBOARD = "dashboard"
    HOSPITALS = "hospitals"
    CONSULTATIONS = "consultations"
    USERS = "users"
    VISA = "visa"
    ACCOMMODATIONS = "accommodations"


# Roles that count as "an administrator of any kind".
# HOSPITAL_ADMIN is intentionally absent.
ADMIN_ROLES: frozenset[AppRole] = frozenset(
    {
        AppRole.ADMIN,
        AppRole.SUPER_ADMIN,
        AppRole.CONSULTATION_ADMIN,
        AppRole.VISA_ADMIN,
        AppRole.ACCOMMODATION_ADMIN,
    }
)

# The single source of truth for admin surface access.
# SUPER_ADMIN passes every surface and is therefore not listed;
# an empty set means superadmin-only.
SURFACE_REQUIRED_ROLES: dict[AdminSurface, frozenset[AppRole]] = {
    AdminSurface.DASHBOARD: frozenset(
        {AppRole.ADMIN, AppRole.CONSULTATION_ADMIN, AppRole.VISA_ADMIN, AppRole.ACCOMMODATION_ADMIN}
    ),
    AdminSurface.HOSPITALS: frozenset({AppRole.ADMIN}),
    AdminSurface.CONSULTATIONS: frozenset({AppRole.ADMIN, AppRole.CONSULTATION_ADMIN}),
    AdminSurface.USERS: frozenset(),
    AdminSurface.VISA: frozenset({AppRole.ADMIN, AppRole.VISA_ADMIN}),
    AdminSurface.ACCOMMODATIONS: frozenset({AppRole.ADMIN, AppRole.ACCOMMODATION_ADMIN}),
}

SURFACE_LABELS: dict[AdminSurface, tuple[str, str]] = {
    AdminSurface.DASHBOARD: ("Dashboard", "/admin"),
    AdminSurface.HOSPITALS: ("Hospitals", "/admin/hospitals"),
    AdminSurface.CONSULTATIONS: ("Consultations", "/admin/consultations"),
    AdminSurface.USERS: ("Users", "/admin/users"),
    AdminSurface.VISA: ("Visa Requests", "/admin/visa"),
    AdminSurface.ACCOMMODATIONS: ("Accommodations", "/admin/accommodations"),
}


def required_roles(surface: AdminSurface) -> frozenset[AppRole]:
    return SURFACE_REQUIRED_ROLES.get(surface, frozenset())


class RoleSet:
    """
    Immutable set of role tags held by one identity.

    RoleSet.empty() is what callers get when roles could not be loaded:
    every check on it fails.
    """

    __slots__ = ("_roles",)

    def __init__(self, roles: Iterable[AppRole | str] = ()):
        self._roles = frozenset(AppRole(r) for r in roles)

    @classmethod
    def empty(cls) -> "RoleSet":
        return cls()

    @property
    def roles(self) -> frozenset[AppRole]:
        return self._roles

    @property
    def is_admin(self) -> bool:
        return bool(self._roles & ADMIN_ROLES)

    @property
    def is_super_admin(self) -> bool:
        return AppRole.SUPER_ADMIN in self._roles

    def has_role(self, role: AppRole | str) -> bool:
        return AppRole(role) in self._roles

    def can_access(self, surface: AdminSurface) -> bool:
        if self.is_super_admin:
            return True
        return bool(self._roles & required_roles(surface))

    def accessible_surfaces(self) -> list[AdminSurface]:
        return [surface for surface in AdminSurface if self.can_access(surface)]

    def as_list(self) -> list[str]:
        return sorted(role.value for role in self._roles)

    def __contains__(self, role: object) -> bool:
        try:
            return AppRole(role) in self._roles
        except ValueError:
            return False

    def __eq__(self, other: object) -> bool:
        return isinstance(other, RoleSet) and other._roles == self._roles

    def __hash__(self) -> int:
        return hash(self._roles)

    def __repr__(self) -> str:
        return f"RoleSet({self.as_list()!r})"
