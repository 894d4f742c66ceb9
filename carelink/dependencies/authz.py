# carelink/dependencies/authz.py
from fastapi import Depends, HTTPException, status

from carelink.core.auth_context import AuthContext, get_auth_context
from carelink.services.permission_service import AdminSurface


def require_surface(surface: AdminSurface):
    """
    Dependency factory for admin-surface access.

    Usage:

    @router.get("/admin/consultations")
    def list_all(ctx: AuthContext = Depends(require_surface(AdminSurface.CONSULTATIONS))):
        ...

    Returns the AuthContext if the caller is a superadmin or holds one of the
    roles mapped to the surface.
    """

    def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not ctx.can_access(surface):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied.",
            )
        return ctx

    return dependency
