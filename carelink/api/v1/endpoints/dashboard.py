# carelink/api/v1/endpoints/dashboard.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from carelink.api.v1.endpoints.consultations import build_consultation_fields
from carelink.core.auth_context import AuthContext, get_auth_context
from carelink.core.database import get_db
from carelink.dependencies.authz import require_surface
from carelink.schemas.consultation import ConsultationResponse
from carelink.schemas.user import NavigationItem, NavigationResponse
from carelink.services.dashboard_service import get_dashboard_stats
from carelink.services.permission_service import SURFACE_LABELS, AdminSurface

router = APIRouter()


class DashboardStatsResponse(BaseModel):
    status_counts: dict[str, int]
    total_consultations: int
    total_patients: int
    new_patients_last_7_days: int
    recent_consultations: list[ConsultationResponse]


@router.get("/navigation", response_model=NavigationResponse)
def get_navigation(ctx: AuthContext = Depends(get_auth_context)) -> NavigationResponse:
    """
    Admin surfaces the caller may open. Empty for patients.
    """
    items = []
    for surface in ctx.roles.accessible_surfaces():
        label, path = SURFACE_LABELS[surface]
        items.append(NavigationItem(surface=surface, label=label, path=path))

    return NavigationResponse(
        is_admin=ctx.is_admin,
        is_super_admin=ctx.is_super_admin,
        roles=sorted(ctx.roles.roles, key=lambda r: r.value),
        items=items,
    )


@router.get("/dashboard", response_model=DashboardStatsResponse)
def get_dashboard(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_surface(AdminSurface.DASHBOARD)),
) -> DashboardStatsResponse:
    stats = get_dashboard_stats(db)
    return DashboardStatsResponse(
        status_counts=stats["status_counts"],
        total_consultations=stats["total_consultations"],
        total_patients=stats["total_patients"],
        new_patients_last_7_days=stats["new_patients_last_7_days"],
        recent_consultations=[
            ConsultationResponse(**build_consultation_fields(c)) for c in stats["recent_consultations"]
        ],
    )
