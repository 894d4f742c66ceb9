# carelink/api/v1/router.py
from fastapi import APIRouter

from carelink.api.v1.endpoints import (
    admin_consultations,
    auth,
    consultations,
    dashboard,
    documents,
    hospitals,
    profiles,
    realtime,
    users,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
api_router.include_router(hospitals.router, prefix="/hospitals", tags=["hospitals"])
api_router.include_router(consultations.router, prefix="/consultations", tags=["consultations"])
api_router.include_router(documents.router, prefix="/documents", tags=["documents"])
api_router.include_router(dashboard.router, prefix="/admin", tags=["admin"])
api_router.include_router(admin_consultations.router, prefix="/admin/consultations", tags=["admin"])
api_router.include_router(users.router, prefix="/admin/users", tags=["admin"])
api_router.include_router(realtime.router, prefix="/realtime", tags=["realtime"])
