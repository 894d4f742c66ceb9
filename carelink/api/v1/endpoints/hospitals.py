# carelink/api/v1/endpoints/hospitals.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from carelink.core.database import get_db
from carelink.schemas.hospital import HospitalResponse
from carelink.services.hospital_service import (
    HospitalNotFoundError,
    get_active_hospital_by_slug,
    list_active_hospitals,
)

router = APIRouter()


@router.get("/", response_model=list[HospitalResponse])
def list_hospitals(
    city: str | None = Query(None, max_length=100),
    search: str | None = Query(None, max_length=100),
    db: Session = Depends(get_db),
) -> list[HospitalResponse]:
    """
    Public catalog of active partner hospitals.
    """
    return [HospitalResponse.model_validate(h) for h in list_active_hospitals(db, city=city, search=search)]


@router.get("/{slug}", response_model=HospitalResponse)
def get_hospital(slug: str, db: Session = Depends(get_db)) -> HospitalResponse:
    try:
        hospital = get_active_hospital_by_slug(db, slug)
    except HospitalNotFoundError:
        raise HTTPException(status_code=404, detail="Hospital not found")
    return HospitalResponse.model_validate(hospital)
