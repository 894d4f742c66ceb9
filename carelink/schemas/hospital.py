# carelink/schemas/hospital.py
from uuid import UUID

from pydantic import BaseModel


class HospitalResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    city: str | None = None
    country: str | None = None
    description: str | None = None
    image_url: str | None = None
    is_active: bool

    class Config:
        from_attributes = True
