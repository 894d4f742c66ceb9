from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from carelink.models.user import AppRole
from carelink.services.permission_service import AdminSurface


class ProfileResponse(BaseModel):
    id: UUID
    user_id: UUID
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    country: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=2, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    country: str | None = Field(default=None, max_length=100)
    date_of_birth: date | None = None
    gender: str | None = Field(default=None, max_length=20)

    @field_validator("full_name", "phone", "country", "gender", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class CurrentUserResponse(BaseModel):
    id: UUID
    email: str
    is_active: bool
    roles: list[AppRole]
    is_admin: bool
    is_super_admin: bool
    profile: ProfileResponse | None = None
    created_at: datetime


class UserWithRolesResponse(BaseModel):
    id: UUID
    email: str
    full_name: str | None = None
    phone: str | None = None
    country: str | None = None
    roles: list[AppRole]
    created_at: datetime


class RoleGrantRequest(BaseModel):
    role: AppRole


class NavigationItem(BaseModel):
    surface: AdminSurface
    label: str
    path: str


class NavigationResponse(BaseModel):
    is_admin: bool
    is_super_admin: bool
    roles: list[AppRole]
    items: list[NavigationItem]
