# carelink/schemas/consultation.py
from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from carelink.models.consultation import ConsultationStatus, UrgencyLevel
from carelink.services.join_window_service import JoinWindowState


class ConsultationCreate(BaseModel):
    hospital_id: UUID
    specialty: str = Field(min_length=1, max_length=100)
    specialist_name: str = Field(min_length=1, max_length=200)
    condition_description: str = Field(min_length=20, max_length=2000)
    medical_history: str | None = Field(default=None, max_length=2000)
    current_medications: str | None = Field(default=None, max_length=1000)
    urgency_level: UrgencyLevel = UrgencyLevel.NORMAL
    preferred_date: date | None = None

    # Contact details; when given they update the caller's profile
    full_name: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, min_length=10, max_length=20)
    country: str | None = Field(default=None, min_length=2, max_length=100)
    date_of_birth: date | None = None
    gender: str | None = Field(default=None, max_length=20)

    @field_validator(
        "specialty",
        "specialist_name",
        "condition_description",
        "full_name",
        "phone",
        "country",
        mode="before",
    )
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("medical_history", "current_medications", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ConsultationStatusUpdate(BaseModel):
    """
    Admin update. `status` omitted keeps the current status;
    `admin_notes` omitted keeps the current notes, "" clears them.
    """

    status: ConsultationStatus | None = None
    scheduled_date: date | None = None
    scheduled_time: time | None = None
    meeting_link: str | None = Field(default=None, max_length=500)
    admin_notes: str | None = Field(default=None, max_length=5000)


class ConsultationResponse(BaseModel):
    id: UUID
    patient_id: UUID
    hospital_id: UUID
    hospital_name: str | None = None
    specialist_name: str
    specialty: str
    condition_description: str
    medical_history: str | None = None
    current_medications: str | None = None
    urgency_level: UrgencyLevel
    preferred_date: date | None = None
    status: ConsultationStatus
    status_label: str
    status_description: str
    scheduled_date: datetime | None = None
    meeting_link: str | None = None
    admin_notes: str | None = None
    created_at: datetime
    updated_at: datetime


class PatientSummary(BaseModel):
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    country: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None


class AdminConsultationResponse(ConsultationResponse):
    # None when the patient has no profile ("unknown patient")
    patient: PatientSummary | None = None


class JoinWindowResponse(BaseModel):
    consultation_id: UUID
    state: JoinWindowState
    can_join: bool
    message: str
    detail: str
    scheduled_date: datetime | None = None
    opens_at: datetime | None = None
    closes_at: datetime | None = None
    meeting_link: str | None = None
