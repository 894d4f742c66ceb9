# carelink/models/consultation.py
import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carelink.models.base import Base, enum_values
from carelink.models.hospital import Hospital
from carelink.models.user import User
from carelink.utils.datetime_utils import utc_now


class ConsultationStatus(str, PyEnum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class UrgencyLevel(str, PyEnum):
    NORMAL = "normal"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class Consultation(Base):
    """
    A patient's request for a specialist video consultation.

    Created by the patient (status starts PENDING) and mutated only by
    administrators afterwards. Never deleted; CANCELLED is terminal.
    """

    __tablename__ = "consultations"
    __table_args__ = (
        CheckConstraint(
            "(status = 'scheduled' AND scheduled_date IS NOT NULL AND meeting_link IS NOT NULL)"
            " OR (status <> 'scheduled' AND scheduled_date IS NULL AND meeting_link IS NULL)",
            name="ck_consultations_schedule_matches_status",
        ),
    )

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Foreign Keys
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    hospital_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("hospitals.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Requested specialist (free text, not normalized)
    specialist_name: Mapped[str] = mapped_column(String(200), nullable=False)
    specialty: Mapped[str] = mapped_column(String(100), nullable=False)

    # Medical context
    condition_description: Mapped[str] = mapped_column(Text, nullable=False)
    medical_history: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_medications: Mapped[str | None] = mapped_column(Text, nullable=True)
    urgency_level: Mapped[UrgencyLevel] = mapped_column(
        Enum(UrgencyLevel, name="urgency_level_enum", values_callable=enum_values),
        nullable=False,
        default=UrgencyLevel.NORMAL,
        server_default=text("'normal'"),
    )
    preferred_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        doc="Patient's wish, advisory only.",
    )

    # Lifecycle
    status: Mapped[ConsultationStatus] = mapped_column(
        Enum(ConsultationStatus, name="consultation_status_enum", values_callable=enum_values),
        nullable=False,
        default=ConsultationStatus.PENDING,
        server_default=text("'pending'"),
        index=True,
    )
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Visible to the owning patient once set.",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utc_now,
    )

    patient: Mapped["User"] = relationship("User")
    hospital: Mapped["Hospital"] = relationship("Hospital")
