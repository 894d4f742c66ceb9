# carelink/models/medical_document.py
import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carelink.models.base import Base
from carelink.models.consultation import Consultation
from carelink.models.user import User
from carelink.utils.datetime_utils import utc_now


class MedicalDocument(Base):
    """
    A file attached to a consultation. Immutable once uploaded.
    """

    __tablename__ = "medical_documents"

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Foreign Keys
    consultation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("consultations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uploaded_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Document Information
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    storage_path: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        doc="Path relative to the storage root: <patient_id>/<consultation_id>/<ts>-<name>",
    )

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    consultation: Mapped["Consultation"] = relationship("Consultation", backref="documents")
    uploaded_by: Mapped["User"] = relationship("User")
