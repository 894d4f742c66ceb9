# carelink/schemas/document.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class DocumentResponse(BaseModel):
    id: UUID
    consultation_id: UUID
    file_name: str
    mime_type: str | None = None
    file_size: int | None = None
    uploaded_by_id: UUID | None = None
    uploaded_at: datetime

    class Config:
        from_attributes = True
