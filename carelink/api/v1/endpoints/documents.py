# carelink/api/v1/endpoints/documents.py
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from carelink.core.auth_context import AuthContext, get_auth_context
from carelink.core.database import get_db
from carelink.services.consultation_service import ConsultationNotFoundError, get_consultation_for_viewer
from carelink.services.document_service import DocumentNotFoundError, get_document
from carelink.services.permission_service import AdminSurface
from carelink.utils.file_storage import StoragePathError, resolve_storage_path

router = APIRouter()


@router.get("/{document_id}/download")
def download_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """
    Download a specific document.

    Access follows the consultation: owner or consultation admin.
    """
    try:
        doc = get_document(db, document_id=document_id)
        get_consultation_for_viewer(
            db,
            consultation_id=doc.consultation_id,
            viewer_id=ctx.user.id,
            can_view_all=ctx.can_access(AdminSurface.CONSULTATIONS),
        )
    except (DocumentNotFoundError, ConsultationNotFoundError):
        raise HTTPException(status_code=404, detail="Document not found")

    try:
        file_path = resolve_storage_path(doc.storage_path)
    except StoragePathError:
        raise HTTPException(status_code=404, detail="File not found on storage.")

    if not file_path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found on storage.",
        )

    return FileResponse(
        path=str(file_path),
        media_type=doc.mime_type or "application/octet-stream",
        filename=doc.file_name,
    )
