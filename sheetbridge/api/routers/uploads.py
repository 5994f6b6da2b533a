"""
Upload status endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from sheetbridge.api.dependencies import get_current_user_id
from sheetbridge.api.schemas.ingestion import UploadInfo, UploadListResponse
from sheetbridge.db.models import UploadStatus
from sheetbridge.domain.uploads.uploaded_files import get_upload_by_id, list_uploads

router = APIRouter(tags=["uploads"])


@router.get("/uploads", response_model=UploadListResponse)
def list_uploads_endpoint(
    status: Optional[UploadStatus] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
):
    """
    List the caller's uploads, newest first.

    Parameters:
    - status: Filter by status ('uploading', 'processing', 'completed', 'failed')
    """
    uploads = list_uploads(
        user_id=user_id,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    return UploadListResponse(
        uploads=[UploadInfo(**upload) for upload in uploads],
        limit=limit,
        offset=offset,
    )


@router.get("/uploads/{upload_id}", response_model=UploadInfo)
def get_upload_endpoint(upload_id: str, user_id: str = Depends(get_current_user_id)):
    upload = get_upload_by_id(upload_id)
    if not upload or upload["user_id"] != user_id:
        raise HTTPException(status_code=404, detail="Upload not found")
    return UploadInfo(**upload)
