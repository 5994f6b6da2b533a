"""
Database operations for tracking uploaded files.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from sheetbridge.db.models import FileUpload, UploadSource, UploadStatus
from sheetbridge.db.session import session_scope

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _to_dict(upload: FileUpload) -> Dict:
    return {
        "id": upload.id,
        "user_id": upload.user_id,
        "workspace_id": upload.workspace_id,
        "file_name": upload.file_name,
        "file_url": upload.file_url,
        "storage_path": upload.storage_path,
        "file_type": upload.file_type,
        "file_size": upload.file_size,
        "data_type": upload.data_type,
        "source": upload.source,
        "status": upload.status,
        "error_message": upload.error_message,
        "created_at": _isoformat(upload.created_at),
        "updated_at": _isoformat(upload.updated_at),
    }


def insert_upload_metadata(
    user_id: str,
    file_name: str,
    file_url: str,
    file_type: str,
    file_size: int,
    data_type: Optional[str] = None,
    workspace_id: Optional[str] = None,
    storage_path: Optional[str] = None,
    source: UploadSource = UploadSource.MANUAL_UPLOAD,
    status: UploadStatus = UploadStatus.UPLOADING,
) -> Dict:
    """Insert a new upload record and return it."""
    now = _utcnow()
    with session_scope() as session:
        upload = FileUpload(
            user_id=user_id,
            workspace_id=workspace_id,
            file_name=file_name,
            file_url=file_url,
            storage_path=storage_path,
            file_type=file_type,
            file_size=file_size,
            data_type=data_type,
            source=UploadSource(source).value,
            status=UploadStatus(status).value,
            created_at=now,
            updated_at=now,
        )
        session.add(upload)
        session.commit()
        session.refresh(upload)
        logger.info(f"Recorded upload {upload.id} ({file_name}) with status '{upload.status}'")
        return _to_dict(upload)


def update_upload_status(
    upload_id: str,
    status: UploadStatus,
    error_message: Optional[str] = None,
) -> bool:
    """Set the status of an upload. Returns False if nothing was updated."""
    try:
        with session_scope() as session:
            upload = session.get(FileUpload, upload_id)
            if upload is None:
                logger.warning(f"Upload {upload_id} not found; status '{status}' not recorded")
                return False
            upload.status = UploadStatus(status).value
            upload.error_message = error_message
            upload.updated_at = _utcnow()
            session.commit()
            logger.info(f"Upload {upload_id} status -> {upload.status}")
            return True
    except SQLAlchemyError as e:
        logger.error(f"Error updating upload status for {upload_id}: {e}")
        return False


def get_upload_by_id(upload_id: str) -> Optional[Dict]:
    """Get a specific upload by ID."""
    with session_scope() as session:
        upload = session.get(FileUpload, upload_id)
        return _to_dict(upload) if upload else None


def list_uploads(
    user_id: str,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Dict]:
    """List a user's uploads, newest first. Degrades to [] on database errors."""
    try:
        with session_scope() as session:
            query = session.query(FileUpload).filter(FileUpload.user_id == user_id)
            if status:
                query = query.filter(FileUpload.status == status)
            uploads = (
                query.order_by(FileUpload.created_at.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [_to_dict(upload) for upload in uploads]
    except SQLAlchemyError as e:
        logger.error(f"Error fetching uploads for user {user_id}: {e}")
        return []
