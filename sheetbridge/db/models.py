"""
ORM models for the rows this service owns: upload records and
per-user platform connections.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, DateTime, String, Text, UniqueConstraint

from sheetbridge.db.session import Base


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class UploadStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadSource(str, Enum):
    MANUAL_UPLOAD = "manual_upload"
    GOOGLE_SHEETS = "google_sheets"


class IntegrationStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    SYNCING = "syncing"


class FileUpload(Base):
    """A normalized file that was stored and handed to the processing webhook."""
    __tablename__ = "file_uploads"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(255), nullable=False, index=True)
    workspace_id = Column(String(255), nullable=True)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(1000), nullable=False)
    storage_path = Column(String(500), nullable=True)
    file_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    data_type = Column(String(50), nullable=True)
    source = Column(String(50), nullable=False, default=UploadSource.MANUAL_UPLOAD.value)
    status = Column(String(50), nullable=False, default=UploadStatus.UPLOADING.value, index=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Integration(Base):
    """Connection state of one platform for one user."""
    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("user_id", "platform", name="uq_integrations_user_platform"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(255), nullable=False, index=True)
    platform = Column(String(100), nullable=False)
    status = Column(String(50), nullable=False, default=IntegrationStatus.DISCONNECTED.value)
    connected_at = Column(DateTime(timezone=True), nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    error_state = Column(Text, nullable=True)
    permissions = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
