"""
Delivery of a normalized dataset: store it, record it, and notify the
processing webhook.

Everything up to the metadata insert happens before ``deliver`` returns.
The webhook dispatch runs in the background and only moves the upload's
status to ``completed`` or ``failed``.
"""
import io
import logging
import re
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from sheetbridge.core.config import settings
from sheetbridge.core.errors import FileValidationError, ValidationError
from sheetbridge.db.models import UploadStatus
from sheetbridge.domain.delivery.webhook import WebhookPayload, dispatch_in_background, utc_timestamp
from sheetbridge.domain.ingestion.normalizer import NormalizedRecord
from sheetbridge.domain.ingestion.parser import get_file_extension
from sheetbridge.domain.ingestion.schemas import DataCategory, TargetSchema, get_target_schema
from sheetbridge.domain.ingestion.sources import SourceFile
from sheetbridge.domain.uploads.uploaded_files import insert_upload_metadata, update_upload_status
from sheetbridge.integrations.storage import (
    StorageError,
    get_public_url,
    upload_file as upload_file_to_storage,
)

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPE = "text/csv"
UNKNOWN_FILE_ID = "unknown_id"

ALLOWED_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "text/csv",
    "application/csv",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


@dataclass
class DeliveryResult:
    success: bool
    upload_id: Optional[str] = None
    file_url: Optional[str] = None
    error: Optional[str] = None
    # Resolves with the final UploadStatus once the webhook dispatch settles.
    dispatch: Optional["Future[UploadStatus]"] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "upload_id": self.upload_id,
            "file_url": self.file_url,
            "error": self.error,
        }


def max_upload_bytes() -> int:
    return settings.upload_max_file_size_mb * 1024 * 1024


def validate_file(source: SourceFile) -> None:
    """
    Check the size and type of the original source file.

    Raises:
        FileValidationError: If the file is too large or has a disallowed extension.
    """
    if source.size > max_upload_bytes():
        raise FileValidationError(f"File size exceeds {settings.upload_max_file_size_mb}MB limit")

    allowed = [ext.lower() for ext in settings.upload_allowed_extensions]
    if get_file_extension(source.file_name) not in allowed:
        raise FileValidationError(f"Invalid file type. Allowed: {', '.join(allowed)}")

    if source.content_type and source.content_type not in ALLOWED_MIME_TYPES:
        # A valid extension wins over an unexpected MIME type
        logger.warning(f"MIME type not in allowed list, but extension is valid: {source.content_type}")


def validate_user_id(user_id: Optional[str]) -> str:
    if not user_id or not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("User ID is missing or invalid")
    return user_id


def serialize_records(
    records: Sequence[NormalizedRecord],
    schema: Optional[TargetSchema] = None,
    columns: Optional[Sequence[str]] = None,
) -> bytes:
    """
    Write records as CSV bytes.

    ``columns`` always appear in the header row, so a source without data rows
    still yields its column line. Columns follow the schema order
    when a schema is given (otherwise first-appearance order); without
    ``columns`` only fields present in at least one record are written.
    """
    present: List[str] = list(columns or [])
    for record in records:
        for key in record:
            if key not in present:
                present.append(key)

    if schema is not None:
        ordered = [f.key.value for f in schema.fields if f.key.value in present]
        columns = ordered + [key for key in present if key not in ordered]
    else:
        columns = present

    df = pd.DataFrame(list(records), columns=columns, dtype=object)
    buffer = io.StringIO()
    df.to_csv(buffer, index=False, lineterminator="\n")
    return buffer.getvalue().encode("utf-8")


def sanitize_file_name(file_name: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", file_name)


def build_storage_path(user_id: str, file_name: str, timestamp_ms: Optional[int] = None) -> str:
    """``{user_id}/{timestamp}_{sanitized_filename}``"""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{user_id}/{timestamp_ms}_{sanitize_file_name(file_name)}"


def upload_to_storage(content: bytes, user_id: str, file_name: str, content_type: str) -> Optional[Dict[str, str]]:
    """Store the blob and return its path and public URL, or None on failure."""
    file_path = build_storage_path(user_id, file_name)
    try:
        stored = upload_file_to_storage(
            file_content=content,
            file_path=file_path,
            content_type=content_type,
        )
    except StorageError as e:
        logger.error(f"Error uploading {file_name} to storage: {e}")
        return None

    return {"path": stored["file_path"], "url": get_public_url(stored["file_path"])}


def _record_dispatch_result(upload_id: str):
    def _on_resolved(status: UploadStatus, error_message: Optional[str]) -> bool:
        return update_upload_status(upload_id, status, error_message)
    return _on_resolved


def deliver(
    records: Sequence[NormalizedRecord],
    user_id: str,
    data_category: DataCategory,
    source: SourceFile,
    workspace_id: Optional[str] = None,
    columns: Optional[Sequence[str]] = None,
) -> DeliveryResult:
    """
    Store a normalized dataset and hand it to the processing webhook.

    Returns ``success=True`` once the file is stored and its metadata row is
    written; the webhook outcome only shows up later in the upload status.
    """
    category = DataCategory(data_category)
    schema = get_target_schema(category)

    blob = serialize_records(records, schema, columns)
    clean_name = f"clean_{category.value}_{int(time.time() * 1000)}.csv"

    try:
        validate_user_id(user_id)
        validate_file(source)
    except ValidationError as e:
        logger.info(f"Rejected delivery of {source.file_name}: {e}")
        return DeliveryResult(success=False, error=str(e))

    stored = upload_to_storage(blob, user_id, clean_name, CSV_CONTENT_TYPE)
    if stored is None:
        return DeliveryResult(success=False, error="Failed to upload file to storage")

    try:
        metadata = insert_upload_metadata(
            user_id=user_id,
            workspace_id=workspace_id,
            file_name=clean_name,
            file_url=stored["url"],
            storage_path=stored["path"],
            file_type=CSV_CONTENT_TYPE,
            file_size=len(blob),
            data_type=category.value,
            source=source.source,
            status=UploadStatus.PROCESSING,
        )
    except SQLAlchemyError as e:
        # The file is already stored; dispatch still goes out, just untracked.
        logger.error(f"Error saving upload metadata for {stored['path']}: {e}")
        metadata = None

    payload = WebhookPayload(
        user_id=user_id,
        workspace_id=workspace_id,
        file_id=metadata["id"] if metadata else UNKNOWN_FILE_ID,
        data_type=category.value,
        file_url=stored["url"],
        file_type=CSV_CONTENT_TYPE,
        file_name=clean_name,
        file_size=len(blob),
        timestamp=utc_timestamp(),
    )
    on_resolved = _record_dispatch_result(metadata["id"]) if metadata else None
    future = dispatch_in_background(payload, on_resolved)

    logger.info(f"Delivered {len(records)} {category.value} records as {stored['path']}")
    return DeliveryResult(
        success=True,
        upload_id=metadata["id"] if metadata else None,
        file_url=stored["url"],
        dispatch=future,
    )
