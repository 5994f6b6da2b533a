"""
Source adapters: turn an uploaded file or a published Google Sheet into a
single SourceFile the parser can read.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests

from sheetbridge.core.config import settings
from sheetbridge.core.errors import InvalidSheetUrlError, SheetNotAccessibleError
from sheetbridge.db.models import UploadSource
from sheetbridge.domain.ingestion.parser import FileFormat, detect_format, get_file_extension

logger = logging.getLogger(__name__)

GOOGLE_SHEETS_HOST_MARKER = "google.com/spreadsheets"
GOOGLE_SHEET_FILE_NAME = "imported_sheet.csv"

_SHEET_ID_PATTERN = re.compile(r"/d/([a-zA-Z0-9-_]+)")

_MIME_BY_EXTENSION = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
    "csv": "text/csv",
}


def guess_mime_type(file_name: str, content_type: Optional[str] = None) -> str:
    """Use the declared content type, otherwise infer one from the extension."""
    if content_type:
        return content_type
    return _MIME_BY_EXTENSION.get(get_file_extension(file_name), "application/octet-stream")


@dataclass(frozen=True)
class SourceFile:
    """Raw bytes of a spreadsheet plus what we know about where they came from."""
    content: bytes
    file_name: str
    content_type: str
    source: UploadSource = UploadSource.MANUAL_UPLOAD

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def file_format(self) -> FileFormat:
        return detect_format(self.file_name, self.content_type)


def from_upload(content: bytes, file_name: str, content_type: Optional[str] = None) -> SourceFile:
    """Wrap bytes selected or dropped by the user."""
    return SourceFile(
        content=content,
        file_name=file_name,
        content_type=guess_mime_type(file_name, content_type),
        source=UploadSource.MANUAL_UPLOAD,
    )


def extract_sheet_id(sheet_url: str) -> str:
    """
    Pull the sheet id out of a Google Sheets URL.

    Raises:
        InvalidSheetUrlError: If the URL is not a Google Sheets URL or has no id.
    """
    if not sheet_url or GOOGLE_SHEETS_HOST_MARKER not in sheet_url:
        raise InvalidSheetUrlError("Please enter a valid Google Sheets URL")

    match = _SHEET_ID_PATTERN.search(sheet_url)
    if not match:
        raise InvalidSheetUrlError("Invalid Sheet URL")
    return match.group(1)


def build_export_url(sheet_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv"


def fetch_google_sheet(sheet_url: str) -> SourceFile:
    """
    Download the CSV export of a sheet shared with "anyone with the link".

    Raises:
        InvalidSheetUrlError: If the URL cannot be turned into an export URL.
        SheetNotAccessibleError: If the export request fails or returns non-2xx.
    """
    sheet_id = extract_sheet_id(sheet_url)
    export_url = build_export_url(sheet_id)
    logger.info(f"Fetching Google Sheet export for sheet {sheet_id}")

    try:
        response = requests.get(export_url, timeout=settings.google_sheets_timeout_seconds)
    except requests.RequestException as e:
        logger.error(f"Google Sheet fetch failed for {sheet_id}: {e}")
        raise SheetNotAccessibleError(
            "Could not fetch Google Sheet. Ensure it is visible to 'Anyone with the link'."
        ) from e

    if not response.ok:
        logger.warning(f"Google Sheet export for {sheet_id} returned {response.status_code}")
        raise SheetNotAccessibleError(
            "Could not access sheet. Make sure it is shared with 'Anyone with the link' "
            "or 'Published to Web'."
        )

    return SourceFile(
        content=response.content,
        file_name=GOOGLE_SHEET_FILE_NAME,
        content_type="text/csv",
        source=UploadSource.GOOGLE_SHEETS,
    )
