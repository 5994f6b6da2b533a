"""
Spreadsheet ingestion endpoints: target schemas, mapping preview, submit.
"""
import json
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from sheetbridge.api.dependencies import get_current_user_id, get_workspace_id
from sheetbridge.api.schemas.ingestion import (
    DeliveryResponse,
    GoogleSheetPreviewRequest,
    MappingPreviewResponse,
    SchemaFieldInfo,
    TargetSchemaResponse,
)
from sheetbridge.core.config import settings
from sheetbridge.core.errors import SourceError, ValidationError
from sheetbridge.domain.delivery.service import max_upload_bytes
from sheetbridge.domain.ingestion.schemas import TARGET_SCHEMAS, DataCategory, TargetSchema
from sheetbridge.domain.ingestion.session import IngestionSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ingest"])


def _schema_response(schema: TargetSchema) -> TargetSchemaResponse:
    return TargetSchemaResponse(
        category=schema.category,
        fields=[
            SchemaFieldInfo(key=field.key.value, label=field.label, required=field.required)
            for field in schema.fields
        ],
    )


def _preview_response(session: IngestionSession) -> MappingPreviewResponse:
    return MappingPreviewResponse(
        data_type=session.category,
        file_name=session.source.file_name,
        headers=list(session.table.headers),
        row_count=session.table.row_count,
        sample_rows=session.table.sample(),
        suggested_mapping=session.mapping.as_dict(),
        ready=session.is_ready(),
        missing_fields=[field.label for field in session.missing_fields()],
    )


def _read_upload(file: UploadFile) -> bytes:
    # Sync handlers run in the threadpool; read the spooled file directly
    content = file.file.read()
    if len(content) > max_upload_bytes():
        raise HTTPException(
            status_code=413,
            detail=(
                f"{file.filename} is too large. "
                f"Maximum allowed upload size is {settings.upload_max_file_size_mb}MB."
            ),
        )
    return content


def _parse_mapping(raw_mapping: str) -> Dict[str, Optional[str]]:
    try:
        mapping = json.loads(raw_mapping)
    except json.JSONDecodeError:
        raise HTTPException(status_code=422, detail="mapping must be a JSON object")
    if not isinstance(mapping, dict):
        raise HTTPException(status_code=422, detail="mapping must be a JSON object")
    return mapping


@router.get("/schemas", response_model=list[TargetSchemaResponse])
async def list_target_schemas():
    """List the target schema of every data category."""
    return [_schema_response(schema) for schema in TARGET_SCHEMAS.values()]


@router.get("/schemas/{category}", response_model=TargetSchemaResponse)
async def get_target_schema_endpoint(category: DataCategory):
    return _schema_response(TARGET_SCHEMAS[category])


@router.post("/ingest/preview", response_model=MappingPreviewResponse)
def preview_file_endpoint(
    file: UploadFile = File(...),
    data_type: DataCategory = Form(...),
    user_id: str = Depends(get_current_user_id),
):
    """
    Parse an uploaded spreadsheet and suggest a column mapping.

    Parameters:
    - file: CSV, XLSX or XLS file
    - data_type: orders, inventory, expenses or customers

    Returns:
    - Headers, row count, a few sample rows and the suggested mapping
    """
    content = _read_upload(file)
    session = IngestionSession(user_id)
    session.select_category(data_type)
    try:
        session.load_file(content, file.filename, file.content_type)
    except SourceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _preview_response(session)


@router.post("/ingest/google-sheet/preview", response_model=MappingPreviewResponse)
def preview_google_sheet_endpoint(
    request: GoogleSheetPreviewRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Fetch a published Google Sheet as CSV and suggest a column mapping."""
    session = IngestionSession(user_id)
    session.select_category(request.data_type)
    try:
        session.load_google_sheet(request.sheet_url)
    except SourceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _preview_response(session)


@router.post("/ingest/submit", response_model=DeliveryResponse)
def submit_endpoint(
    data_type: DataCategory = Form(...),
    mapping: str = Form(...),
    file: Optional[UploadFile] = File(None),
    sheet_url: Optional[str] = Form(None),
    user_id: str = Depends(get_current_user_id),
    workspace_id: Optional[str] = Depends(get_workspace_id),
):
    """
    Normalize a source with a confirmed mapping and deliver it.

    Parameters:
    - data_type: orders, inventory, expenses or customers
    - mapping: JSON object of canonical field key -> source header
    - file or sheet_url: the same source that was previewed

    Returns:
    - success, upload_id and file_url once the file is stored; webhook
      delivery continues in the background
    """
    if (file is None) == (not sheet_url):
        raise HTTPException(status_code=422, detail="Provide exactly one of file or sheet_url")

    assignments = _parse_mapping(mapping)
    session = IngestionSession(user_id, workspace_id)
    session.select_category(data_type)

    try:
        if file is not None:
            session.load_file(_read_upload(file), file.filename, file.content_type)
        else:
            session.load_google_sheet(sheet_url)
    except SourceError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        session.clear_mapping()
        for field, header in assignments.items():
            session.set_mapping(field, header)
        result = session.submit()
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e).strip("'\""))

    return DeliveryResponse(**result.to_dict())
