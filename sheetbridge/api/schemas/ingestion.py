from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sheetbridge.domain.ingestion.schemas import DataCategory


class SchemaFieldInfo(BaseModel):
    key: str
    label: str
    required: bool


class TargetSchemaResponse(BaseModel):
    category: DataCategory
    fields: List[SchemaFieldInfo]


class GoogleSheetPreviewRequest(BaseModel):
    sheet_url: str
    data_type: DataCategory


class MappingPreviewResponse(BaseModel):
    """Parsed headers plus the suggested mapping for the mapping step."""
    success: bool = True
    data_type: DataCategory
    file_name: str
    headers: List[str]
    row_count: int
    sample_rows: List[List[Any]] = Field(default_factory=list)
    suggested_mapping: Dict[str, str] = Field(default_factory=dict)
    ready: bool
    missing_fields: List[str] = Field(default_factory=list)


class DeliveryResponse(BaseModel):
    success: bool
    upload_id: Optional[str] = None
    file_url: Optional[str] = None
    error: Optional[str] = None


class UploadInfo(BaseModel):
    id: str
    user_id: str
    workspace_id: Optional[str] = None
    file_name: str
    file_url: str
    storage_path: Optional[str] = None
    file_type: str
    file_size: int
    data_type: Optional[str] = None
    source: str
    status: str
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UploadListResponse(BaseModel):
    success: bool = True
    uploads: List[UploadInfo]
    limit: int
    offset: int
