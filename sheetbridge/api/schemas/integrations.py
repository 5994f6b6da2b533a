from typing import List, Optional

from pydantic import BaseModel, Field

from sheetbridge.db.models import IntegrationStatus
from sheetbridge.domain.integrations.store import OverallSyncStatus


class IntegrationInfo(BaseModel):
    id: str
    user_id: str
    platform: str
    status: IntegrationStatus
    connected_at: Optional[str] = None
    last_sync_at: Optional[str] = None
    error_state: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class IntegrationListResponse(BaseModel):
    success: bool = True
    integrations: List[IntegrationInfo]


class SaveIntegrationRequest(BaseModel):
    status: IntegrationStatus
    permissions: List[str] = Field(default_factory=list)


class SyncStatusRequest(BaseModel):
    status: IntegrationStatus
    error_message: Optional[str] = None


class OverallStatusResponse(BaseModel):
    status: OverallSyncStatus


class PlatformInfo(BaseModel):
    id: str
    name: str
    description: str
    permissions: List[str]
    category: str
    connected: bool = False


class ShopifyAuthorizeRequest(BaseModel):
    shop_domain: str
    return_url: str


class AuthorizeUrlResponse(BaseModel):
    authorize_url: str


class VerifyStateRequest(BaseModel):
    state: str


class VerifyStateResponse(BaseModel):
    valid: bool
    user_id: Optional[str] = None
    platform: Optional[str] = None
