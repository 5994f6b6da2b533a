"""
Platform connection endpoints.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from sheetbridge.api.dependencies import get_current_user_id, get_oauth_states
from sheetbridge.api.schemas.integrations import (
    AuthorizeUrlResponse,
    IntegrationInfo,
    IntegrationListResponse,
    OverallStatusResponse,
    PlatformInfo,
    SaveIntegrationRequest,
    ShopifyAuthorizeRequest,
    SyncStatusRequest,
    VerifyStateRequest,
    VerifyStateResponse,
)
from sheetbridge.db.models import IntegrationStatus
from sheetbridge.domain.integrations.oauth import (
    OAuthStateError,
    OAuthStateStore,
    build_google_sheets_authorize_url,
    build_shopify_authorize_url,
)
from sheetbridge.domain.integrations.platforms import PLATFORMS, get_platform
from sheetbridge.domain.integrations.store import (
    disconnect_integration,
    get_integration,
    get_integrations,
    get_overall_sync_status,
    save_integration,
    update_sync_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])


def _require_platform(platform: str) -> None:
    if get_platform(platform) is None:
        raise HTTPException(status_code=404, detail=f"Unknown platform '{platform}'")


@router.get("", response_model=IntegrationListResponse)
def list_integrations_endpoint(user_id: str = Depends(get_current_user_id)):
    return IntegrationListResponse(
        integrations=[IntegrationInfo(**row) for row in get_integrations(user_id)]
    )


@router.get("/status", response_model=OverallStatusResponse)
def overall_status_endpoint(user_id: str = Depends(get_current_user_id)):
    """error beats syncing beats synced across all of the caller's platforms."""
    return OverallStatusResponse(status=get_overall_sync_status(user_id))


@router.get("/platforms", response_model=list[PlatformInfo])
def list_platforms_endpoint(user_id: str = Depends(get_current_user_id)):
    """Platform catalog, flagged with whether the caller has each one connected."""
    connected = {
        row["platform"]
        for row in get_integrations(user_id)
        if row["status"] == IntegrationStatus.CONNECTED.value
    }
    return [
        PlatformInfo(
            id=platform.id,
            name=platform.name,
            description=platform.description,
            permissions=list(platform.permissions),
            category=platform.category,
            connected=platform.id in connected,
        )
        for platform in PLATFORMS
    ]


@router.post("/shopify/authorize", response_model=AuthorizeUrlResponse)
def shopify_authorize_endpoint(
    request: ShopifyAuthorizeRequest,
    user_id: str = Depends(get_current_user_id),
    states: OAuthStateStore = Depends(get_oauth_states),
):
    existing = get_integration(user_id, "shopify")
    if existing and existing["status"] == IntegrationStatus.CONNECTED.value:
        raise HTTPException(status_code=409, detail="Shopify is already connected")
    try:
        url = build_shopify_authorize_url(request.shop_domain, user_id, request.return_url, states)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AuthorizeUrlResponse(authorize_url=url)


@router.get("/google_sheets/authorize", response_model=AuthorizeUrlResponse)
def google_sheets_authorize_endpoint(user_id: str = Depends(get_current_user_id)):
    existing = get_integration(user_id, "google_sheets")
    if existing and existing["status"] == IntegrationStatus.CONNECTED.value:
        raise HTTPException(status_code=409, detail="Google Sheets is already connected")
    return AuthorizeUrlResponse(authorize_url=build_google_sheets_authorize_url(user_id))


@router.post("/oauth/verify-state", response_model=VerifyStateResponse)
async def verify_state_endpoint(
    request: VerifyStateRequest,
    states: OAuthStateStore = Depends(get_oauth_states),
):
    """Check (and consume) the random part of a state returned by the provider."""
    random_part = request.state.split(":", 1)[0]
    try:
        entry = states.consume(random_part)
    except OAuthStateError as e:
        logger.warning(f"Rejected OAuth state: {e}")
        return VerifyStateResponse(valid=False)
    return VerifyStateResponse(valid=True, user_id=entry.user_id, platform=entry.platform)


@router.get("/{platform}", response_model=IntegrationInfo)
def get_integration_endpoint(platform: str, user_id: str = Depends(get_current_user_id)):
    integration = get_integration(user_id, platform)
    if integration is None:
        raise HTTPException(status_code=404, detail="Integration not found")
    return IntegrationInfo(**integration)


@router.put("/{platform}", response_model=IntegrationInfo)
def save_integration_endpoint(
    platform: str,
    request: SaveIntegrationRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Create or update the caller's connection record for a platform."""
    _require_platform(platform)
    integration = save_integration(user_id, platform, request.status, request.permissions)
    if integration is None:
        raise HTTPException(status_code=500, detail="Failed to save integration")
    return IntegrationInfo(**integration)


@router.post("/{platform}/disconnect")
def disconnect_integration_endpoint(platform: str, user_id: str = Depends(get_current_user_id)):
    if not disconnect_integration(user_id, platform):
        raise HTTPException(status_code=404, detail="Integration not found")
    return {"success": True, "platform": platform, "status": IntegrationStatus.DISCONNECTED.value}


@router.post("/{platform}/sync-status")
def sync_status_endpoint(
    platform: str,
    request: SyncStatusRequest,
    user_id: str = Depends(get_current_user_id),
):
    if request.status is IntegrationStatus.DISCONNECTED:
        raise HTTPException(status_code=422, detail="Use the disconnect endpoint to disconnect a platform")
    if not update_sync_status(user_id, platform, request.status, request.error_message):
        raise HTTPException(status_code=404, detail="Integration not found")
    return {"success": True, "platform": platform, "status": request.status.value}
