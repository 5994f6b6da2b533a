from typing import Optional

from fastapi import Header, HTTPException, Request

from sheetbridge.domain.integrations.oauth import OAuthStateStore


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    User id forwarded by the auth gateway in front of this service.

    Session management lives outside this service; we only require the id.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="User ID is missing or invalid")
    return x_user_id.strip()


def get_workspace_id(x_workspace_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_workspace_id or None


def get_oauth_states(request: Request) -> OAuthStateStore:
    """State store created by the lifespan hook (or on first use without one)."""
    states = getattr(request.app.state, "oauth_states", None)
    if states is None:
        states = OAuthStateStore()
        request.app.state.oauth_states = states
    return states
