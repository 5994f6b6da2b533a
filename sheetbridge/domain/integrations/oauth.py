"""
OAuth redirect construction for platform connections.

Only the authorize URL is built here; the automation server behind the
redirect URI performs the code exchange and records the outcome through
the integration store.
"""
import logging
import re
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import urlencode

from sheetbridge.core.config import settings

logger = logging.getLogger(__name__)

_SHOPIFY_DOMAIN_PATTERN = re.compile(r"^([a-z0-9-]+)\.myshopify\.com$", re.IGNORECASE)


class OAuthStateError(Exception):
    """Raised when an OAuth state is unknown, reused or expired."""
    pass


@dataclass(frozen=True)
class OAuthState:
    state: str
    user_id: str
    platform: str
    issued_at: float


class OAuthStateStore:
    """
    Issued CSRF states, held explicitly instead of in browser session storage.

    States are single use and expire after ``ttl_seconds``.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.time):
        self._ttl = settings.oauth_state_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._states: Dict[str, OAuthState] = {}
        self._lock = threading.Lock()

    def issue(self, user_id: str, platform: str) -> str:
        state = secrets.token_urlsafe(16)
        with self._lock:
            self._purge_expired()
            self._states[state] = OAuthState(state, user_id, platform, self._clock())
        return state

    def consume(self, state: str) -> OAuthState:
        """
        Return and forget an issued state.

        Raises:
            OAuthStateError: If the state was never issued, was already used, or expired.
        """
        with self._lock:
            entry = self._states.pop(state, None)
        if entry is None:
            raise OAuthStateError("Unknown or already used OAuth state")
        if self._clock() - entry.issued_at > self._ttl:
            raise OAuthStateError("OAuth state expired; start the connection again")
        return entry

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._states.items() if now - entry.issued_at > self._ttl]
        for key in expired:
            del self._states[key]

    def __len__(self) -> int:
        return len(self._states)


def clean_shopify_domain(shop_domain: str) -> str:
    domain = shop_domain.strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    return domain.rstrip("/")


def validate_shopify_domain(domain: str) -> bool:
    """True for ``<store>.myshopify.com``."""
    return bool(_SHOPIFY_DOMAIN_PATTERN.match(domain.strip()))


def build_shopify_authorize_url(
    shop_domain: str,
    user_id: str,
    return_url: str,
    states: OAuthStateStore,
) -> str:
    """
    Build the Shopify authorize URL for a store.

    The state carries ``random:user_id:return_url`` so the callback can
    attribute the connection; the random part is registered in ``states``.

    Raises:
        ValueError: If the shop domain is not a myshopify.com domain.
    """
    domain = clean_shopify_domain(shop_domain)
    if not validate_shopify_domain(domain):
        raise ValueError("Invalid Shopify domain format. Use: yourstore.myshopify.com")

    random_state = states.issue(user_id, "shopify")
    query = urlencode(
        {
            "client_id": settings.shopify_api_key,
            "scope": settings.shopify_scopes,
            "redirect_uri": settings.shopify_redirect_uri,
            "state": f"{random_state}:{user_id}:{return_url}",
            "grant_options[]": "per-user",
        },
        safe=",",
    )
    logger.info(f"Built Shopify authorize URL for {domain} (user {user_id})")
    return f"https://{domain}/admin/oauth/authorize?{query}"


def build_google_sheets_authorize_url(user_id: str) -> str:
    """Google consent URL with offline access. The user id is the state."""
    query = urlencode(
        {
            "client_id": settings.google_client_id,
            "redirect_uri": settings.google_redirect_uri,
            "response_type": "code",
            "scope": settings.google_scopes,
            "access_type": "offline",
            "prompt": "consent",
            "state": user_id,
        }
    )
    logger.info(f"Built Google Sheets authorize URL for user {user_id}")
    return f"https://accounts.google.com/o/oauth2/v2/auth?{query}"
