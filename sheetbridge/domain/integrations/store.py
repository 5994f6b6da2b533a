"""
Per-user, per-platform connection records.

Reads degrade to empty results on database errors; they only gate what
the dashboard shows as connected.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sheetbridge.db.models import Integration, IntegrationStatus
from sheetbridge.db.session import session_scope
from sheetbridge.domain.delivery.retry import retry_with_backoff

logger = logging.getLogger(__name__)

CONNECTION_FAILED_MESSAGE = "Connection failed"


class OverallSyncStatus(str, Enum):
    SYNCED = "synced"
    SYNCING = "syncing"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _to_dict(integration: Integration) -> Dict:
    return {
        "id": integration.id,
        "user_id": integration.user_id,
        "platform": integration.platform,
        "status": integration.status,
        "connected_at": _isoformat(integration.connected_at),
        "last_sync_at": _isoformat(integration.last_sync_at),
        "error_state": integration.error_state,
        "permissions": list(integration.permissions or []),
        "created_at": _isoformat(integration.created_at),
        "updated_at": _isoformat(integration.updated_at),
    }


def _unique(permissions: Optional[Iterable[str]]) -> List[str]:
    return list(dict.fromkeys(permissions or []))


def get_integrations(user_id: str) -> List[Dict]:
    """All integrations of a user, newest first. [] on database errors."""
    try:
        with session_scope() as session:
            rows = (
                session.query(Integration)
                .filter(Integration.user_id == user_id)
                .order_by(Integration.created_at.desc())
                .all()
            )
            return [_to_dict(row) for row in rows]
    except SQLAlchemyError as e:
        logger.error(f"Error fetching integrations for user {user_id}: {e}")
        return []


def get_integration(user_id: str, platform: str) -> Optional[Dict]:
    """The integration for one platform, or None if absent or unreadable."""
    try:
        with session_scope() as session:
            row = (
                session.query(Integration)
                .filter(Integration.user_id == user_id, Integration.platform == platform)
                .one_or_none()
            )
            return _to_dict(row) if row else None
    except SQLAlchemyError as e:
        logger.error(f"Error fetching integration status for {user_id}/{platform}: {e}")
        return None


def _apply_status(row: Integration, status: IntegrationStatus, permissions: List[str], now: datetime) -> None:
    row.status = status.value
    row.permissions = permissions
    if status is IntegrationStatus.CONNECTED:
        row.connected_at = now
        row.last_sync_at = now
    row.error_state = CONNECTION_FAILED_MESSAGE if status is IntegrationStatus.ERROR else None
    row.updated_at = now


def save_integration(
    user_id: str,
    platform: str,
    status: IntegrationStatus,
    permissions: Optional[Sequence[str]] = None,
) -> Optional[Dict]:
    """
    Insert or update the single row for ``(user_id, platform)``.

    Timestamps are refreshed only when the new status is ``connected``.
    If a concurrent call inserts the row first, the unique constraint
    rejects our insert and we update the winner's row instead.
    Returns None and logs on database errors.
    """
    status = IntegrationStatus(status)
    permissions = _unique(permissions)

    def _upsert() -> Dict:
        now = _utcnow()
        with session_scope() as session:
            row = (
                session.query(Integration)
                .filter(Integration.user_id == user_id, Integration.platform == platform)
                .one_or_none()
            )
            if row is None:
                row = Integration(
                    user_id=user_id,
                    platform=platform,
                    created_at=now,
                )
                session.add(row)
                _apply_status(row, status, permissions, now)
                # A fresh row never starts with a sync time
                row.last_sync_at = None
            else:
                _apply_status(row, status, permissions, now)
            session.commit()
            session.refresh(row)
            return _to_dict(row)

    try:
        try:
            return _upsert()
        except IntegrityError:
            logger.info(f"Concurrent insert for {user_id}/{platform}; retrying as update")
            return _upsert()
    except SQLAlchemyError as e:
        logger.error(f"Error saving integration {user_id}/{platform}: {e}")
        return None


def disconnect_integration(user_id: str, platform: str) -> bool:
    """Mark a platform as disconnected. The row itself is kept."""
    try:
        with session_scope() as session:
            updated = (
                session.query(Integration)
                .filter(Integration.user_id == user_id, Integration.platform == platform)
                .update(
                    {
                        Integration.status: IntegrationStatus.DISCONNECTED.value,
                        Integration.error_state: None,
                        Integration.updated_at: _utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            session.commit()
            return updated > 0
    except SQLAlchemyError as e:
        logger.error(f"Error disconnecting integration {user_id}/{platform}: {e}")
        return False


def update_sync_status(
    user_id: str,
    platform: str,
    status: IntegrationStatus,
    error_message: Optional[str] = None,
) -> bool:
    """
    Record a sync transition (``syncing``, ``connected`` or ``error``).

    Database errors are retried with the same backoff as webhook dispatch
    and re-raised once exhausted. Returns False if no row exists.
    """
    status = IntegrationStatus(status)
    if status is IntegrationStatus.DISCONNECTED:
        raise ValueError("Use disconnect_integration to disconnect a platform")

    def _update() -> bool:
        now = _utcnow()
        values = {
            Integration.status: status.value,
            Integration.error_state: (error_message or CONNECTION_FAILED_MESSAGE)
            if status is IntegrationStatus.ERROR
            else None,
            Integration.updated_at: now,
        }
        if status is IntegrationStatus.CONNECTED:
            values[Integration.last_sync_at] = now
        with session_scope() as session:
            updated = (
                session.query(Integration)
                .filter(Integration.user_id == user_id, Integration.platform == platform)
                .update(values, synchronize_session=False)
            )
            session.commit()
            return updated > 0

    return retry_with_backoff(_update, context="SyncStatus", retry_on=(SQLAlchemyError,))


def aggregate_sync_status(statuses: Iterable[str]) -> OverallSyncStatus:
    """error beats syncing beats synced."""
    seen = set(statuses)
    if IntegrationStatus.ERROR.value in seen:
        return OverallSyncStatus.ERROR
    if IntegrationStatus.SYNCING.value in seen:
        return OverallSyncStatus.SYNCING
    return OverallSyncStatus.SYNCED


def get_overall_sync_status(user_id: str) -> OverallSyncStatus:
    return aggregate_sync_status(row["status"] for row in get_integrations(user_id))
