"""
Outbound notification to the processing webhook.

Dispatch runs on a background worker and resolves a Future with the final
upload status. Nothing cancels an in-flight dispatch: a caller that goes
away simply never reads the result.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional

import requests
from pydantic import BaseModel

from sheetbridge.core.config import settings
from sheetbridge.core.errors import WebhookDeliveryError
from sheetbridge.db.models import UploadStatus
from sheetbridge.domain.delivery.retry import retry_with_backoff

logger = logging.getLogger(__name__)

_executor: Optional[ThreadPoolExecutor] = None


class WebhookPayload(BaseModel):
    user_id: str
    workspace_id: Optional[str] = None
    file_id: str
    data_type: str
    file_url: str
    file_type: str
    file_name: str
    file_size: int
    timestamp: str


class WebhookResponse(BaseModel):
    success: bool
    status: int
    message: Optional[str] = None


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def post_payload(payload: WebhookPayload, url: Optional[str] = None) -> WebhookResponse:
    """
    POST the payload once.

    Raises:
        WebhookDeliveryError: On a network error or a non-2xx response.
    """
    target = url or settings.upload_webhook_url
    try:
        response = requests.post(
            target,
            json=payload.model_dump(),
            headers={"Content-Type": "application/json"},
            timeout=settings.webhook_timeout_seconds,
        )
    except requests.RequestException as e:
        raise WebhookDeliveryError(f"Webhook request failed: {e}") from e

    logger.info(f"[Webhook] Response status: {response.status_code} for file {payload.file_id}")
    if not 200 <= response.status_code < 300:
        raise WebhookDeliveryError(
            f"Webhook failed with status {response.status_code}",
            status_code=response.status_code,
        )

    return WebhookResponse(success=True, status=response.status_code, message="Webhook delivered successfully")


def send_to_webhook(payload: WebhookPayload, url: Optional[str] = None) -> WebhookResponse:
    """POST the payload, retrying failures with exponential backoff."""
    return retry_with_backoff(
        lambda: post_payload(payload, url),
        context="Webhook",
        retry_on=(WebhookDeliveryError,),
    )


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="webhook-dispatch")
    return _executor


def shutdown_dispatcher(wait: bool = True) -> None:
    """Stop the dispatch worker pool; pending dispatches finish first when ``wait`` is set."""
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=wait)
        _executor = None


def _dispatch_and_record(
    payload: WebhookPayload,
    on_resolved: Optional[Callable[[UploadStatus, Optional[str]], object]],
) -> UploadStatus:
    try:
        send_to_webhook(payload)
        status, error_message = UploadStatus.COMPLETED, None
    except WebhookDeliveryError as e:
        logger.error(f"Webhook delivery failed for file {payload.file_id}: {e}")
        status, error_message = UploadStatus.FAILED, str(e)

    if on_resolved is not None:
        try:
            on_resolved(status, error_message)
        except Exception as e:
            # The upload already succeeded; a failed status write is only logged.
            logger.error(f"Could not record dispatch result for file {payload.file_id}: {e}")
    return status


def dispatch_in_background(
    payload: WebhookPayload,
    on_resolved: Optional[Callable[[UploadStatus, Optional[str]], object]] = None,
) -> "Future[UploadStatus]":
    """
    Send the payload on a worker thread.

    ``on_resolved(status, error_message)`` runs on the worker once delivery
    succeeds or the retries are exhausted. The returned Future resolves
    after that callback with the final status.
    """
    return _get_executor().submit(_dispatch_and_record, payload, on_resolved)
