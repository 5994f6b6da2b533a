"""
Retry an idempotent remote mutation with exponential backoff.
"""
import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from sheetbridge.core.config import settings

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# Patched by tests so retries do not actually wait.
_sleep = time.sleep


def _log_retry(context: str, retries: int):
    def _before_sleep(retry_state: RetryCallState) -> None:
        logger.info(
            f"[{context}] Retry {retry_state.attempt_number}/{retries} after "
            f"{retry_state.next_action.sleep}s ({retry_state.outcome.exception()})"
        )
    return _before_sleep


def retry_with_backoff(
    operation: Callable[[], _T],
    retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    context: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> _T:
    """
    Run ``operation`` up to ``retries + 1`` times.

    Waits ``base_delay * 2**attempt`` seconds between attempts and re-raises
    the last error once the retries are used up. Exceptions outside
    ``retry_on`` propagate immediately.
    """
    retries = settings.webhook_max_retries if retries is None else retries
    base_delay = settings.webhook_base_delay_seconds if base_delay is None else base_delay

    retrying = Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=base_delay, min=0),
        retry=retry_if_exception_type(retry_on),
        sleep=lambda seconds: _sleep(seconds),
        before_sleep=_log_retry(context, retries),
        reraise=True,
    )
    try:
        return retrying(operation)
    except retry_on as e:
        logger.error(f"[{context}] Max retries exceeded: {e}")
        raise
