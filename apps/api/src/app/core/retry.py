"""
Retry Policy

Wraps outbound calls (mostly database work done on behalf of one agency) with
transient/permanent error classification and exponential backoff.

Schedule:
- First attempt, then up to MAX_RETRIES retries for transient errors
- Delays between attempts: 1s, 2s, 4s (base 1s, factor 2)
- Permanent errors are raised on the first failure

Classification:
- Transient: connection resets, timeouts, refused connections. Matched by
  exception type or by a fixed set of message signatures.
- Permanent: everything else (validation, authorization, bad settings).
  Unknown errors fail fast rather than burning retries.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = settings.job_max_retries
INITIAL_DELAY_SECONDS = settings.job_retry_initial_delay_seconds

# Lower-cased message fragments of errors worth retrying
TRANSIENT_ERROR_PATTERNS = (
    "econnreset",
    "etimedout",
    "connection",
    "timeout",
    "econnrefused",
)


class TransientInfrastructureError(Exception):
    """Connection or timeout class failure that may succeed on retry."""


class PermanentError(Exception):
    """Failure that will repeat unchanged (bad input, authorization, settings)."""


def is_transient_error(error: BaseException) -> bool:
    """
    Determine whether an error is transient (retryable) or permanent.

    Args:
        error: The exception raised by the attempt

    Returns:
        True if the error should be retried, False otherwise
    """
    if isinstance(error, PermanentError):
        return False
    if isinstance(error, TransientInfrastructureError | ConnectionError | TimeoutError):
        return True

    message = str(error).lower()
    return any(pattern in message for pattern in TRANSIENT_ERROR_PATTERNS)


def classify_error(error: BaseException) -> str:
    """Return "transient" or "permanent" for reporting purposes."""
    return "transient" if is_transient_error(error) else "permanent"


def _log_retry(description: str, max_retries: int) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Retry {retry_state.attempt_number}/{max_retries} for {description} "
            f"after {delay:g}s: {error}"
        )

    return before_sleep


def build_retrying(
    description: str,
    *,
    max_retries: int = MAX_RETRIES,
    initial_delay: float = INITIAL_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncRetrying:
    """
    Build the tenacity controller implementing the retry policy.

    Args:
        description: Human readable label used in log lines
        max_retries: Retries after the first attempt
        initial_delay: Delay before the first retry, doubled each time
        sleep: Awaitable sleep function (injectable for tests)
    """
    return AsyncRetrying(
        sleep=sleep,
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=initial_delay, exp_base=2, min=initial_delay),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry(description, max_retries),
        reraise=True,
    )


async def execute_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    description: str = "operation",
    max_retries: int = MAX_RETRIES,
    initial_delay: float = INITIAL_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Execute an async callable under the retry policy.

    Args:
        fn: Zero-argument coroutine function performing one attempt
        description: Label for log lines (e.g. "agency 1234")
        max_retries: Retries after the first attempt
        initial_delay: Delay before the first retry in seconds
        sleep: Awaitable sleep function

    Returns:
        The result of the first successful attempt

    Raises:
        The last error raised by fn, unchanged, once it is permanent or
        retries are exhausted.
    """
    retrying = build_retrying(
        description,
        max_retries=max_retries,
        initial_delay=initial_delay,
        sleep=sleep,
    )
    return await retrying(fn)


__all__ = [
    "MAX_RETRIES",
    "INITIAL_DELAY_SECONDS",
    "TRANSIENT_ERROR_PATTERNS",
    "TransientInfrastructureError",
    "PermanentError",
    "is_transient_error",
    "classify_error",
    "build_retrying",
    "execute_with_retry",
]
