"""Retry helpers for transient failures and eventual consistency.

- call_with_retry(): retry a management API call on throttling, gateway and
  connection errors with the backoff of a RetryPolicy
- poll_until(): evaluate a predicate until it holds or the policy's attempts
  are exhausted (used to wait for a resource group to become visible)

Both take a ``sleep`` callable so tests run without delays.

Security:
- No credential leakage in logs (messages go through LogSanitizer)
"""

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from azure.core.exceptions import HttpResponseError, ServiceRequestError, ServiceResponseError

from azspeech.log_sanitizer import LogSanitizer
from azspeech.retry_config import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def should_retry_http_error(status_code: int | None) -> bool:
    """Determine if HTTP status code should trigger retry.

    Retryable status codes:
        - 408: Request Timeout
        - 429: Too Many Requests (throttling)
        - 500, 502, 503, 504: server side failures
    """
    return status_code in RETRYABLE_STATUS_CODES


def is_transient_error(error: BaseException) -> bool:
    """Check whether an exception is worth retrying."""
    if isinstance(error, (ServiceRequestError, ServiceResponseError, ConnectionError, TimeoutError)):
        return True
    if isinstance(error, HttpResponseError):
        return should_retry_http_error(error.status_code)
    return False


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` retrying transient failures.

    Non-transient errors propagate immediately. When the last attempt fails
    the original exception propagates.

    Args:
        operation: Zero-argument callable performing the API call
        policy: Retry policy (attempt count and backoff)
        description: Operation name used in log messages
        sleep: Sleep function (injectable for tests)
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = operation()
            if attempt > 1:
                logger.info(f"{description} succeeded on attempt {attempt}/{policy.max_attempts}")
            return result
        except Exception as e:
            if not is_transient_error(e):
                raise
            if attempt >= policy.max_attempts:
                logger.error(
                    f"{description} failed after {policy.max_attempts} attempts: "
                    f"{LogSanitizer.sanitize_exception(e)}"
                )
                raise
            wait = policy.delay_for(attempt)
            logger.warning(
                f"{description} failed on attempt {attempt}/{policy.max_attempts}, "
                f"retrying in {wait:.2f}s: {LogSanitizer.sanitize_exception(e)}"
            )
            sleep(wait)

    raise RuntimeError(f"{description} failed with unknown error")


def poll_until(
    predicate: Callable[[], bool],
    policy: RetryPolicy,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Evaluate ``predicate`` until it returns True.

    The predicate is checked at most ``policy.max_attempts`` times with the
    policy's delay between checks. Exceptions from the predicate propagate.

    Returns:
        True if the predicate held within the allowed attempts, else False
    """
    for attempt in range(1, policy.max_attempts + 1):
        if predicate():
            logger.debug(f"{description}: condition met on attempt {attempt}")
            return True
        if attempt < policy.max_attempts:
            wait = policy.delay_for(attempt)
            logger.info(
                f"{description}: not ready (attempt {attempt}/{policy.max_attempts}), "
                f"checking again in {wait:.0f}s"
            )
            sleep(wait)
    return False


__all__ = [
    "call_with_retry",
    "is_transient_error",
    "poll_until",
    "should_retry_http_error",
]
