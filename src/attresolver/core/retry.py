"""Retries for data connector external calls, with tenacity.

The resolver never retries a plugin: a failed plugin stays failed for the
rest of the request. Connectors that call out (HTTP, RDBMS) wrap only the
call itself, so a dropped connection or a 5xx response is retried with
exponential backoff and jitter before the connector reports a failure.
Errors the connector classifies as permanent (bad SQL, a 403) are raised
from the first attempt.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, TypeVar

from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from attresolver.core.logging import get_logger

if TYPE_CHECKING:
    from attresolver.core.config import RetrySettings

T = TypeVar("T")

logger = get_logger(__name__)


class RetriesExhausted(Exception):
    """Every allowed attempt of an external call failed."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempts: {last_error}")


def call_with_retry(
    operation: Callable[[], T],
    settings: RetrySettings,
    *,
    is_retryable: Callable[[BaseException], bool],
    connector_id: str,
) -> T:
    """Run a connector's external call under its retry policy.

    Each retry is logged as connector_retry with the attempt that failed.

    Args:
        operation: The external call
        settings: Attempts and backoff bounds
        is_retryable: True for transient errors
        connector_id: Connector named in the retry events

    Returns:
        The result of the first successful attempt

    Raises:
        RetriesExhausted: If the last attempt failed with a transient error
        Exception: A non-transient error, unchanged
    """

    def log_retry(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome is not None else None
        logger.warning("connector_retry", connector_id=connector_id, attempt=state.attempt_number, error=str(error))

    retrying = Retrying(
        stop=stop_after_attempt(settings.max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.initial_delay_seconds,
            max=settings.max_delay_seconds,
            exp_base=settings.exponential_base,
        ),
        retry=retry_if_exception(is_retryable),
        before_sleep=log_retry,
    )
    try:
        return retrying(operation)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        assert last_error is not None
        raise RetriesExhausted(e.last_attempt.attempt_number, last_error) from e
