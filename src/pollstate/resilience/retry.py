"""
Caller-side retry policy using Tenacity.

The status cache never retries a failed source call. Callers that need an
answer badly enough, such as a claim confirmation, wrap the call here.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pollstate.core.exceptions import SourceUnavailableError
from pollstate.core.logging import get_logger

logger = get_logger("resilience.retry")

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF = 0.5
MAX_BACKOFF = 8.0


def is_transient_error(exception: BaseException) -> bool:
    """Check if exception is a transient source failure worth retrying."""
    return isinstance(exception, SourceUnavailableError) and exception.is_transient()


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"Retrying status read (attempt {retry_state.attempt_number}): {error}")


async def execute_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = DEFAULT_ATTEMPTS,
    backoff: float = DEFAULT_BACKOFF,
    **kwargs: Any,
) -> T:
    """
    Execute an async function, retrying transient source failures.

    Waits grow exponentially from ``backoff`` seconds, capped at 8s.
    Non-transient failures and the final failure are re-raised.
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception(is_transient_error),
        wait=wait_exponential(multiplier=backoff, min=0, max=MAX_BACKOFF),
        stop=stop_after_attempt(attempts),
        reraise=True,
        before_sleep=_log_retry,
    ):
        with attempt:
            return await func(*args, **kwargs)
    raise RuntimeError("retry loop exited without a result")  # pragma: no cover
