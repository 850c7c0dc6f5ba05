"""
porter.orchestration.resilience - Retry/Timeout Controller
============================================================

Wraps an asynchronous operation with a deadline and a bounded retry
schedule. Both helpers are transport-agnostic: they accept a zero-argument
coroutine factory, so a retry can wrap a timeout and a timed-out attempt
still leaves room for the next one:

    await retry(
        lambda: with_timeout(lambda: fetch(url), 5.0, url=url),
        attempts=3, delay=0.1, backoff=2.0,
    )

Schedule (attempts=3, delay=0.1, backoff=2.0):

    attempt 1 ──fail──> sleep 0.1 ──> attempt 2 ──fail──> sleep 0.2 ──> attempt 3

Only transport failures (NetworkError, LoadTimeoutError) are retried.
Everything else propagates from the first attempt that raises it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from porter.core.exceptions import LoadTimeoutError, NetworkError
from porter.core.models import RetryPolicy


logger = structlog.get_logger()

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (NetworkError, LoadTimeoutError)


async def with_timeout(
    operation: Operation[T],
    timeout_seconds: Optional[float],
    *,
    url: str = "",
) -> T:
    """Run ``operation`` with a deadline.

    On expiry the operation is cancelled, so a late result is never
    delivered to the caller. A ``None`` or non-positive deadline runs the
    operation unbounded.

    Raises:
        LoadTimeoutError: The deadline passed first. Carries ``url`` and
            ``timeout_seconds``.
    """
    if not timeout_seconds or timeout_seconds <= 0:
        return await operation()
    try:
        return await asyncio.wait_for(operation(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise LoadTimeoutError(url=url, timeout_seconds=timeout_seconds) from None


async def retry(
    operation: Operation[T],
    attempts: int,
    delay: float,
    backoff: float = 1.0,
    *,
    retryable: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``operation`` up to ``attempts`` times.

    Attempt 1 runs immediately; attempt n waits ``delay * backoff ** (n - 2)``
    seconds first.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        attempts: Total number of attempts (at least 1).
        delay: Base delay in seconds before the second attempt.
        backoff: Multiplier applied after each failed attempt.
        retryable: Exception types that count as a failed attempt.
        sleep: Awaitable sleep; injectable for tests.

    Returns:
        The first successful result.

    Raises:
        The last retryable error once attempts are exhausted, or any
        non-retryable error immediately.
    """
    policy = RetryPolicy(attempts=max(1, attempts), delay=delay, backoff=backoff)
    return await retry_with_policy(operation, policy, retryable=retryable, sleep=sleep)


async def retry_with_policy(
    operation: Operation[T],
    policy: RetryPolicy,
    *,
    retryable: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    context: Optional[dict[str, Any]] = None,
) -> T:
    """Same as :func:`retry`, driven by a :class:`RetryPolicy`."""
    log = logger.bind(component="retry", **(context or {}))
    last_error: Optional[BaseException] = None

    for attempt in range(1, policy.attempts + 1):
        wait = policy.delay_before(attempt)
        if wait > 0:
            log.info(
                "retry_scheduled",
                attempt=attempt,
                max_attempts=policy.attempts,
                delay_seconds=round(wait, 3),
            )
            await sleep(wait)

        try:
            return await operation()
        except retryable as exc:
            last_error = exc
            log.warning(
                "attempt_failed",
                attempt=attempt,
                max_attempts=policy.attempts,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    log.error("retries_exhausted", max_attempts=policy.attempts)
    assert last_error is not None
    raise last_error
