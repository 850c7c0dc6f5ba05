"""
Tests for porter.orchestration.resilience
===========================================

What's Being Tested:
    - with_timeout(): deadline, late results discarded, LoadTimeoutError context
    - retry(): schedule (immediate first attempt, delay * backoff^(n-2)),
      exhaustion, non-retryable errors propagating at once
    - retry wrapping with_timeout: a timed-out attempt is retried
"""

import asyncio
import time

import pytest

from porter.core.exceptions import (
    ConfigurationError,
    LoadTimeoutError,
    NetworkError,
    ValidationError,
)
from porter.core.models import RetryPolicy
from porter.orchestration.resilience import retry, retry_with_policy, with_timeout


class FlakyOperation:
    """Fails with NetworkError a fixed number of times, then succeeds."""

    def __init__(self, failures: int, result: str = "ok") -> None:
        self.failures = failures
        self.result = result
        self.calls = 0
        self.call_times: list[float] = []

    async def __call__(self) -> str:
        self.calls += 1
        self.call_times.append(time.monotonic())
        if self.calls <= self.failures:
            raise NetworkError("http://h/x.mjs", cause=ConnectionError("reset"))
        return self.result


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# =============================================================================
# Test: with_timeout
# =============================================================================
class TestWithTimeout:
    async def test_result_within_deadline(self) -> None:
        async def fast() -> int:
            return 42

        assert await with_timeout(fast, 1.0, url="http://h/x.mjs") == 42

    async def test_late_result_is_discarded(self) -> None:
        completed: list[str] = []

        async def slow() -> str:
            await asyncio.sleep(0.2)
            completed.append("late")
            return "late"

        raised = 0
        try:
            await with_timeout(slow, 0.05, url="http://h/slow.mjs")
        except LoadTimeoutError as exc:
            raised += 1
            assert exc.url == "http://h/slow.mjs"
            assert exc.timeout_seconds == 0.05

        await asyncio.sleep(0.3)
        assert raised == 1
        assert completed == []

    async def test_no_deadline(self) -> None:
        async def op() -> str:
            await asyncio.sleep(0.01)
            return "done"

        assert await with_timeout(op, None) == "done"


# =============================================================================
# Test: retry
# =============================================================================
class TestRetry:
    async def test_succeeds_on_third_attempt_with_backoff(self) -> None:
        operation = FlakyOperation(failures=2)
        result = await retry(operation, attempts=3, delay=0.1, backoff=2)

        assert result == "ok"
        assert operation.calls == 3
        first_gap = operation.call_times[1] - operation.call_times[0]
        second_gap = operation.call_times[2] - operation.call_times[1]
        assert first_gap == pytest.approx(0.1, abs=0.08)
        assert second_gap == pytest.approx(0.2, abs=0.08)

    async def test_schedule(self) -> None:
        sleep = SleepRecorder()
        operation = FlakyOperation(failures=3)
        await retry(operation, attempts=4, delay=0.5, backoff=3, sleep=sleep)
        assert sleep.delays == pytest.approx([0.5, 1.5, 4.5])

    async def test_fixed_delay_by_default(self) -> None:
        sleep = SleepRecorder()
        await retry(FlakyOperation(failures=2), attempts=3, delay=0.2, sleep=sleep)
        assert sleep.delays == pytest.approx([0.2, 0.2])

    async def test_exhaustion_raises_last_error(self) -> None:
        sleep = SleepRecorder()
        operation = FlakyOperation(failures=10)
        with pytest.raises(NetworkError):
            await retry(operation, attempts=3, delay=0.1, sleep=sleep)
        assert operation.calls == 3

    @pytest.mark.parametrize(
        "error",
        [ConfigurationError("bad config"), ValidationError("bad manifest")],
    )
    async def test_non_transport_errors_are_not_retried(self, error) -> None:
        calls = 0

        async def op() -> None:
            nonlocal calls
            calls += 1
            raise error

        with pytest.raises(type(error)):
            await retry(op, attempts=5, delay=0.0)
        assert calls == 1

    async def test_timed_out_attempt_is_retried(self) -> None:
        attempts = 0

        async def sometimes_slow() -> str:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                await asyncio.sleep(1.0)
            return "second"

        result = await retry_with_policy(
            lambda: with_timeout(sometimes_slow, 0.05, url="http://h/x.mjs"),
            RetryPolicy(attempts=2, delay=0.0),
        )
        assert result == "second"
        assert attempts == 2
