"""Tests for capped exponential backoff."""

from __future__ import annotations

import asyncio

import pytest

from spread_core.config.schema import RetryConfig
from spread_core.settlement.retry import acall_with_retry, backoff_delay, call_with_retry


class Flaky:
    """Fails with *exc* for the first *failures* calls, then returns "ok"."""

    def __init__(self, failures: int, exc: Exception | None = None) -> None:
        self.failures = failures
        self.exc = exc or ConnectionError("reset")
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


class TestBackoffDelay:
    def test_grows_by_factor(self):
        cfg = RetryConfig(base_delay_s=1.0, backoff_factor=1.5, max_delay_s=30)
        assert [backoff_delay(n, cfg) for n in (1, 2, 3)] == [1.0, 1.5, 2.25]

    def test_capped(self):
        cfg = RetryConfig(base_delay_s=1.0, backoff_factor=2.0, max_delay_s=5)
        assert backoff_delay(10, cfg) == 5


class TestCallWithRetry:
    def test_succeeds_after_transient_failures(self):
        sleeps: list[float] = []
        fn = Flaky(2)
        result = call_with_retry(fn, RetryConfig(), retry_on=(ConnectionError,), sleep=sleeps.append)
        assert result == "ok"
        assert fn.calls == 3
        assert sleeps == [1.0, 1.5]

    def test_exhausted_reraises_last_error(self):
        fn = Flaky(10)
        with pytest.raises(ConnectionError):
            call_with_retry(fn, RetryConfig(max_attempts=3), retry_on=(ConnectionError,),
                            sleep=lambda _s: None)
        assert fn.calls == 3

    def test_non_retryable_propagates_immediately(self):
        fn = Flaky(1, ValueError("bad input"))
        with pytest.raises(ValueError):
            call_with_retry(fn, RetryConfig(), retry_on=(ConnectionError,), sleep=lambda _s: None)
        assert fn.calls == 1


class TestAsyncRetry:
    def test_async_retry(self):
        sleeps: list[float] = []
        fn = Flaky(1, TimeoutError("slow"))

        async def attempt():
            return fn()

        async def record(delay: float) -> None:
            sleeps.append(delay)

        result = asyncio.run(acall_with_retry(attempt, RetryConfig(), retry_on=(TimeoutError,), sleep=record))
        assert result == "ok"
        assert sleeps == [1.0]

    def test_async_exhausted(self):
        async def always_fail():
            raise ConnectionError("down")

        async def no_sleep(_delay: float) -> None:
            return None

        with pytest.raises(ConnectionError):
            asyncio.run(acall_with_retry(always_fail, RetryConfig(max_attempts=2),
                                         retry_on=(ConnectionError,), sleep=no_sleep))
