"""Retry with capped exponential backoff for persistence and network calls."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from spread_core.config.schema import RetryConfig

log = structlog.get_logger("retry")

T = TypeVar("T")


def backoff_delay(attempt: int, config: RetryConfig) -> float:
    """Delay before retry number *attempt* (1-based): base * factor**(attempt-1), capped."""
    delay = config.base_delay_s * config.backoff_factor ** (attempt - 1)
    return min(delay, config.max_delay_s)


def call_with_retry(
    fn: Callable[[], T],
    config: RetryConfig,
    retry_on: tuple[type[BaseException], ...],
    op: str = "call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *fn*, retrying exceptions in *retry_on* up to ``config.max_attempts`` times.

    Anything not in *retry_on* propagates immediately; the last retryable
    error propagates once attempts are exhausted.
    """
    for attempt in range(1, config.max_attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt >= config.max_attempts:
                log.error("retry_exhausted", op=op, attempts=attempt, error=str(exc)[:200])
                raise
            delay = backoff_delay(attempt, config)
            log.warning("retrying", op=op, attempt=attempt, delay=delay, error=str(exc)[:200])
            sleep(delay)
    raise RuntimeError(f"{op}: max_attempts must be >= 1")


async def acall_with_retry(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig,
    retry_on: tuple[type[BaseException], ...],
    op: str = "call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Async twin of :func:`call_with_retry`."""
    for attempt in range(1, config.max_attempts + 1):
        try:
            return await fn()
        except retry_on as exc:
            if attempt >= config.max_attempts:
                log.error("retry_exhausted", op=op, attempts=attempt, error=str(exc)[:200])
                raise
            delay = backoff_delay(attempt, config)
            log.warning("retrying", op=op, attempt=attempt, delay=delay, error=str(exc)[:200])
            await sleep(delay)
    raise RuntimeError(f"{op}: max_attempts must be >= 1")
