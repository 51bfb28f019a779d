"""Bounded exponential backoff for idempotent backend reads."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def backoff_delays(
    max_attempts: int, delay_ms: int, backoff_factor: float, max_delay_ms: int
) -> list[float]:
    """Seconds to wait after each failed attempt except the last."""
    delays: list[float] = []
    current = float(delay_ms)
    for _ in range(max(max_attempts - 1, 0)):
        delays.append(min(current, max_delay_ms) / 1000)
        current *= backoff_factor
    return delays


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    delay_ms: int = 1000,
    backoff_factor: float = 2.0,
    max_delay_ms: int = 10_000,
    name: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or ``max_attempts`` is exhausted.

    The final failure is re-raised unchanged; there is no wait after it.
    """
    delays = backoff_delays(max_attempts, delay_ms, backoff_factor, max_delay_ms)
    for attempt, wait in enumerate(delays, start=1):
        try:
            return await operation()
        except Exception as e:
            logger.warning(
                "retry_attempt",
                operation=name,
                attempt=attempt,
                max_attempts=max_attempts,
                wait_seconds=wait,
                error=str(e),
            )
            await asyncio.sleep(wait)
    return await operation()
