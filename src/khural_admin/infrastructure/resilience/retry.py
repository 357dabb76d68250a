# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Retry utilities (async) with jittered exponential backoff."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry attempts."""

    total: int  # retries after the first attempt
    base: float = 0.2  # base backoff seconds
    cap: float = 2.0  # max backoff seconds
    jitter: bool = True  # full jitter if True

    def backoff(self, attempt: int) -> float:
        """Return the sleep before retry number ``attempt`` (0-based)."""
        delay = min(self.cap, self.base * (2**attempt))
        if self.jitter:
            delay = random.uniform(0, delay)  # noqa: S311
        return delay


NO_RETRY = RetryPolicy(total=0)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Callable[[Exception], bool],
    on_retry: Callable[[int, Exception], None] | None = None,
) -> T:
    """Run ``fn`` until it succeeds, a non-retryable error occurs, or retries run out.

    Args:
        fn: Zero-arg async function to execute.
        policy: Count/backoff configuration.
        retry_on: Returns True for exceptions worth another attempt.
        on_retry: Called with ``(attempt, exc)`` before each sleep.

    Returns:
        The return value of ``fn``.

    Raises:
        The last exception once retries are exhausted or not applicable.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= policy.total or not retry_on(exc):
                raise
            if on_retry is not None:
                on_retry(attempt, exc)
        await asyncio.sleep(policy.backoff(attempt))
        attempt += 1
