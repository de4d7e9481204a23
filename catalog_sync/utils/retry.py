"""Retry helpers with capped exponential backoff."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable

import httpx

from catalog_sync.errors import ExhaustedRetries, TransientRequestFailure

logger = logging.getLogger(__name__)

RETRY_EXCEPTIONS = (httpx.HTTPError, OSError, asyncio.TimeoutError, TransientRequestFailure)


def backoff_delay(attempt: int, base_delay_ms: int, max_delay_ms: int) -> int:
    """Delay in milliseconds to wait after failed ``attempt`` (1-based)."""
    if attempt < 1:
        raise ValueError("attempt is 1-based")
    return min(base_delay_ms * 2 ** (attempt - 1), max_delay_ms)


def retry_async(
    func: Callable[..., Awaitable],
    *,
    max_attempts: int,
    base_delay_ms: int,
    max_delay_ms: int,
    before_attempt: Callable[[int], Awaitable[None]] | None = None,
    on_failure: Callable[[int, BaseException], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
):
    """Wrap ``func`` so transient failures are retried with backoff.

    The final failure is raised as ``ExhaustedRetries`` chained from the last
    cause. Exceptions outside ``RETRY_EXCEPTIONS`` propagate on first sight.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        for attempt in range(1, max_attempts + 1):
            if before_attempt is not None:
                await before_attempt(attempt)
            try:
                return await func(*args, **kwargs)
            except RETRY_EXCEPTIONS as exc:
                if on_failure is not None:
                    on_failure(attempt, exc)
                if attempt == max_attempts:
                    raise ExhaustedRetries(attempt, exc) from exc
                delay = backoff_delay(attempt, base_delay_ms, max_delay_ms)
                logger.warning("Request failed (attempt %s/%s), retrying in %sms: %s", attempt, max_attempts, delay, exc)
                await sleep(delay / 1000)
        raise AssertionError("unreachable")  # pragma: no cover

    return wrapper
