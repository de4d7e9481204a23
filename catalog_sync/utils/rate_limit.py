"""Call-budget rate limiting driven by upstream response headers."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)

CALL_LIMIT_HEADER = "x-shopify-shop-api-call-limit"
RETRY_AFTER_HEADER = "retry-after"
DEFAULT_BUCKET_SIZE = 40


@dataclass(slots=True)
class RateLimitState:
    remaining_capacity: int
    bucket_size: int
    reset_at: float


class RateLimiter:
    """Leaky-bucket gate fed by the ``used/limit`` header of each response.

    ``acquire`` waits once for the reset window when the bucket is nearly
    empty and then proceeds; set ``recheck`` to keep waiting while a later
    response has pushed the window further out.
    """

    def __init__(
        self,
        *,
        bucket_size: int = DEFAULT_BUCKET_SIZE,
        recheck: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self.recheck = recheck
        self.state = RateLimitState(
            remaining_capacity=bucket_size,
            bucket_size=bucket_size,
            reset_at=clock() + 1.0,
        )
        self.waits = 0

    def _exhausted(self, now: float) -> bool:
        return self.state.remaining_capacity <= 1 and now < self.state.reset_at

    async def acquire(self) -> None:
        now = self._clock()
        while self._exhausted(now):
            wait = self.state.reset_at - now
            logger.warning("Rate limit approaching, waiting %.0fms", wait * 1000)
            self.waits += 1
            await self._sleep(wait)
            if not self.recheck:
                return
            now = self._clock()

    def update(self, remaining: int, bucket_size: int, retry_after: float | None = None) -> None:
        bucket_size = max(int(bucket_size), 1)
        self.state.bucket_size = bucket_size
        self.state.remaining_capacity = min(max(int(remaining), 0), bucket_size)
        if retry_after is not None:
            self.state.reset_at = self._clock() + float(retry_after)

    def update_from_headers(self, headers: Mapping[str, str] | None) -> None:
        if not headers:
            return
        lowered = {key.lower(): value for key, value in headers.items()}
        retry_after = _parse_retry_after(lowered.get(RETRY_AFTER_HEADER))
        call_limit = lowered.get(CALL_LIMIT_HEADER)
        if call_limit:
            try:
                used, limit = (int(part) for part in call_limit.split("/", 1))
            except ValueError:
                logger.debug("Ignoring malformed call limit header %r", call_limit)
            else:
                self.update(limit - used, limit, retry_after)
                return
        if retry_after is not None:
            self.state.reset_at = self._clock() + retry_after

    def snapshot(self) -> dict[str, float | int]:
        return asdict(self.state)


def _parse_retry_after(value: str | None) -> float | None:
    if value in (None, ""):
        return None
    try:
        seconds = float(value)
    except ValueError:
        logger.debug("Ignoring malformed Retry-After header %r", value)
        return None
    if not math.isfinite(seconds):
        logger.debug("Ignoring non-finite Retry-After header %r", value)
        return None
    return max(seconds, 0.0)
