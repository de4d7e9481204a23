"""Rate-limited request execution with retry and backoff."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from catalog_sync.errors import TransientRequestFailure
from catalog_sync.ingest.models import GraphQLResponse
from catalog_sync.ingest.shopify import CatalogAPI
from catalog_sync.sync.metrics import SyncMetrics
from catalog_sync.utils.rate_limit import RateLimiter
from catalog_sync.utils.retry import retry_async

logger = logging.getLogger(__name__)


class RetryingRequestExecutor:
    """Send one logical request, retrying failed attempts with capped backoff.

    Every attempt passes through the rate limiter first and counts as an API
    call; every failed attempt counts as an error. A response carrying a
    GraphQL ``errors`` list is a failed attempt. Rate-limit headers are read
    from error responses as well as successful ones.
    """

    def __init__(
        self,
        client: CatalogAPI,
        rate_limiter: RateLimiter,
        metrics: SyncMetrics,
        *,
        max_attempts: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 30000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.rate_limiter = rate_limiter
        self.metrics = metrics
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._sleep = sleep

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> GraphQLResponse:
        send = retry_async(
            self._attempt,
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            before_attempt=self._before_attempt,
            on_failure=self._on_failure,
            sleep=self._sleep,
        )
        return await send(query, variables)

    async def _before_attempt(self, attempt: int) -> None:
        await self.rate_limiter.acquire()
        self.metrics.api_calls += 1

    def _on_failure(self, attempt: int, exc: BaseException) -> None:
        self.metrics.errors += 1

    async def _attempt(self, query: str, variables: dict[str, Any] | None) -> GraphQLResponse:
        try:
            response = await self.client.execute(query, variables)
        except httpx.HTTPStatusError as exc:
            # A throttled 429 carries the window to wait out.
            self.rate_limiter.update_from_headers(exc.response.headers)
            raise
        self.rate_limiter.update_from_headers(response.headers)
        if response.errors:
            raise TransientRequestFailure(
                f"GraphQL errors: {json.dumps(response.errors, default=str)[:500]}",
                errors=list(response.errors),
            )
        return response
