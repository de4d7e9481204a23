"""Shopify Admin GraphQL transport."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from catalog_sync.config import ShopifySettings
from catalog_sync.errors import TransientRequestFailure
from catalog_sync.ingest.models import GraphQLResponse

logger = logging.getLogger(__name__)

USER_AGENT = "CatalogSync/1.0"


class CatalogAPI(Protocol):
    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> GraphQLResponse: ...


class ShopifyGraphQLClient:
    def __init__(
        self,
        settings: ShopifySettings,
        *,
        session: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.settings = settings
        self._session = session or httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT})

    async def close(self) -> None:
        await self._session.aclose()

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> GraphQLResponse:
        response = await self._session.post(
            self.settings.graphql_url,
            json={"query": query, "variables": variables or {}},
            headers={"X-Shopify-Access-Token": self.settings.access_token},
        )
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientRequestFailure(f"Invalid JSON from {self.settings.graphql_url}") from exc
        return GraphQLResponse(
            data=payload.get("data"),
            errors=payload.get("errors"),
            headers=dict(response.headers),
        )
