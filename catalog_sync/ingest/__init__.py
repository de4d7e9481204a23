"""Ingestion helpers."""

from __future__ import annotations

from catalog_sync.config import ShopifySettings
from catalog_sync.ingest.shopify import ShopifyGraphQLClient


def client_from_env() -> ShopifyGraphQLClient:
    return ShopifyGraphQLClient(ShopifySettings.from_env())
