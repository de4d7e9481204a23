"""Sync job entry points."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from typing import Any, Mapping

from dotenv import load_dotenv

from catalog_sync.config import SyncConfig
from catalog_sync.db.migrate import run_migrations
from catalog_sync.db.session import create_engine_from_env
from catalog_sync.ingest import client_from_env
from catalog_sync.sync.engine import CatalogSynchronizer, SyncResult
from catalog_sync.utils.dates import format_watermark, hours_ago

logger = logging.getLogger(__name__)

DEFAULT_PARTIAL_WINDOW_HOURS = 2


def configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


async def run_sync(mode: str = "full", params: Mapping[str, Any] | None = None) -> SyncResult:
    load_dotenv()
    engine = create_engine_from_env()
    client = None
    try:
        run_migrations(engine)
        client = client_from_env()
        synchronizer = CatalogSynchronizer(engine, client, SyncConfig.from_env())
        result = await synchronizer.sync(mode, params)
    finally:
        if client is not None:
            await client.close()
        engine.dispose()
    logger.info("Sync report: %s", result.as_dict())
    return result


async def run_partial_window(hours: int | None = None) -> SyncResult:
    """Partial sync over a trailing window; there is no stored watermark."""
    window = hours or int(os.environ.get("SYNC_PARTIAL_WINDOW_HOURS", DEFAULT_PARTIAL_WINDOW_HOURS))
    return await run_sync("partial", {"since": format_watermark(hours_ago(window))})


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Synchronize the Shopify catalog into the local database")
    parser.add_argument("mode", choices=["full", "partial", "single"])
    parser.add_argument("--since", help="watermark for partial sync (ISO-8601)")
    parser.add_argument("--limit", type=int, help="maximum products for partial sync")
    parser.add_argument("--id", dest="product_id", help="product id for single sync")
    args = parser.parse_args(argv)
    configure_logging()
    if args.mode == "partial" and not args.since:
        asyncio.run(run_partial_window())
        return
    params = {"since": args.since, "limit": args.limit, "id": args.product_id}
    asyncio.run(run_sync(args.mode, {k: v for k, v in params.items() if v is not None}))


if __name__ == "__main__":
    main()
