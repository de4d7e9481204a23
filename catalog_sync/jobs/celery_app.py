"""Celery configuration for scheduled syncs."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("catalog_sync", broker=broker_url, backend=backend_url)
celery_app.conf.timezone = "UTC"
celery_app.conf.beat_schedule = {
    "nightly-full-sync": {
        "task": "catalog_sync.jobs.sync.full",
        "schedule": crontab(hour=int(os.environ.get("FULL_SYNC_HOUR", "3")), minute=0),
    },
    "hourly-partial-sync": {
        "task": "catalog_sync.jobs.sync.partial",
        "schedule": crontab(minute=int(os.environ.get("PARTIAL_SYNC_MINUTE", "15"))),
    },
}


@celery_app.task(name="catalog_sync.jobs.sync.full")
def full_sync_task() -> dict:  # pragma: no cover - executed by worker
    import asyncio

    from catalog_sync.jobs.sync import configure_logging, run_sync

    configure_logging()
    return asyncio.run(run_sync("full")).as_dict()


@celery_app.task(name="catalog_sync.jobs.sync.partial")
def partial_sync_task() -> dict:  # pragma: no cover - executed by worker
    import asyncio

    from catalog_sync.jobs.sync import configure_logging, run_partial_window

    configure_logging()
    return asyncio.run(run_partial_window()).as_dict()


@celery_app.task(name="catalog_sync.jobs.sync.single")
def single_sync_task(product_id: str) -> dict:  # pragma: no cover - executed by worker
    import asyncio

    from catalog_sync.jobs.sync import configure_logging, run_sync

    configure_logging()
    return asyncio.run(run_sync("single", {"id": product_id})).as_dict()
