"""FastAPI application for triggering syncs and reading metrics."""

from __future__ import annotations

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from catalog_sync.config import SyncConfig
from catalog_sync.db.migrate import run_migrations
from catalog_sync.db.session import create_engine_from_env
from catalog_sync.errors import ExhaustedRetries, InvalidMode, InvalidSyncRequest, PersistenceError
from catalog_sync.ingest import client_from_env
from catalog_sync.sync.engine import CatalogSynchronizer

logger = logging.getLogger(__name__)

app = FastAPI(title="Catalog Sync API")


class SyncRequestBody(BaseModel):
    mode: str = "full"
    since: datetime | None = None
    limit: int | None = Field(default=None, gt=0)
    id: str | None = None


class SyncResponse(BaseModel):
    sync_id: str
    mode: str
    products_processed: int
    variants_processed: int
    duration_ms: float
    metrics: dict[str, int]


@lru_cache(maxsize=1)
def get_synchronizer() -> CatalogSynchronizer:
    engine = create_engine_from_env()
    run_migrations(engine)
    return CatalogSynchronizer(engine, client_from_env(), SyncConfig.from_env())


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/sync", response_model=SyncResponse)
async def trigger_sync(
    payload: SyncRequestBody,
    synchronizer: CatalogSynchronizer = Depends(get_synchronizer),
) -> SyncResponse:
    params: dict[str, Any] = payload.model_dump(exclude={"mode"}, exclude_none=True)
    try:
        result = await synchronizer.sync(payload.mode, params)
    except (InvalidMode, InvalidSyncRequest) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ExhaustedRetries as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return SyncResponse(**{key: value for key, value in result.as_dict().items() if key in SyncResponse.model_fields})


@app.get("/metrics")
async def metrics(synchronizer: CatalogSynchronizer = Depends(get_synchronizer)) -> dict[str, Any]:
    return synchronizer.get_metrics()


@app.get("/metrics/report")
async def performance_report(synchronizer: CatalogSynchronizer = Depends(get_synchronizer)) -> dict[str, Any]:
    return synchronizer.generate_performance_report()
