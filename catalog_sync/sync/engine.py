"""Catalog synchronization orchestrator."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import pendulum
from sqlalchemy.engine import Engine

from catalog_sync.config import SyncConfig
from catalog_sync.db.persist import BulkPersister
from catalog_sync.db.schema import PRODUCT_CONFLICT_FIELDS, VARIANT_CONFLICT_FIELDS, products, variants
from catalog_sync.errors import CatalogSyncError, InvalidMode, InvalidSyncRequest
from catalog_sync.ingest import queries
from catalog_sync.ingest.executor import RetryingRequestExecutor
from catalog_sync.ingest.models import RemoteRecord
from catalog_sync.ingest.paginator import Paginator
from catalog_sync.ingest.shopify import CatalogAPI
from catalog_sync.ingest.transform import transform_products, transform_variants
from catalog_sync.sync.cache import MemoCache
from catalog_sync.sync.chunks import ChunkProcessor
from catalog_sync.sync.memory import MemoryGuard, process_memory_bytes
from catalog_sync.sync.metrics import PerformanceMonitor, SyncMetrics
from catalog_sync.utils.dates import format_watermark, parse_watermark
from catalog_sync.utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class SyncMode(str, enum.Enum):
    FULL = "full"
    PARTIAL = "partial"
    SINGLE = "single"


class SyncState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class SyncRequest:
    mode: SyncMode
    since: pendulum.DateTime | None = None
    limit: int | None = None
    product_id: str | None = None

    @classmethod
    def parse(cls, mode: str | SyncMode, params: Mapping[str, Any] | None = None) -> "SyncRequest":
        try:
            sync_mode = SyncMode(mode)
        except ValueError as exc:
            raise InvalidMode(mode) from exc
        params = params or {}
        if sync_mode is SyncMode.FULL:
            return cls(mode=sync_mode)
        if sync_mode is SyncMode.PARTIAL:
            if params.get("since") in (None, ""):
                raise InvalidSyncRequest("partial sync requires 'since'")
            limit = params.get("limit")
            if limit is not None:
                if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
                    raise InvalidSyncRequest(f"limit must be a positive integer, got {limit!r}")
            return cls(mode=sync_mode, since=parse_watermark(params["since"]), limit=limit)
        product_id = params.get("id") or params.get("product_id")
        if not product_id:
            raise InvalidSyncRequest("single sync requires 'id'")
        return cls(mode=sync_mode, product_id=str(product_id))


@dataclass(slots=True)
class SyncResult:
    sync_id: str
    mode: SyncMode
    products_processed: int
    variants_processed: int
    duration_ms: float
    metrics: dict[str, int]
    memory_delta_bytes: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "sync_id": self.sync_id,
            "mode": self.mode.value,
            "products_processed": self.products_processed,
            "variants_processed": self.variants_processed,
            "duration_ms": self.duration_ms,
            "metrics": dict(self.metrics),
            "memory_delta_bytes": self.memory_delta_bytes,
        }


class CatalogSynchronizer:
    """Reconcile the remote catalog with the local store.

    One instance owns its rate-limit state, caches and counters. Calls to
    ``sync`` on the same instance run one at a time. A failure after some
    batches were flushed leaves those batches committed.
    """

    def __init__(
        self,
        engine: Engine,
        client: CatalogAPI,
        config: SyncConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        memory_reader: Callable[[], int] = process_memory_bytes,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        self.config = config or SyncConfig()
        self.client = client
        self.metrics = SyncMetrics()
        self.performance = monitor or PerformanceMonitor(memory_reader=memory_reader)
        self.rate_limiter = RateLimiter(recheck=self.config.rate_limit_recheck, sleep=sleep)
        self.memory_guard = MemoryGuard(
            self.config.memory_threshold_bytes,
            usage_reader=memory_reader,
            monitor=self.performance,
        )
        self.cost_cache: MemoCache[dict[str, Decimal]] = MemoCache("cost", self.metrics)
        self.memory_guard.register(self.cost_cache)
        self.executor = RetryingRequestExecutor(
            client,
            self.rate_limiter,
            self.metrics,
            max_attempts=self.config.max_retries,
            base_delay_ms=self.config.base_delay_ms,
            max_delay_ms=self.config.max_delay_ms,
            sleep=sleep,
        )
        self.paginator = Paginator(self.executor, self.memory_guard)
        self.chunks = ChunkProcessor(self.memory_guard)
        self.persister = BulkPersister(engine, self.metrics, monitor=self.performance)
        self.state = SyncState.IDLE
        self.last_outcome: SyncState | None = None
        self.stage: str | None = None
        self._lock = asyncio.Lock()

    @property
    def caches(self) -> dict[str, MemoCache]:
        return {cache.name: cache for cache in self.memory_guard.caches}

    async def sync(self, mode: str | SyncMode = SyncMode.FULL, params: Mapping[str, Any] | None = None) -> SyncResult:
        request = SyncRequest.parse(mode, params)
        async with self._lock:
            return await self._run(request)

    async def _run(self, request: SyncRequest) -> SyncResult:
        sync_id = f"sync_{time.time_ns() // 1_000_000}"
        self.state = SyncState.RUNNING
        self.stage = None
        self.performance.start_timer(sync_id, mode=request.mode.value)
        self.performance.take_memory_snapshot(f"{sync_id}_start")
        logger.info("Starting %s sync %s", request.mode.value, sync_id)
        try:
            if request.mode is SyncMode.FULL:
                product_count, variant_count = await self._full_sync()
            elif request.mode is SyncMode.PARTIAL:
                product_count, variant_count = await self._partial_sync(request.since, request.limit)
            else:
                product_count, variant_count = await self._single_sync(request.product_id)
        except Exception as exc:
            self.metrics.errors += 1
            self.state = SyncState.FAILED
            self.last_outcome = SyncState.FAILED
            if isinstance(exc, CatalogSyncError):
                exc.mode = request.mode.value
                exc.stage = exc.stage or self.stage
            self.performance.end_timer(sync_id)
            logger.exception("Sync %s failed during %s", sync_id, self.stage)
            raise
        self.performance.take_memory_snapshot(f"{sync_id}_end")
        timing = self.performance.end_timer(sync_id)
        self.state = SyncState.COMPLETED
        self.last_outcome = SyncState.COMPLETED
        result = SyncResult(
            sync_id=sync_id,
            mode=request.mode,
            products_processed=product_count,
            variants_processed=variant_count,
            duration_ms=timing.duration_ms if timing else 0.0,
            metrics=self.metrics.snapshot(),
            memory_delta_bytes=timing.memory_delta_bytes if timing else 0,
        )
        logger.info(
            "Sync %s completed in %.2fms: %s products, %s variants",
            sync_id,
            result.duration_ms,
            product_count,
            variant_count,
        )
        self.state = SyncState.IDLE
        self.stage = None
        return result

    async def _full_sync(self) -> tuple[int, int]:
        nodes = await self._stage(
            "fetch_products",
            self.paginator.fetch_all(queries.build_products_query(self.config.batch_size)),
        )
        return await self._pipeline(nodes)

    async def _partial_sync(self, since: pendulum.DateTime, limit: int | None) -> tuple[int, int]:
        search = f"updated_at:>='{format_watermark(since)}'"
        page_size = min(self.config.batch_size, limit or self.config.batch_size)
        nodes = await self._stage(
            "fetch_products",
            self.paginator.fetch_all(
                queries.build_products_query(page_size, search=search),
                limit=limit,
            ),
        )
        return await self._pipeline(nodes)

    async def _single_sync(self, product_id: str) -> tuple[int, int]:
        query, variables = queries.build_product_query(product_id)
        response = await self._stage("fetch_products", self.executor.execute(query, variables))
        node = queries.extract_product(response)
        if node is None:
            logger.warning("Product %s not found upstream; nothing to sync", product_id)
            return 0, 0
        return await self._pipeline([node])

    async def _pipeline(self, product_nodes: list[RemoteRecord]) -> tuple[int, int]:
        self.metrics.total_products += len(product_nodes)
        product_ids = [node["id"] for node in product_nodes]
        variant_nodes = await self._stage("fetch_variants", self._fetch_variants(product_ids))
        self.metrics.total_variants += len(variant_nodes)
        if self.config.include_costs and variant_nodes:
            await self._stage("fetch_costs", self._attach_unit_costs(variant_nodes, product_ids))

        self.stage = "process_products"
        with self.performance.timer("process_products"):
            product_records = self.chunks.process_in_chunks(product_nodes, self.config.chunk_size, transform_products)
        self.stage = "process_variants"
        with self.performance.timer("process_variants"):
            variant_records = self.chunks.process_in_chunks(variant_nodes, self.config.chunk_size, transform_variants)

        await self._stage(
            "persist_products",
            self.persister.flush(products, product_records, PRODUCT_CONFLICT_FIELDS, self.config.persist_batch_size),
        )
        await self._stage(
            "persist_variants",
            self.persister.flush(variants, variant_records, VARIANT_CONFLICT_FIELDS, self.config.persist_batch_size),
        )
        self.performance.track_rate("products_synced", len(product_records))
        return len(product_records), len(variant_records)

    async def _fetch_variants(self, product_ids: list[str]) -> list[RemoteRecord]:
        if not product_ids:
            return []
        return await self.paginator.fetch_batched(
            product_ids,
            self.config.batch_size,
            queries.build_variants_query,
            queries.extract_variants,
        )

    async def fetch_cost_data(self, product_ids: list[str]) -> dict[str, Decimal]:
        """Unit cost per variant id for one batch of products, memoized by id set."""

        async def compute() -> dict[str, Decimal]:
            query, variables = queries.build_cost_query(sorted(set(product_ids)))
            response = await self.executor.execute(query, variables)
            return queries.extract_costs(response)

        return await self.cost_cache.get_or_compute(product_ids, compute)

    async def _attach_unit_costs(self, variant_nodes: list[RemoteRecord], product_ids: list[str]) -> None:
        costs: dict[str, Decimal] = {}
        for start in range(0, len(product_ids), self.config.batch_size):
            costs.update(await self.fetch_cost_data(product_ids[start : start + self.config.batch_size]))
        for node in variant_nodes:
            if node["id"] in costs:
                node["unitCost"] = costs[node["id"]]

    async def _stage(self, name: str, work: Awaitable[Any]) -> Any:
        self.stage = name
        with self.performance.timer(name):
            return await work

    def get_metrics(self) -> dict[str, Any]:
        return {
            **self.metrics.snapshot(),
            "performance": self.performance.get_metrics(),
            "cache_stats": {name: len(cache) for name, cache in self.caches.items()},
            "rate_limit_state": self.rate_limiter.snapshot(),
            "state": self.state.value,
        }

    def generate_performance_report(self) -> dict[str, Any]:
        report = self.performance.generate_report()
        report["sync_metrics"] = self.metrics.snapshot()
        report["cache_efficiency"] = {
            "hit_rate": self.metrics.cache_hit_rate,
            "total_requests": self.metrics.cache_hits + self.metrics.cache_misses,
        }
        return report

    def reset(self) -> None:
        self.metrics.reset()
        self.memory_guard.evict()
        self.performance.reset()
        logger.info("Synchronizer reset completed")
