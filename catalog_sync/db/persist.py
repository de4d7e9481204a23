"""Bulk insert-or-update of processed records."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from catalog_sync.db.schema import metadata
from catalog_sync.errors import ConfigError, PersistenceError
from catalog_sync.sync.metrics import PerformanceMonitor, SyncMetrics
from catalog_sync.utils.chunking import chunk_array

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class BulkPersister:
    """Upsert batches into the local store, one statement and transaction per batch.

    Rows whose primary key already exists only have ``conflict_fields``
    refreshed; every other column keeps its stored value.
    """

    def __init__(
        self,
        engine: Engine,
        metrics: SyncMetrics,
        *,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        self.engine = engine
        self.metrics = metrics
        self.monitor = monitor
        if engine.dialect.name not in _DIALECT_INSERTS:
            raise ConfigError(f"Bulk upsert is not supported on {engine.dialect.name}")

    async def upsert_batch(self, table: str | Table, records: Sequence[Any], conflict_fields: Iterable[str]) -> int:
        if not records:
            return 0
        target = _resolve_table(table)
        rows = [_as_row(target, record) for record in records]
        fields = tuple(conflict_fields)
        await asyncio.get_running_loop().run_in_executor(None, self._upsert, target, rows, fields)
        self.metrics.db_queries += 1
        if self.monitor is not None:
            self.monitor.increment_counter(f"{target.name}_upserted", len(rows))
        logger.info("Bulk upserted %s %s", len(rows), target.name)
        return len(rows)

    async def flush(
        self,
        table: str | Table,
        records: Sequence[Any],
        conflict_fields: Iterable[str],
        batch_size: int,
    ) -> int:
        """Upsert ``records`` in consecutive batches; earlier batches stay committed if a later one fails."""
        fields = tuple(conflict_fields)
        written = 0
        for batch in chunk_array(records, batch_size):
            written += await self.upsert_batch(table, batch, fields)
        return written

    def _upsert(self, table: Table, rows: list[dict[str, Any]], conflict_fields: tuple[str, ...]) -> None:
        insert = _DIALECT_INSERTS[self.engine.dialect.name]
        stmt = insert(table)
        keys = [column.name for column in table.primary_key.columns]
        if conflict_fields:
            stmt = stmt.on_conflict_do_update(
                index_elements=keys,
                set_={name: stmt.excluded[name] for name in conflict_fields},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=keys)
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt, rows)
        except SQLAlchemyError as exc:
            logger.error("Bulk upsert into %s failed: %s", table.name, exc)
            raise PersistenceError(table.name, len(rows), exc) from exc


def _resolve_table(table: str | Table) -> Table:
    if isinstance(table, Table):
        return table
    try:
        return metadata.tables[table]
    except KeyError as exc:
        raise ConfigError(f"Unknown table: {table}") from exc


def _as_row(table: Table, record: Any) -> dict[str, Any]:
    if is_dataclass(record):
        data: Mapping[str, Any] = asdict(record)
    else:
        data = record
    return {column.name: data.get(column.name) for column in table.columns}
