"""Cursor pagination and batched lookups over the catalog API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, Sequence

from catalog_sync.ingest.executor import RetryingRequestExecutor
from catalog_sync.ingest.models import GraphQLResponse, RemoteRecord
from catalog_sync.sync.memory import MemoryGuard
from catalog_sync.utils.chunking import chunk_array

logger = logging.getLogger(__name__)

QueryBuilder = Callable[[str | None], tuple[str, dict[str, Any]]]
BatchQueryBuilder = Callable[[list[str]], tuple[str, dict[str, Any]]]


@dataclass(slots=True)
class Page:
    number: int
    nodes: list[RemoteRecord]
    # Cursor to resume from after this page; None on the last page.
    next_cursor: str | None


class Paginator:
    def __init__(self, executor: RetryingRequestExecutor, memory_guard: MemoryGuard | None = None) -> None:
        self.executor = executor
        self.memory_guard = memory_guard

    async def iter_pages(
        self,
        build_query: QueryBuilder,
        *,
        connection: str = "products",
        cursor: str | None = None,
    ) -> AsyncIterator[Page]:
        """Yield pages lazily, starting after ``cursor``.

        Stops only when the API reports ``hasNextPage = false``.
        """
        number = 0
        while True:
            query, variables = build_query(cursor)
            response = await self.executor.execute(query, variables)
            edges, has_next = _connection(response, connection)
            number += 1
            cursor = edges[-1]["cursor"] if has_next and edges else None
            yield Page(number=number, nodes=[edge["node"] for edge in edges], next_cursor=cursor)
            if self.memory_guard is not None:
                self.memory_guard.check()
            if cursor is None:
                return

    async def fetch_all(
        self,
        build_query: QueryBuilder,
        *,
        connection: str = "products",
        limit: int | None = None,
    ) -> list[RemoteRecord]:
        records: list[RemoteRecord] = []
        pages = 0
        async with aclosing(self.iter_pages(build_query, connection=connection)) as stream:
            async for page in stream:
                pages += 1
                records.extend(page.nodes)
                logger.debug("Fetched page %s, %s: %s", page.number, connection, len(page.nodes))
                if limit is not None and len(records) >= limit:
                    records = records[:limit]
                    break
        logger.info("Fetched %s %s across %s page(s)", len(records), connection, pages)
        return records

    async def fetch_batched(
        self,
        identifiers: Sequence[str],
        batch_size: int,
        build_query: BatchQueryBuilder,
        extract: Callable[[GraphQLResponse], list[RemoteRecord]],
    ) -> list[RemoteRecord]:
        records: list[RemoteRecord] = []
        for batch in chunk_array(identifiers, batch_size):
            query, variables = build_query(batch)
            response = await self.executor.execute(query, variables)
            records.extend(extract(response))
        return records


def _connection(response: GraphQLResponse, name: str) -> tuple[list[dict[str, Any]], bool]:
    connection = (response.data or {}).get(name) or {}
    edges = connection.get("edges") or []
    has_next = bool((connection.get("pageInfo") or {}).get("hasNextPage"))
    return edges, has_next
