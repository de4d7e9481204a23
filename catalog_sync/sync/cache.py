"""Memoization caches for derived remote lookups."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Generic, TypeVar

from catalog_sync.sync.metrics import SyncMetrics

logger = logging.getLogger(__name__)

V = TypeVar("V")


def cache_key(identifiers: Iterable[object]) -> str:
    """Order-independent key for a set of identifiers."""
    return ",".join(sorted({str(value) for value in identifiers}))


class MemoCache(Generic[V]):
    """Memoize results keyed by an identifier set.

    Entries never expire on their own; only ``clear`` (memory pressure or an
    explicit reset) removes them, so every value can always be recomputed
    from a fresh remote query.
    """

    def __init__(self, name: str, metrics: SyncMetrics) -> None:
        self.name = name
        self.metrics = metrics
        self._entries: dict[str, V] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifiers: object) -> bool:
        if isinstance(identifiers, str):
            return identifiers in self._entries
        return cache_key(identifiers) in self._entries  # type: ignore[arg-type]

    async def get_or_compute(self, identifiers: Iterable[object], compute: Callable[[], Awaitable[V]]) -> V:
        key = cache_key(identifiers)
        if key in self._entries:
            self.metrics.cache_hits += 1
            return self._entries[key]
        self.metrics.cache_misses += 1
        value = await compute()
        self._entries[key] = value
        return value

    def clear(self) -> None:
        if self._entries:
            logger.debug("Clearing %s cache (%s entries)", self.name, len(self._entries))
        self._entries.clear()
