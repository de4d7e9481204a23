"""Memory pressure checks and cache eviction."""

from __future__ import annotations

import gc
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

import psutil

if TYPE_CHECKING:
    from catalog_sync.sync.metrics import PerformanceMonitor

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class Evictable(Protocol):
    name: str

    def clear(self) -> None: ...

    def __len__(self) -> int: ...


def process_memory_bytes() -> int:
    """Resident set size of the current process."""
    return psutil.Process().memory_info().rss


class MemoryGuard:
    """Clear every registered cache when process memory crosses a threshold.

    Best effort: memory is only sampled between pages and chunks, so a single
    large chunk can overshoot before the next check.
    """

    def __init__(
        self,
        threshold_bytes: int,
        *,
        usage_reader: Callable[[], int] = process_memory_bytes,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        self.threshold_bytes = threshold_bytes
        self._usage_reader = usage_reader
        self._monitor = monitor
        self._caches: list[Evictable] = []
        self.evictions = 0

    def register(self, cache: Evictable) -> None:
        if cache not in self._caches:
            self._caches.append(cache)

    @property
    def caches(self) -> tuple[Evictable, ...]:
        return tuple(self._caches)

    def check(self) -> None:
        try:
            usage = self._usage_reader()
        except (psutil.Error, OSError) as exc:
            logger.debug("Memory usage unavailable: %s", exc)
            return
        if usage <= self.threshold_bytes:
            return
        logger.warning(
            "High memory usage detected, clearing caches (used=%.2fMB threshold=%.2fMB)",
            usage / MB,
            self.threshold_bytes / MB,
        )
        self.evict()
        gc.collect()

    def evict(self) -> None:
        for cache in self._caches:
            cache.clear()
        self.evictions += 1
        if self._monitor is not None:
            self._monitor.increment_counter("cache_clears")
