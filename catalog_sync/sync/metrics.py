"""Sync counters and performance instrumentation."""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any

from catalog_sync.sync.memory import MB, process_memory_bytes
from catalog_sync.utils.dates import now_utc

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncMetrics:
    api_calls: int = 0
    db_queries: int = 0
    errors: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    total_products: int = 0
    total_variants: int = 0

    def snapshot(self) -> dict[str, int]:
        return asdict(self)

    def reset(self) -> None:
        for name in self.snapshot():
            setattr(self, name, 0)

    @property
    def cache_hit_rate(self) -> float | None:
        total = self.cache_hits + self.cache_misses
        if not total:
            return None
        return self.cache_hits / total * 100


@dataclass(slots=True)
class TimerResult:
    name: str
    duration_ms: float
    memory_delta_bytes: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class _RunningTimer:
    started: float
    start_memory: int
    metadata: dict[str, Any]


@dataclass(slots=True)
class _Rate:
    count: float
    started: float
    last_update: float


class PerformanceMonitor:
    """Named timers, counters, memory snapshots and event rates."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.perf_counter,
        memory_reader: Callable[[], int] = process_memory_bytes,
    ) -> None:
        self.enabled = enabled
        self._clock = clock
        self._memory_reader = memory_reader
        self._running: dict[str, _RunningTimer] = {}
        self._timings: dict[str, list[TimerResult]] = defaultdict(list)
        self._counters: dict[str, float] = defaultdict(float)
        self._rates: dict[str, _Rate] = {}
        self.memory_snapshots: list[dict[str, Any]] = []

    def start_timer(self, name: str, **metadata: Any) -> None:
        if not self.enabled:
            return
        self._running[name] = _RunningTimer(self._clock(), self._memory_reader(), metadata)
        logger.debug("Timer started: %s", name)

    def end_timer(self, name: str) -> TimerResult | None:
        if not self.enabled:
            return None
        timer = self._running.pop(name, None)
        if timer is None:
            logger.warning("Timer not found: %s", name)
            return None
        result = TimerResult(
            name=name,
            duration_ms=(self._clock() - timer.started) * 1000,
            memory_delta_bytes=self._memory_reader() - timer.start_memory,
            metadata=timer.metadata,
        )
        self._timings[name].append(result)
        logger.debug(
            "Timer completed: %s duration=%.2fms memory_delta=%.2fMB",
            name,
            result.duration_ms,
            result.memory_delta_bytes / MB,
        )
        return result

    @contextmanager
    def timer(self, name: str, **metadata: Any) -> Iterator[None]:
        self.start_timer(name, **metadata)
        try:
            yield
        finally:
            self.end_timer(name)

    def increment_counter(self, name: str, value: float = 1) -> None:
        if self.enabled:
            self._counters[name] += value

    def get_counter(self, name: str) -> float:
        return self._counters.get(name, 0)

    def take_memory_snapshot(self, label: str) -> dict[str, Any] | None:
        if not self.enabled:
            return None
        snapshot = {"label": label, "timestamp": now_utc().isoformat(), "rss_bytes": self._memory_reader()}
        self.memory_snapshots.append(snapshot)
        return snapshot

    def track_rate(self, name: str, value: float = 1) -> None:
        if not self.enabled:
            return
        now = self._clock()
        rate = self._rates.setdefault(name, _Rate(count=0, started=now, last_update=now))
        rate.count += value
        rate.last_update = now

    def get_rate(self, name: str) -> float:
        """Events per second between the first and the latest update."""
        rate = self._rates.get(name)
        if rate is None:
            return 0.0
        elapsed = rate.last_update - rate.started
        return rate.count / elapsed if elapsed > 0 else 0.0

    def get_metrics(self) -> dict[str, Any]:
        return {
            "timers": {name: [asdict(result) for result in results] for name, results in self._timings.items()},
            "counters": dict(self._counters),
            "memory_snapshots": list(self.memory_snapshots),
            "rates": {name: self.get_rate(name) for name in self._rates},
        }

    def generate_report(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        current = self._memory_reader()
        report = {
            "timestamp": now_utc().isoformat(),
            "memory": {"current_bytes": current, "snapshots": metrics["memory_snapshots"]},
            "timers": metrics["timers"],
            "counters": metrics["counters"],
            "rates": metrics["rates"],
            "summary": {
                "total_operations": sum(self._counters.values()),
                "active_timers": len(self._running),
                "memory_usage": f"{current / MB:.2f}MB",
            },
        }
        logger.info("Performance report generated: %s", report["summary"])
        return report

    def reset(self) -> None:
        self._running.clear()
        self._timings.clear()
        self._counters.clear()
        self._rates.clear()
        self.memory_snapshots.clear()
        logger.info("Performance metrics reset")
