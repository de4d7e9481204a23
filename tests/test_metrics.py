import pytest

from catalog_sync.sync.metrics import PerformanceMonitor, SyncMetrics


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class FakeMemory:
    def __init__(self) -> None:
        self.rss = 1_000

    def __call__(self) -> int:
        return self.rss


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def memory():
    return FakeMemory()


@pytest.fixture()
def monitor(clock, memory):
    return PerformanceMonitor(clock=clock, memory_reader=memory)


def test_timer_records_duration_and_memory_delta(monitor, clock, memory):
    monitor.start_timer("fetch", mode="full")
    clock.now += 0.25
    memory.rss += 4_096
    result = monitor.end_timer("fetch")
    assert result.duration_ms == pytest.approx(250)
    assert result.memory_delta_bytes == 4_096
    assert result.metadata == {"mode": "full"}
    assert monitor.get_metrics()["timers"]["fetch"][0]["duration_ms"] == pytest.approx(250)


def test_ending_unknown_timer_returns_none(monitor):
    assert monitor.end_timer("missing") is None


def test_timer_context_manager_records_on_error(monitor, clock):
    with pytest.raises(RuntimeError):
        with monitor.timer("persist"):
            clock.now += 1
            raise RuntimeError("boom")
    assert monitor.get_metrics()["timers"]["persist"][0]["duration_ms"] == pytest.approx(1000)


def test_counters_and_rates(monitor, clock):
    monitor.increment_counter("cache_clears")
    monitor.increment_counter("cache_clears", 2)
    assert monitor.get_counter("cache_clears") == 3
    assert monitor.get_counter("unknown") == 0
    monitor.track_rate("products_synced", 10)
    assert monitor.get_rate("products_synced") == 0.0
    clock.now += 2
    monitor.track_rate("products_synced", 30)
    assert monitor.get_rate("products_synced") == pytest.approx(20)


def test_report_and_reset(monitor, memory):
    monitor.take_memory_snapshot("start")
    monitor.increment_counter("products_upserted", 5)
    monitor.start_timer("open")
    report = monitor.generate_report()
    assert report["memory"]["current_bytes"] == memory.rss
    assert report["memory"]["snapshots"][0]["label"] == "start"
    assert report["summary"]["total_operations"] == 5
    assert report["summary"]["active_timers"] == 1
    monitor.reset()
    metrics = monitor.get_metrics()
    assert metrics == {"timers": {}, "counters": {}, "memory_snapshots": [], "rates": {}}


def test_disabled_monitor_records_nothing(clock, memory):
    monitor = PerformanceMonitor(enabled=False, clock=clock, memory_reader=memory)
    monitor.start_timer("fetch")
    assert monitor.end_timer("fetch") is None
    monitor.increment_counter("x")
    assert monitor.take_memory_snapshot("start") is None
    assert monitor.get_counter("x") == 0


def test_sync_metrics_hit_rate_and_reset():
    metrics = SyncMetrics()
    assert metrics.cache_hit_rate is None
    metrics.cache_hits, metrics.cache_misses = 3, 1
    assert metrics.cache_hit_rate == 75
    metrics.reset()
    assert metrics.snapshot() == {
        "api_calls": 0,
        "db_queries": 0,
        "errors": 0,
        "cache_hits": 0,
        "cache_misses": 0,
        "total_products": 0,
        "total_variants": 0,
    }
