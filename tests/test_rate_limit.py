import pytest

from catalog_sync.utils.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_update_from_call_limit_header():
    limiter = RateLimiter()
    limiter.update_from_headers({"X-Shopify-Shop-Api-Call-Limit": "35/40"})
    assert limiter.state.remaining_capacity == 5
    assert limiter.state.bucket_size == 40


def test_update_clamps_to_bucket():
    limiter = RateLimiter()
    limiter.update(90, 40)
    assert limiter.state.remaining_capacity == 40
    limiter.update(-3, 40)
    assert limiter.state.remaining_capacity == 0


def test_retry_after_moves_reset_window():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.update_from_headers({"x-shopify-shop-api-call-limit": "40/40", "Retry-After": "2.5"})
    assert limiter.state.remaining_capacity == 0
    assert limiter.state.reset_at == pytest.approx(102.5)


def test_malformed_headers_are_ignored():
    limiter = RateLimiter(bucket_size=40)
    limiter.update_from_headers({"X-Shopify-Shop-Api-Call-Limit": "lots", "Retry-After": "soon"})
    assert limiter.state.remaining_capacity == 40


@pytest.mark.parametrize("value", ["inf", "-inf", "nan"])
def test_non_finite_retry_after_is_ignored(value):
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.update_from_headers({"X-Shopify-Shop-Api-Call-Limit": "40/40", "Retry-After": value})
    assert limiter.state.remaining_capacity == 0
    assert limiter.state.reset_at == pytest.approx(101.0)

@pytest.mark.asyncio
async def test_acquire_does_not_wait_with_capacity(sleep):
    limiter = RateLimiter(sleep=sleep)
    limiter.update(2, 40)
    await limiter.acquire()
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_acquire_waits_until_reset_once(sleep):
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=sleep)
    limiter.update(1, 40, retry_after=2.5)
    await limiter.acquire()
    # The clock did not move, yet acquire proceeds after a single wait.
    assert sleep.calls == [pytest.approx(2.5)]
    assert limiter.waits == 1


@pytest.mark.asyncio
async def test_acquire_skips_wait_after_reset(sleep):
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=sleep)
    limiter.update(0, 40, retry_after=1)
    clock.now += 5
    await limiter.acquire()
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_recheck_waits_again_when_window_moves():
    clock = FakeClock()
    calls = []

    async def sleep(seconds):
        calls.append(seconds)
        clock.now += seconds
        if len(calls) == 1:
            limiter.update(0, 40, retry_after=3)

    limiter = RateLimiter(clock=clock, sleep=sleep, recheck=True)
    limiter.update(0, 40, retry_after=1)
    await limiter.acquire()
    assert calls == [pytest.approx(1), pytest.approx(3)]
