import httpx
import pytest

from catalog_sync.errors import ExhaustedRetries, TransientRequestFailure
from catalog_sync.ingest.executor import RetryingRequestExecutor
from catalog_sync.ingest.models import GraphQLResponse
from catalog_sync.ingest.queries import build_product_query
from catalog_sync.sync.metrics import SyncMetrics
from catalog_sync.utils.rate_limit import RateLimiter
from catalog_sync.utils.retry import backoff_delay


def test_backoff_delay_doubles_and_caps():
    delays = [backoff_delay(attempt, 1000, 30000) for attempt in range(1, 8)]
    assert delays == [1000, 2000, 4000, 8000, 16000, 30000, 30000]


@pytest.mark.parametrize("base,cap", [(1, 1), (100, 750), (250, 60000), (1000, 1000)])
def test_backoff_delay_is_non_decreasing(base, cap):
    delays = [backoff_delay(attempt, base, cap) for attempt in range(1, 20)]
    assert delays == sorted(delays)
    assert max(delays) <= cap


def _executor(api, sleep, max_attempts=3):
    metrics = SyncMetrics()
    executor = RetryingRequestExecutor(
        api,
        RateLimiter(sleep=sleep),
        metrics,
        max_attempts=max_attempts,
        base_delay_ms=100,
        max_delay_ms=1000,
        sleep=sleep,
    )
    return executor, metrics


@pytest.mark.asyncio
async def test_recovers_after_two_failures(api, sleep):
    api.failures = [httpx.ConnectError("boom"), TransientRequestFailure("flaky")]
    executor, metrics = _executor(api, sleep)
    response = await executor.execute(*build_product_query("1"))
    assert response.data["product"]["id"] == "gid://shopify/Product/1"
    assert metrics.api_calls == 3
    assert metrics.errors == 2
    assert sleep.calls == [pytest.approx(0.1), pytest.approx(0.2)]


@pytest.mark.asyncio
async def test_raises_exhausted_retries(api, sleep):
    api.failures = [OSError("down")] * 3
    executor, metrics = _executor(api, sleep)
    with pytest.raises(ExhaustedRetries) as excinfo:
        await executor.execute(*build_product_query("1"))
    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.cause, OSError)
    assert metrics.errors == 3
    assert metrics.api_calls == 3
    assert len(sleep.calls) == 2


@pytest.mark.asyncio
async def test_graphql_error_list_is_a_failed_attempt(api, sleep):
    api.failures = [GraphQLResponse(data=None, errors=[{"message": "Throttled"}])]
    executor, metrics = _executor(api, sleep)
    await executor.execute(*build_product_query("1"))
    assert metrics.errors == 1
    assert metrics.api_calls == 2


@pytest.mark.asyncio
async def test_programming_errors_are_not_retried(api, sleep):
    api.failures = [KeyError("id")]
    executor, metrics = _executor(api, sleep)
    with pytest.raises(KeyError):
        await executor.execute(*build_product_query("1"))
    assert metrics.api_calls == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_response_headers_feed_rate_limiter(api, sleep):
    api.headers = {"X-Shopify-Shop-Api-Call-Limit": "35/40"}
    executor, _ = _executor(api, sleep)
    await executor.execute(*build_product_query("1"))
    assert executor.rate_limiter.state.remaining_capacity == 5
