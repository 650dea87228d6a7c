from datetime import datetime
from decimal import Decimal

import pytest

from jobs.gold_price import record_gold_price_history
from pipelines.errors import ErrorCategory, GoldApiUnavailableError
from pipelines.model import PriceSnapshot
from pipelines.price_cache import GoldPriceCache
from storage.db import find_gold_price_history, gold_price_exists


class StubProvider:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def fetch_latest_gold_price(self):
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _snapshot(price):
    return PriceSnapshot(price=Decimal(price), as_of=datetime(2025, 3, 14, 9, 30), source="GoldPricez")


def _failure():
    return GoldApiUnavailableError("down", 500, ErrorCategory.SERVER_ERROR, "req00002")


@pytest.mark.asyncio
async def test_records_live_price_once_per_day(conn, today):
    provider = StubProvider(_snapshot("2650.10"))
    cache = GoldPriceCache(provider, ttl_seconds=300)

    point = await record_gold_price_history(conn, cache, today=today)
    again = await record_gold_price_history(conn, cache, today=today)

    assert point.price == Decimal("2650.10")
    assert point.source == "GoldPricez"
    assert again is None
    assert provider.calls == 1
    assert find_gold_price_history(conn, today) == [point]


@pytest.mark.asyncio
async def test_failure_without_cache_is_absorbed(conn, today):
    cache = GoldPriceCache(StubProvider(_failure()), ttl_seconds=300)

    assert await record_gold_price_history(conn, cache, today=today) is None
    assert cache.consecutive_failures == 1
    assert not gold_price_exists(conn, today)


@pytest.mark.asyncio
async def test_stale_price_is_not_recorded(conn, today):
    cache = GoldPriceCache(StubProvider(_snapshot("2650.10"), _failure()), ttl_seconds=300)
    await cache.refresh()

    assert await record_gold_price_history(conn, cache, today=today) is None
    assert not gold_price_exists(conn, today)
    assert cache.get_cached_price().price == Decimal("2650.10")
