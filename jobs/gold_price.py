"""Build a daily gold price history from live cache refreshes."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date

import duckdb
from dotenv import load_dotenv

from jobs.derive import utc_today
from pipelines.errors import GoldApiUnavailableError
from pipelines.model import GoldPriceHistoryPoint
from pipelines.price_cache import GoldPriceCache, get_price_cache
from storage.db import connect, gold_price_exists, insert_gold_price

load_dotenv()

logger = logging.getLogger(__name__)


async def record_gold_price_history(
    conn: duckdb.DuckDBPyConnection,
    cache: GoldPriceCache,
    *,
    today: date | None = None,
) -> GoldPriceHistoryPoint | None:
    """Store today's gold price once, refreshing the shared cache on the way.

    Upstream failures are logged and absorbed; a stale value is never written
    to history.
    """

    today = today or utc_today()
    if gold_price_exists(conn, today):
        logger.info("Gold price for %s already exists - skipping", today)
        return None

    try:
        snapshot = await cache.refresh()
    except GoldApiUnavailableError as exc:
        logger.warning(
            "[requestId=%s] [errorType=%s] No gold price available (consecutive failures=%s)",
            exc.request_id,
            exc.error_type.value,
            cache.consecutive_failures,
        )
        return None

    if not snapshot.is_live:
        logger.warning(
            "Gold price refresh served stale data (consecutive failures=%s); not recording history",
            cache.consecutive_failures,
        )
        return None

    point = GoldPriceHistoryPoint(price_on=today, price=snapshot.price, source=snapshot.source)
    if not insert_gold_price(conn, point):
        return None
    logger.info("Inserted gold price %s for date %s", point.price, today)
    return point


async def run_gold_price_job(cache: GoldPriceCache | None = None) -> GoldPriceHistoryPoint | None:
    """Scheduler entry point for the gold price history refresh."""

    conn = connect()
    try:
        return await record_gold_price_history(conn, cache or get_price_cache())
    finally:
        conn.close()


def main() -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    point = asyncio.run(run_gold_price_job())
    logger.info("Gold price job finished (recorded=%s).", point is not None)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
