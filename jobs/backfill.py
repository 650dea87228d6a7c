"""One-time historical backfill executed at startup.

Safe to run on every restart: indicators that already hold enough history are
left alone and only dates that are not yet stored get inserted.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date, timedelta
from typing import Iterable

import duckdb
from dotenv import load_dotenv

from jobs.config import (
    FETCH_LIMIT,
    LOOKBACK_DAYS,
    REQUIRED_HISTORY,
    TRACKED_INDICATORS,
    IndicatorConfig,
)
from jobs.derive import compute_and_store_signal, utc_today
from pipelines.model import Observation
from pipelines.sources.fred import fetch_historical_observations
from storage.db import (
    connect,
    count_observations,
    find_or_create_indicator,
    insert_observation,
)

load_dotenv()

logger = logging.getLogger(__name__)


async def backfill_indicator_if_needed(
    conn: duckdb.DuckDBPyConnection,
    indicator: IndicatorConfig,
    *,
    today: date,
    required_history: int = REQUIRED_HISTORY,
    lookback_days: int = LOOKBACK_DAYS,
    fetch_limit: int = FETCH_LIMIT,
) -> int:
    """Backfill one indicator when it holds fewer than ``required_history`` points.

    Returns the number of inserted observations.
    """

    find_or_create_indicator(conn, indicator.code, indicator.name, indicator.unit)

    current = count_observations(conn, indicator.code)
    logger.info("Indicator %s has %s existing data points", indicator.code, current)
    if current >= required_history:
        logger.info(
            "Backfill skipped for %s - sufficient history exists (%s >= %s)",
            indicator.code,
            current,
            required_history,
        )
        return 0

    logger.info(
        "Starting backfill for %s - current count %s is below required %s",
        indicator.code,
        current,
        required_history,
    )
    observations = await fetch_historical_observations(
        indicator.fred_series_id, today - timedelta(days=lookback_days), fetch_limit
    )
    if not observations:
        logger.warning("No historical observations fetched from FRED for %s", indicator.code)
        return 0

    inserted = skipped = 0
    for obs in observations:
        stored = insert_observation(
            conn,
            Observation(
                indicator_code=indicator.code,
                value=obs.value,
                observed_on=obs.observed_on,
                source=indicator.source,
            ),
        )
        if stored:
            inserted += 1
        else:
            skipped += 1

    logger.info(
        "Backfill completed for %s: inserted %s rows, skipped %s duplicates",
        indicator.code,
        inserted,
        skipped,
    )
    return inserted


async def run_backfill_if_needed(
    conn: duckdb.DuckDBPyConnection,
    indicators: Iterable[IndicatorConfig] = TRACKED_INDICATORS,
    *,
    today: date | None = None,
) -> dict[str, int]:
    """Backfill every tracked indicator, then compute today's signals."""

    today = today or utc_today()
    indicators = tuple(indicators)
    inserted = {
        indicator.code: await backfill_indicator_if_needed(conn, indicator, today=today)
        for indicator in indicators
    }

    logger.info("Computing signals for all indicators after backfill")
    for indicator in indicators:
        compute_and_store_signal(conn, indicator.code, today)
    return inserted


async def backfill_async(today: date | None = None) -> dict[str, int]:
    conn = connect()
    try:
        return await run_backfill_if_needed(conn, today=today)
    finally:
        conn.close()


def main() -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    inserted = asyncio.run(backfill_async())
    logger.info("Backfill finished (rows inserted=%s).", sum(inserted.values()))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
