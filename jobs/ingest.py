"""Daily ingestion of tracked macro indicators from FRED.

One cycle per indicator runs CHECK_EXISTING -> FETCH -> PERSIST ->
TRIGGER_SIGNAL. Provider failures end the cycle quietly; the next scheduled
run is the retry.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date
from enum import Enum
from typing import Iterable

import duckdb
from dotenv import load_dotenv

from jobs.config import TRACKED_INDICATORS, IndicatorConfig, iter_indicators
from jobs.derive import compute_and_store_signal, utc_today
from pipelines.model import Observation
from pipelines.sources.fred import fetch_latest_observation
from storage.db import (
    connect,
    find_or_create_indicator,
    insert_observation,
    observation_exists,
)

load_dotenv()

logger = logging.getLogger(__name__)

INGEST_INDICATORS_ENV = "INGEST_INDICATORS"


class IngestOutcome(str, Enum):
    ALREADY_PRESENT = "already_present"
    NO_DATA = "no_data"
    DUPLICATE = "duplicate"
    INSERTED = "inserted"


async def ingest_indicator(
    conn: duckdb.DuckDBPyConnection,
    indicator: IndicatorConfig,
    *,
    today: date | None = None,
) -> IngestOutcome:
    """Run one ingestion cycle for ``indicator``."""

    today = today or utc_today()
    logger.info("Starting %s ingestion", indicator.name)

    if observation_exists(conn, indicator.code, today):
        logger.info(
            "%s value for %s already stored; skipping provider call.", indicator.code, today
        )
        return IngestOutcome.ALREADY_PRESENT

    observation = await fetch_latest_observation(indicator.fred_series_id)
    if observation is None:
        logger.warning("No valid observation received from FRED for %s", indicator.code)
        return IngestOutcome.NO_DATA

    logger.info(
        "Fetched %s observation: date=%s, value=%s",
        indicator.code,
        observation.observed_on,
        observation.value,
    )
    find_or_create_indicator(conn, indicator.code, indicator.name, indicator.unit)

    inserted = insert_observation(
        conn,
        Observation(
            indicator_code=indicator.code,
            value=observation.value,
            observed_on=observation.observed_on,
            source=indicator.source,
        ),
    )
    if not inserted:
        logger.info(
            "Skipping insert: %s value already exists for date %s",
            indicator.code,
            observation.observed_on,
        )
        return IngestOutcome.DUPLICATE

    logger.info("Inserted new %s value for date %s", indicator.code, observation.observed_on)
    compute_and_store_signal(conn, indicator.code, observation.observed_on)
    return IngestOutcome.INSERTED


def _resolve_indicators() -> tuple[IndicatorConfig, ...]:
    requested = os.getenv(INGEST_INDICATORS_ENV)
    if requested:
        codes = [code.strip() for code in requested.split(",") if code.strip()]
        selected = tuple(iter_indicators(codes))
        if selected:
            return selected
        logger.warning(
            "%s=%s did not match any tracked indicators; falling back to defaults.",
            INGEST_INDICATORS_ENV,
            requested,
        )

    return TRACKED_INDICATORS


async def ingest_all_async(
    indicators: Iterable[IndicatorConfig] | None = None,
    *,
    today: date | None = None,
) -> dict[str, IngestOutcome]:
    """Ingest each indicator in order, real yield before dollar index."""

    indicators = tuple(indicators) if indicators is not None else _resolve_indicators()
    outcomes: dict[str, IngestOutcome] = {}
    conn = connect()
    try:
        for indicator in indicators:
            outcomes[indicator.code] = await ingest_indicator(conn, indicator, today=today)
        return outcomes
    finally:
        conn.close()


async def run_indicator_job(code: str) -> IngestOutcome | None:
    """Scheduler entry point for a single indicator."""

    outcomes = await ingest_all_async(iter_indicators([code]))
    return outcomes.get(code)


def main(indicators: Iterable[IndicatorConfig] | None = None) -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    outcomes = asyncio.run(ingest_all_async(indicators))
    logger.info(
        "Ingestion finished (%s).",
        ", ".join(f"{code}={outcome.value}" for code, outcome in outcomes.items()),
    )
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
