"""Persist derived signals and daily risk snapshots at most once per day."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

import duckdb

from engine.risk import aggregate
from engine.signals import DXY_CODE, REAL_YIELD_CODE, derive_signal
from jobs.config import SIGNAL_WINDOW
from pipelines.model import RiskSnapshot, Signal
from storage.db import (
    connect,
    find_latest_signal,
    find_recent_observations,
    insert_risk_snapshot,
    insert_signal,
    risk_snapshot_exists,
    signal_exists,
)

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def compute_and_store_signal(
    conn: duckdb.DuckDBPyConnection, indicator_code: str, as_of: date
) -> Signal | None:
    """Derive and store the signal for ``indicator_code`` on ``as_of``.

    Skips without deriving when a signal already exists for that day. Returns
    the stored signal, or ``None`` when nothing was written.
    """

    logger.info("Evaluating signal for indicator=%s asOfDate=%s", indicator_code, as_of)

    if signal_exists(conn, indicator_code, as_of):
        logger.info("Signal already exists for %s on %s - skipping", indicator_code, as_of)
        return None

    recent = find_recent_observations(
        conn, indicator_code, SIGNAL_WINDOW, on_or_before=as_of
    )
    outcome = derive_signal(indicator_code, recent, as_of)
    if outcome is None:
        logger.info(
            "Not enough data points (%s) to compute signal for %s - skipping",
            len(recent),
            indicator_code,
        )
        return None

    signal = outcome.to_signal(indicator_code, as_of)
    logger.info("Signal evaluated: type=%s, reason=%s", signal.signal_type.value, signal.reason)
    if not insert_signal(conn, signal):
        return None
    logger.info("Inserted signal for %s on %s", indicator_code, as_of)
    return signal


def compute_and_store_risk_snapshot(
    conn: duckdb.DuckDBPyConnection, as_of: date
) -> RiskSnapshot | None:
    """Aggregate the latest signals into the gold risk snapshot for ``as_of``.

    A second call for the same day is a no-op returning ``None``.
    """

    logger.info("Computing gold risk snapshot for date %s", as_of)

    if risk_snapshot_exists(conn, as_of):
        logger.info("Gold risk snapshot already exists for date %s - skipping", as_of)
        return None

    assessment = aggregate(
        find_latest_signal(conn, REAL_YIELD_CODE),
        find_latest_signal(conn, DXY_CODE),
    )
    logger.info(
        "Gold risk computed: level=%s, reason=%s", assessment.level.value, assessment.reason
    )

    snapshot = assessment.to_snapshot(as_of)
    if not insert_risk_snapshot(conn, snapshot):
        return None
    logger.info("Inserted gold risk snapshot for date %s", as_of)
    return snapshot


def run_risk_job(today: date | None = None) -> RiskSnapshot | None:
    """Scheduler entry point for the daily risk aggregation."""

    conn = connect()
    try:
        return compute_and_store_risk_snapshot(conn, today or utc_today())
    finally:
        conn.close()


__all__ = [
    "compute_and_store_risk_snapshot",
    "compute_and_store_signal",
    "run_risk_job",
    "utc_today",
]
