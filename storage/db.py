"""DuckDB persistence for indicators, observations, signals and risk snapshots.

Every table carries a primary key that encodes its uniqueness rule. Writers
check for an existing row first and treat a primary-key violation at insert
time as "already present", so repeated or overlapping runs never duplicate.
"""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path

import duckdb

from pipelines.model import (
    GoldPriceHistoryPoint,
    Indicator,
    Observation,
    RiskLevel,
    RiskSnapshot,
    Signal,
    SignalType,
)

DB_ENV_VAR = "GOLD_RISK_DB_PATH"
DEFAULT_DB_PATH = Path("data/gold_risk.duckdb")

INDICATORS_TABLE = "indicators"
INDICATOR_VALUES_TABLE = "indicator_values"
SIGNALS_TABLE = "signals"
RISK_SNAPSHOTS_TABLE = "gold_risk_snapshots"
GOLD_PRICE_HISTORY_TABLE = "gold_price_history"

logger = logging.getLogger(__name__)


def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def get_database_path(override: str | os.PathLike[str] | None = None) -> Path:
    """Resolve the DuckDB file path from an explicit override or environment variable."""

    if override is not None:
        return Path(override)
    env_value = os.getenv(DB_ENV_VAR)
    if env_value:
        return Path(env_value)
    return DEFAULT_DB_PATH


def connect(
    path: str | os.PathLike[str] | None = None,
    *,
    read_only: bool = False,
    ensure: bool = True,
) -> duckdb.DuckDBPyConnection:
    """Create a DuckDB connection, optionally ensuring schema availability."""

    db_path = get_database_path(path)
    if not read_only:
        _ensure_parent_dir(db_path)
    conn = duckdb.connect(str(db_path), read_only=read_only)
    if ensure and not read_only:
        ensure_schema(conn)
    return conn


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create the storage tables if they do not already exist."""

    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {INDICATORS_TABLE} (
            code TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            unit TEXT NOT NULL,
            active BOOLEAN NOT NULL DEFAULT TRUE
        )
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {INDICATOR_VALUES_TABLE} (
            indicator_code TEXT NOT NULL,
            observed_on DATE NOT NULL,
            value DECIMAL(19, 6) NOT NULL,
            source TEXT,
            PRIMARY KEY (indicator_code, observed_on)
        )
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {SIGNALS_TABLE} (
            indicator_code TEXT NOT NULL,
            as_of DATE NOT NULL,
            signal_type TEXT NOT NULL,
            reason TEXT,
            confidence DECIMAL(3, 2),
            PRIMARY KEY (indicator_code, as_of)
        )
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {RISK_SNAPSHOTS_TABLE} (
            as_of DATE PRIMARY KEY,
            risk_level TEXT NOT NULL,
            reason TEXT
        )
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {GOLD_PRICE_HISTORY_TABLE} (
            price_on DATE PRIMARY KEY,
            price DECIMAL(19, 6) NOT NULL,
            source TEXT
        )
        """
    )


def _insert(conn: duckdb.DuckDBPyConnection, sql: str, params: list[object]) -> bool:
    try:
        conn.execute(sql, params)
    except duckdb.ConstraintException:
        logger.info("Row already present, insert skipped: %s", params[:2])
        return False
    return True


# Indicators


def _row_to_indicator(row: tuple) -> Indicator:
    return Indicator(code=row[0], name=row[1], unit=row[2], active=row[3])


def find_indicator(conn: duckdb.DuckDBPyConnection, code: str) -> Indicator | None:
    row = conn.execute(
        f"SELECT code, name, unit, active FROM {INDICATORS_TABLE} WHERE code = ?",
        [code],
    ).fetchone()
    return _row_to_indicator(row) if row else None


def list_indicators(conn: duckdb.DuckDBPyConnection) -> list[Indicator]:
    rows = conn.execute(
        f"SELECT code, name, unit, active FROM {INDICATORS_TABLE} ORDER BY code"
    ).fetchall()
    return [_row_to_indicator(row) for row in rows]


def find_or_create_indicator(
    conn: duckdb.DuckDBPyConnection, code: str, name: str, unit: str
) -> Indicator:
    """Return the indicator for ``code``, creating it on first use."""

    existing = find_indicator(conn, code)
    if existing is not None:
        return existing
    _insert(
        conn,
        f"INSERT INTO {INDICATORS_TABLE} (code, name, unit, active) VALUES (?, ?, ?, TRUE)",
        [code, name, unit],
    )
    logger.info("Created indicator %s (%s)", code, name)
    return find_indicator(conn, code) or Indicator(code=code, name=name, unit=unit)


def set_indicator_active(conn: duckdb.DuckDBPyConnection, code: str, active: bool) -> None:
    conn.execute(
        f"UPDATE {INDICATORS_TABLE} SET active = ? WHERE code = ?", [active, code]
    )


# Observations


def _row_to_observation(row: tuple) -> Observation:
    return Observation(indicator_code=row[0], observed_on=row[1], value=row[2], source=row[3])


_OBSERVATION_COLUMNS = "indicator_code, observed_on, value, source"


def observation_exists(
    conn: duckdb.DuckDBPyConnection, code: str, observed_on: date
) -> bool:
    row = conn.execute(
        f"SELECT 1 FROM {INDICATOR_VALUES_TABLE} WHERE indicator_code = ? AND observed_on = ?",
        [code, observed_on],
    ).fetchone()
    return row is not None


def insert_observation(conn: duckdb.DuckDBPyConnection, observation: Observation) -> bool:
    """Insert an observation; returns ``False`` if one already exists for that day."""

    if observation_exists(conn, observation.indicator_code, observation.observed_on):
        return False
    return _insert(
        conn,
        f"INSERT INTO {INDICATOR_VALUES_TABLE} ({_OBSERVATION_COLUMNS}) VALUES (?, ?, ?, ?)",
        [
            observation.indicator_code,
            observation.observed_on,
            observation.value,
            observation.source,
        ],
    )


def count_observations(conn: duckdb.DuckDBPyConnection, code: str) -> int:
    row = conn.execute(
        f"SELECT COUNT(*) FROM {INDICATOR_VALUES_TABLE} WHERE indicator_code = ?",
        [code],
    ).fetchone()
    return int(row[0]) if row else 0


def find_recent_observations(
    conn: duckdb.DuckDBPyConnection,
    code: str,
    limit: int,
    *,
    on_or_before: date | None = None,
) -> list[Observation]:
    """Most recent observations for an indicator, newest first."""

    sql = f"SELECT {_OBSERVATION_COLUMNS} FROM {INDICATOR_VALUES_TABLE} WHERE indicator_code = ?"
    params: list[object] = [code]
    if on_or_before is not None:
        sql += " AND observed_on <= ?"
        params.append(on_or_before)
    sql += f" ORDER BY observed_on DESC LIMIT {int(limit)}"
    return [_row_to_observation(row) for row in conn.execute(sql, params).fetchall()]


def find_latest_observation(
    conn: duckdb.DuckDBPyConnection, code: str
) -> Observation | None:
    recent = find_recent_observations(conn, code, 1)
    return recent[0] if recent else None


def history_query() -> str:
    """SQL for an indicator's observations since a date, oldest first."""

    return (
        f"SELECT {_OBSERVATION_COLUMNS} FROM {INDICATOR_VALUES_TABLE} "
        "WHERE indicator_code = ? AND observed_on >= ? ORDER BY observed_on ASC"
    )


def find_history(
    conn: duckdb.DuckDBPyConnection, code: str, since: date
) -> list[Observation]:
    rows = conn.execute(history_query(), [code, since]).fetchall()
    return [_row_to_observation(row) for row in rows]


# Signals


def _row_to_signal(row: tuple) -> Signal:
    return Signal(
        indicator_code=row[0],
        as_of=row[1],
        signal_type=SignalType(row[2]),
        reason=row[3],
        confidence=row[4],
    )


def signal_exists(conn: duckdb.DuckDBPyConnection, code: str, as_of: date) -> bool:
    row = conn.execute(
        f"SELECT 1 FROM {SIGNALS_TABLE} WHERE indicator_code = ? AND as_of = ?",
        [code, as_of],
    ).fetchone()
    return row is not None


def insert_signal(conn: duckdb.DuckDBPyConnection, signal: Signal) -> bool:
    return _insert(
        conn,
        f"""
        INSERT INTO {SIGNALS_TABLE} (indicator_code, as_of, signal_type, reason, confidence)
        VALUES (?, ?, ?, ?, ?)
        """,
        [
            signal.indicator_code,
            signal.as_of,
            signal.signal_type.value,
            signal.reason,
            signal.confidence,
        ],
    )


def find_latest_signal(conn: duckdb.DuckDBPyConnection, code: str) -> Signal | None:
    row = conn.execute(
        f"""
        SELECT indicator_code, as_of, signal_type, reason, confidence
        FROM {SIGNALS_TABLE}
        WHERE indicator_code = ?
        ORDER BY as_of DESC
        LIMIT 1
        """,
        [code],
    ).fetchone()
    return _row_to_signal(row) if row else None


def count_signals(conn: duckdb.DuckDBPyConnection, code: str) -> int:
    row = conn.execute(
        f"SELECT COUNT(*) FROM {SIGNALS_TABLE} WHERE indicator_code = ?", [code]
    ).fetchone()
    return int(row[0]) if row else 0


# Risk snapshots


def risk_snapshot_exists(conn: duckdb.DuckDBPyConnection, as_of: date) -> bool:
    row = conn.execute(
        f"SELECT 1 FROM {RISK_SNAPSHOTS_TABLE} WHERE as_of = ?", [as_of]
    ).fetchone()
    return row is not None


def insert_risk_snapshot(conn: duckdb.DuckDBPyConnection, snapshot: RiskSnapshot) -> bool:
    return _insert(
        conn,
        f"INSERT INTO {RISK_SNAPSHOTS_TABLE} (as_of, risk_level, reason) VALUES (?, ?, ?)",
        [snapshot.as_of, snapshot.risk_level.value, snapshot.reason],
    )


def find_latest_risk_snapshot(conn: duckdb.DuckDBPyConnection) -> RiskSnapshot | None:
    row = conn.execute(
        f"""
        SELECT as_of, risk_level, reason FROM {RISK_SNAPSHOTS_TABLE}
        ORDER BY as_of DESC LIMIT 1
        """
    ).fetchone()
    if not row:
        return None
    return RiskSnapshot(as_of=row[0], risk_level=RiskLevel(row[1]), reason=row[2])


def count_risk_snapshots(conn: duckdb.DuckDBPyConnection) -> int:
    row = conn.execute(f"SELECT COUNT(*) FROM {RISK_SNAPSHOTS_TABLE}").fetchone()
    return int(row[0]) if row else 0


# Gold price history


def gold_price_exists(conn: duckdb.DuckDBPyConnection, price_on: date) -> bool:
    row = conn.execute(
        f"SELECT 1 FROM {GOLD_PRICE_HISTORY_TABLE} WHERE price_on = ?", [price_on]
    ).fetchone()
    return row is not None


def insert_gold_price(conn: duckdb.DuckDBPyConnection, point: GoldPriceHistoryPoint) -> bool:
    if gold_price_exists(conn, point.price_on):
        return False
    return _insert(
        conn,
        f"INSERT INTO {GOLD_PRICE_HISTORY_TABLE} (price_on, price, source) VALUES (?, ?, ?)",
        [point.price_on, point.price, point.source],
    )


def find_gold_price_history(
    conn: duckdb.DuckDBPyConnection, since: date
) -> list[GoldPriceHistoryPoint]:
    rows = conn.execute(
        f"""
        SELECT price_on, price, source FROM {GOLD_PRICE_HISTORY_TABLE}
        WHERE price_on >= ? ORDER BY price_on ASC
        """,
        [since],
    ).fetchall()
    return [GoldPriceHistoryPoint(price_on=row[0], price=row[1], source=row[2]) for row in rows]


__all__ = [
    "DB_ENV_VAR",
    "GOLD_PRICE_HISTORY_TABLE",
    "INDICATORS_TABLE",
    "INDICATOR_VALUES_TABLE",
    "RISK_SNAPSHOTS_TABLE",
    "SIGNALS_TABLE",
    "connect",
    "count_observations",
    "count_risk_snapshots",
    "count_signals",
    "ensure_schema",
    "find_gold_price_history",
    "find_history",
    "find_indicator",
    "find_latest_observation",
    "find_latest_risk_snapshot",
    "find_latest_signal",
    "find_or_create_indicator",
    "find_recent_observations",
    "get_database_path",
    "gold_price_exists",
    "history_query",
    "insert_gold_price",
    "insert_observation",
    "insert_risk_snapshot",
    "insert_signal",
    "list_indicators",
    "observation_exists",
    "risk_snapshot_exists",
    "set_indicator_active",
    "signal_exists",
]
