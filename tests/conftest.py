from datetime import date
from decimal import Decimal

import pytest

from pipelines.model import Observation
from storage.db import connect, insert_observation


@pytest.fixture()
def db_path(monkeypatch, tmp_path):
    path = tmp_path / "gold_risk.duckdb"
    monkeypatch.setenv("GOLD_RISK_DB_PATH", str(path))
    return path


@pytest.fixture()
def conn(db_path):
    connection = connect()
    try:
        yield connection
    finally:
        connection.close()


def _add_observations(connection, code, values_by_day):
    for observed_on, value in values_by_day.items():
        insert_observation(
            connection,
            Observation(
                indicator_code=code,
                value=Decimal(str(value)),
                observed_on=observed_on,
                source="FRED",
            ),
        )


@pytest.fixture()
def add_observations():
    """Insert ``{date: value}`` observations for an indicator code."""

    return _add_observations


@pytest.fixture()
def today():
    return date(2025, 3, 14)
