"""Static configuration for tracked indicators and job cadence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from engine.signals import DXY_CODE, REAL_YIELD_CODE


@dataclass(frozen=True)
class IndicatorConfig:
    """How to ingest one macro indicator from FRED."""

    code: str
    name: str
    unit: str
    fred_series_id: str
    source: str = "FRED"
    cron: str = "0 6 * * *"


TRACKED_INDICATORS: tuple[IndicatorConfig, ...] = (
    IndicatorConfig(
        code=REAL_YIELD_CODE,
        name="US 10Y Real Yield",
        unit="%",
        fred_series_id="DFII10",
        cron="0 6 * * *",
    ),
    IndicatorConfig(
        code=DXY_CODE,
        name="US Dollar Index (DXY)",
        unit="index",
        fred_series_id="DTWEXBGS",
        cron="5 6 * * *",
    ),
)

# Daily after both indicator jobs, UTC.
RISK_AGGREGATION_CRON = "10 6 * * *"
GOLD_PRICE_HISTORY_CRON = "*/15 * * * *"

SIGNAL_WINDOW = 3

REQUIRED_HISTORY = 30
LOOKBACK_DAYS = 90
FETCH_LIMIT = 100


def get_indicator_by_code(code: str) -> IndicatorConfig | None:
    for indicator in TRACKED_INDICATORS:
        if indicator.code == code:
            return indicator
    return None


def iter_indicators(codes: Iterable[str] | None = None) -> Iterable[IndicatorConfig]:
    if codes is None:
        return TRACKED_INDICATORS
    selected = []
    for code in codes:
        indicator = get_indicator_by_code(code)
        if indicator:
            selected.append(indicator)
    return tuple(selected)


__all__ = [
    "FETCH_LIMIT",
    "GOLD_PRICE_HISTORY_CRON",
    "IndicatorConfig",
    "LOOKBACK_DAYS",
    "REQUIRED_HISTORY",
    "RISK_AGGREGATION_CRON",
    "SIGNAL_WINDOW",
    "TRACKED_INDICATORS",
    "get_indicator_by_code",
    "iter_indicators",
]
