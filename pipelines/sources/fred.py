"""St. Louis Fed (FRED) ingestor utilities."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

import httpx

from pipelines.common import fetch_json

FRED_BASE_URL = "https://api.stlouisfed.org/fred/series/observations"


@dataclass(frozen=True)
class FredObservation:
    """A single valid (date, value) pair returned by FRED."""

    observed_on: date
    value: Decimal


_SENTINEL_VALUES = {".", "NA", "N/A", ""}

logger = logging.getLogger(__name__)


def _resolve_api_key(api_key: str | None) -> str | None:
    resolved = api_key or os.getenv("FRED_API_KEY")
    if not resolved:
        logger.warning(
            "FRED API key missing. Skipping FRED fetch. Set FRED_API_KEY or pass api_key explicitly."
        )
    return resolved


def _parse_observation_date(raw_date: Any) -> date | None:
    if not isinstance(raw_date, str):
        return None
    try:
        return date.fromisoformat(raw_date.strip())
    except ValueError:
        try:
            return datetime.strptime(raw_date.strip(), "%Y-%m-%d").date()
        except ValueError:
            return None


def _coerce_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if stripped in _SENTINEL_VALUES:
        return None
    try:
        numeric = Decimal(stripped)
    except InvalidOperation:
        return None
    if not numeric.is_finite():
        return None
    return numeric


def parse_observation(raw: Any) -> FredObservation | None:
    """Normalize one FRED observation row, dropping sentinels and bad rows."""

    if not isinstance(raw, Mapping):
        return None
    observed_on = _parse_observation_date(raw.get("date"))
    if observed_on is None:
        return None
    value = _coerce_decimal(raw.get("value"))
    if value is None:
        return None
    return FredObservation(observed_on=observed_on, value=value)


async def _fetch_observations(
    series_id: str, params: Mapping[str, Any], api_key: str
) -> list[Any] | None:
    request_params: dict[str, Any] = {
        "series_id": series_id,
        "api_key": api_key,
        "file_type": "json",
    }
    request_params.update(params)

    try:
        payload = await fetch_json(FRED_BASE_URL, params=request_params)
    except httpx.HTTPStatusError as exc:
        logger.error(
            "FRED API request failed for series %s: %s - %s",
            series_id,
            exc.response.status_code,
            exc.response.text,
        )
        return None
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Failed to fetch FRED data for series %s: %s", series_id, exc)
        return None

    observations = payload.get("observations") if isinstance(payload, Mapping) else None
    if not isinstance(observations, list) or not observations:
        logger.warning("FRED API returned no observations for series: %s", series_id)
        return None
    return observations


async def fetch_latest_observation(
    series_id: str, *, api_key: str | None = None
) -> FredObservation | None:
    """Fetch the most recent observation for a series.

    Returns ``None`` on any failure, including a missing-value sentinel.
    """

    resolved_key = _resolve_api_key(api_key)
    if not resolved_key:
        return None

    observations = await _fetch_observations(
        series_id, {"sort_order": "desc", "limit": 1}, resolved_key
    )
    if not observations:
        return None

    latest = observations[0]
    observation = parse_observation(latest)
    if observation is None:
        raw_date = latest.get("date") if isinstance(latest, Mapping) else None
        logger.warning(
            "FRED returned missing value for series: %s on date: %s", series_id, raw_date
        )
    return observation


async def fetch_historical_observations(
    series_id: str,
    start_date: date,
    limit: int,
    *,
    api_key: str | None = None,
) -> list[FredObservation]:
    """Fetch a bounded window of observations, oldest first, skipping missing values."""

    resolved_key = _resolve_api_key(api_key)
    if not resolved_key:
        return []

    logger.info(
        "Fetching FRED historical data: series=%s, start=%s, limit=%s",
        series_id,
        start_date,
        limit,
    )
    observations = await _fetch_observations(
        series_id,
        {
            "observation_start": start_date.isoformat(),
            "sort_order": "asc",
            "limit": limit,
        },
        resolved_key,
    )
    if not observations:
        return []

    valid: list[FredObservation] = []
    for raw in observations:
        parsed = parse_observation(raw)
        if parsed is not None:
            valid.append(parsed)

    logger.info(
        "FRED series %s: fetched %s observations, %s valid, %s skipped (missing values)",
        series_id,
        len(observations),
        len(valid),
        len(observations) - len(valid),
    )
    return valid


__all__ = [
    "FRED_BASE_URL",
    "FredObservation",
    "fetch_historical_observations",
    "fetch_latest_observation",
    "parse_observation",
]
