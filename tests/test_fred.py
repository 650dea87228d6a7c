from datetime import date
from decimal import Decimal

import httpx
import pytest

from pipelines.sources import fred
from pipelines.sources.fred import (
    FredObservation,
    fetch_historical_observations,
    fetch_latest_observation,
    parse_observation,
)


def _status_error(status_code):
    request = httpx.Request("GET", fred.FRED_BASE_URL)
    response = httpx.Response(status_code, request=request, text="bad request")
    return httpx.HTTPStatusError("boom", request=request, response=response)


@pytest.fixture()
def fake_fetch(monkeypatch):
    calls = []

    def install(result):
        async def _fetch_json(url, **kwargs):
            calls.append(kwargs)
            if isinstance(result, Exception):
                raise result
            return result

        monkeypatch.setattr(fred, "fetch_json", _fetch_json)
        return calls

    return install


@pytest.mark.parametrize("value", [".", "NA", "N/A", "", "  ", "abc", "NaN", "Infinity", None])
def test_parse_observation_drops_missing_values(value):
    assert parse_observation({"date": "2025-01-02", "value": value}) is None


def test_parse_observation_rejects_bad_dates():
    assert parse_observation({"date": "02/01/2025", "value": "1.5"}) is None
    assert parse_observation({"value": "1.5"}) is None
    assert parse_observation("not-a-row") is None


def test_parse_observation_keeps_exact_decimal():
    parsed = parse_observation({"date": "2025-01-02", "value": "1.83"})

    assert parsed == FredObservation(observed_on=date(2025, 1, 2), value=Decimal("1.83"))


@pytest.mark.asyncio
async def test_latest_observation_requests_single_newest_row(fake_fetch):
    calls = fake_fetch({"observations": [{"date": "2025-03-13", "value": "1.91"}]})

    observation = await fetch_latest_observation("DFII10", api_key="key")

    assert observation == FredObservation(date(2025, 3, 13), Decimal("1.91"))
    params = calls[0]["params"]
    assert params["series_id"] == "DFII10"
    assert params["sort_order"] == "desc"
    assert params["limit"] == 1
    assert params["file_type"] == "json"


@pytest.mark.asyncio
async def test_latest_observation_sentinel_is_no_data(fake_fetch):
    fake_fetch({"observations": [{"date": "2025-03-13", "value": "."}]})

    assert await fetch_latest_observation("DFII10", api_key="key") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "result",
    [
        {"observations": []},
        {"error_message": "Bad Request"},
        [],
        _status_error(400),
        _status_error(503),
        httpx.ConnectTimeout("timed out"),
        ValueError("not json"),
    ],
)
async def test_latest_observation_failures_are_absorbed(fake_fetch, result):
    fake_fetch(result)

    assert await fetch_latest_observation("DFII10", api_key="key") is None


@pytest.mark.asyncio
async def test_missing_api_key_skips_request(fake_fetch, monkeypatch):
    monkeypatch.delenv("FRED_API_KEY", raising=False)
    calls = fake_fetch({"observations": [{"date": "2025-03-13", "value": "1.91"}]})

    assert await fetch_latest_observation("DFII10") is None
    assert await fetch_historical_observations("DFII10", date(2025, 1, 1), 100) == []
    assert calls == []


@pytest.mark.asyncio
async def test_api_key_read_from_environment(fake_fetch, monkeypatch):
    monkeypatch.setenv("FRED_API_KEY", "env-key")
    calls = fake_fetch({"observations": [{"date": "2025-03-13", "value": "1.91"}]})

    await fetch_latest_observation("DFII10")

    assert calls[0]["params"]["api_key"] == "env-key"


@pytest.mark.asyncio
async def test_historical_observations_skip_invalid_rows(fake_fetch):
    calls = fake_fetch(
        {
            "observations": [
                {"date": "2025-01-02", "value": "1.80"},
                {"date": "2025-01-03", "value": "."},
                {"date": "2025-01-06", "value": "1.85"},
            ]
        }
    )

    observations = await fetch_historical_observations(
        "DTWEXBGS", date(2024, 12, 14), 100, api_key="key"
    )

    assert [obs.observed_on for obs in observations] == [date(2025, 1, 2), date(2025, 1, 6)]
    assert observations[1].value == Decimal("1.85")
    params = calls[0]["params"]
    assert params["observation_start"] == "2024-12-14"
    assert params["sort_order"] == "asc"
    assert params["limit"] == 100


@pytest.mark.asyncio
async def test_historical_observations_failure_is_empty(fake_fetch):
    fake_fetch(_status_error(500))

    assert await fetch_historical_observations("DFII10", date(2025, 1, 1), 100, api_key="k") == []
