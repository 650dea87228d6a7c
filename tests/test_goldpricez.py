from datetime import datetime
from decimal import Decimal

import httpx
import pytest

from pipelines.errors import ErrorCategory, GoldApiUnavailableError, GoldPriceParseError
from pipelines.sources import goldpricez
from pipelines.sources.goldpricez import (
    GoldPricezClient,
    build_snapshot,
    decode_payload,
    unwrap_json_string,
)

PLAIN_BODY = (
    '{"ounce_price_usd":"4895.440","gmt_ounce_price_usd_updated":"19-12-2018 01:16:01 pm",'
    '"ounce_price_ask":"4896.00","ounce_price_bid":"4894.90"}'
)
DOUBLE_ENCODED_BODY = '"{\\"ounce_price_usd\\":\\"4895.440\\"}"'


def _status_error(status_code):
    request = httpx.Request("GET", "https://goldpricez.com/api/rates/currency/usd/measure/ounce")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("provider error", request=request, response=response)


@pytest.fixture()
def fake_fetch(monkeypatch):
    calls = []

    def install(result):
        async def _fetch_text(url, **kwargs):
            calls.append((url, kwargs))
            if isinstance(result, Exception):
                raise result
            return result

        monkeypatch.setattr(goldpricez, "fetch_text", _fetch_text)
        return calls

    return install


@pytest.fixture()
def client():
    return GoldPricezClient(base_url="https://goldpricez.test/api/", api_key="secret")


def test_unwrap_double_encoded_body():
    assert unwrap_json_string(DOUBLE_ENCODED_BODY) == '{"ounce_price_usd":"4895.440"}'


def test_unwrap_leaves_plain_object_untouched():
    assert unwrap_json_string(f"  {PLAIN_BODY}\n") == PLAIN_BODY


def test_unwrap_broken_literal_returns_trimmed_original():
    assert unwrap_json_string(' "\\x" ') == '"\\x"'


def test_decode_payload_handles_both_encodings():
    assert decode_payload(PLAIN_BODY)["ounce_price_usd"] == "4895.440"
    assert decode_payload(DOUBLE_ENCODED_BODY) == {"ounce_price_usd": "4895.440"}


@pytest.mark.parametrize("body", ["<html>oops</html>", "[1, 2]", '"just a string"'])
def test_decode_payload_rejects_non_objects(body):
    with pytest.raises(GoldPriceParseError) as excinfo:
        decode_payload(body, "abc12345")

    assert excinfo.value.request_id == "abc12345"
    assert excinfo.value.raw_response == body


def test_build_snapshot_reads_price_and_timestamp():
    snapshot = build_snapshot(decode_payload(PLAIN_BODY))

    assert snapshot.price == Decimal("4895.440")
    assert snapshot.ask == Decimal("4896.00")
    assert snapshot.bid == Decimal("4894.90")
    assert snapshot.as_of == datetime(2018, 12, 19, 13, 16, 1)
    assert snapshot.currency == "USD"
    assert snapshot.unit == "oz"
    assert snapshot.source == "GoldPricez"
    assert snapshot.is_live is True
    assert snapshot.supports_history is False


def test_build_snapshot_unparseable_timestamp_uses_now():
    before = datetime.now()
    snapshot = build_snapshot({"ounce_price_usd": "1.0", "gmt_ounce_price_usd_updated": "yesterday"})

    assert snapshot.as_of >= before


@pytest.mark.parametrize("payload", [{}, {"ounce_price_usd": "  "}, {"ounce_price_usd": "n/a"}])
def test_build_snapshot_invalid_price(payload):
    with pytest.raises(GoldApiUnavailableError) as excinfo:
        build_snapshot(payload, "req1")

    assert excinfo.value.error_type is ErrorCategory.INVALID_RESPONSE
    assert excinfo.value.http_status == 502
    assert excinfo.value.request_id == "req1"


@pytest.mark.asyncio
async def test_fetch_latest_sends_api_key_header(client, fake_fetch):
    calls = fake_fetch(DOUBLE_ENCODED_BODY)

    snapshot = await client.fetch_latest_gold_price()

    assert snapshot.price == Decimal("4895.440")
    url, kwargs = calls[0]
    assert url == "https://goldpricez.test/api/rates/currency/usd/measure/ounce"
    assert kwargs["headers"] == {"X-API-KEY": "secret"}


@pytest.mark.asyncio
async def test_missing_key_is_config_error(fake_fetch, monkeypatch):
    monkeypatch.delenv("GOLDPRICEZ_API_KEY", raising=False)
    calls = fake_fetch(PLAIN_BODY)

    with pytest.raises(GoldApiUnavailableError) as excinfo:
        await GoldPricezClient().fetch_latest_gold_price()

    assert excinfo.value.error_type is ErrorCategory.CONFIG_ERROR
    assert excinfo.value.http_status == 503
    assert calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "category", "recommended"),
    [
        (429, ErrorCategory.RATE_LIMITED, 503),
        (403, ErrorCategory.FORBIDDEN, 502),
        (401, ErrorCategory.UNAUTHORIZED, 502),
        (500, ErrorCategory.SERVER_ERROR, 502),
        (404, ErrorCategory.API_ERROR, 502),
    ],
)
async def test_http_status_categories(client, fake_fetch, status, category, recommended):
    fake_fetch(_status_error(status))

    with pytest.raises(GoldApiUnavailableError) as excinfo:
        await client.fetch_latest_gold_price()

    error = excinfo.value
    assert error.error_type is category
    assert error.http_status == status
    assert error.recommended_status == recommended
    assert len(error.request_id) == 8


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["", "   "])
async def test_empty_body_is_null_response(client, fake_fetch, body):
    fake_fetch(body)

    with pytest.raises(GoldApiUnavailableError) as excinfo:
        await client.fetch_latest_gold_price()

    assert excinfo.value.error_type is ErrorCategory.NULL_RESPONSE
    assert excinfo.value.http_status == 502


@pytest.mark.asyncio
async def test_malformed_body_is_json_parse_error(client, fake_fetch):
    fake_fetch("<html>maintenance</html>")

    with pytest.raises(GoldApiUnavailableError) as excinfo:
        await client.fetch_latest_gold_price()

    assert excinfo.value.error_type is ErrorCategory.JSON_PARSE_ERROR
    assert excinfo.value.recommended_status == 502


@pytest.mark.asyncio
async def test_transport_failure_is_unexpected_error(client, fake_fetch):
    fake_fetch(httpx.ReadTimeout("read timed out"))

    with pytest.raises(GoldApiUnavailableError) as excinfo:
        await client.fetch_latest_gold_price()

    assert excinfo.value.error_type is ErrorCategory.UNEXPECTED_ERROR
    assert isinstance(excinfo.value.__cause__, httpx.ReadTimeout)
