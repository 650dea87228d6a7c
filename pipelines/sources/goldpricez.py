"""GoldPricez.com spot price client.

The provider answers with JSON under a non-JSON content type and sometimes
wraps the document in a JSON string literal, e.g.
``"{\\"ounce_price_usd\\":\\"4895.440\\"}"``. The body is therefore read as
text and decoded by hand.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

import httpx

from pipelines.common import fetch_text
from pipelines.errors import (
    ErrorCategory,
    GoldApiUnavailableError,
    GoldPriceParseError,
    category_for_status,
)
from pipelines.model import PriceSnapshot

GOLDPRICEZ_DEFAULT_BASE_URL = "https://goldpricez.com/api"
GOLDPRICEZ_PRICE_PATH = "/rates/currency/usd/measure/ounce"

SOURCE = "GoldPricez"
CURRENCY = "USD"
UNIT = "oz"

PRICE_FIELD = "ounce_price_usd"
UPDATED_FIELD = "gmt_ounce_price_usd_updated"
ASK_FIELD = "ounce_price_ask"
BID_FIELD = "ounce_price_bid"

# e.g. "19-12-2018 01:16:01 pm"
TIMESTAMP_FORMAT = "%d-%m-%Y %I:%M:%S %p"

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def unwrap_json_string(body: str, request_id: str = "-") -> str:
    """Undo one level of JSON string encoding if the body is a quoted literal."""

    trimmed = body.strip()
    if len(trimmed) >= 2 and trimmed.startswith('"') and trimmed.endswith('"'):
        try:
            unwrapped = json.loads(trimmed)
        except ValueError as exc:
            logger.warning(
                "[requestId=%s] Failed to unwrap JSON string, using original: %s",
                request_id,
                exc,
            )
            return trimmed
        if isinstance(unwrapped, str):
            logger.debug(
                "[requestId=%s] Response was double-encoded, unwrapped successfully",
                request_id,
            )
            return unwrapped.strip()
    return trimmed


def decode_payload(body: str, request_id: str = "-") -> dict[str, Any]:
    """Decode a possibly double-encoded body into a JSON object."""

    content = unwrap_json_string(body, request_id)
    try:
        payload = json.loads(content)
    except ValueError as exc:
        raise GoldPriceParseError(
            f"Invalid GoldPricez response: {exc}", request_id, body
        ) from exc
    if not isinstance(payload, dict):
        raise GoldPriceParseError(
            f"Invalid GoldPricez response: expected an object, got {type(payload).__name__}",
            request_id,
            body,
        )
    return payload


def _to_decimal(raw: Any) -> Decimal | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def parse_timestamp(raw: Any, request_id: str = "-") -> datetime:
    """Parse the provider timestamp, falling back to the current time."""

    if isinstance(raw, str) and raw.strip():
        try:
            return datetime.strptime(raw.strip(), TIMESTAMP_FORMAT)
        except ValueError:
            logger.debug(
                "[requestId=%s] Could not parse timestamp '%s', using current time",
                request_id,
                raw,
            )
    return datetime.now()


def build_snapshot(payload: Mapping[str, Any], request_id: str = "-") -> PriceSnapshot:
    """Turn a decoded GoldPricez object into a live :class:`PriceSnapshot`."""

    raw_price = payload.get(PRICE_FIELD)
    if raw_price is None or (isinstance(raw_price, str) and not raw_price.strip()):
        logger.error(
            "[requestId=%s] [errorType=%s] GoldPricez response missing %s field",
            request_id,
            ErrorCategory.INVALID_RESPONSE.value,
            PRICE_FIELD,
        )
        raise GoldApiUnavailableError(
            f"GoldPricez response missing {PRICE_FIELD} field",
            502,
            ErrorCategory.INVALID_RESPONSE,
            request_id,
        )
    price = _to_decimal(raw_price)
    if price is None:
        logger.error(
            "[requestId=%s] [errorType=%s] Invalid price format: %s",
            request_id,
            ErrorCategory.INVALID_RESPONSE.value,
            raw_price,
        )
        raise GoldApiUnavailableError(
            "Invalid price format in GoldPricez response",
            502,
            ErrorCategory.INVALID_RESPONSE,
            request_id,
        )

    return PriceSnapshot(
        price=price,
        currency=CURRENCY,
        unit=UNIT,
        as_of=parse_timestamp(payload.get(UPDATED_FIELD), request_id),
        source=SOURCE,
        ask=_to_decimal(payload.get(ASK_FIELD)),
        bid=_to_decimal(payload.get(BID_FIELD)),
        is_live=True,
        supports_history=False,
    )


class GoldPricezClient:
    """Fetches XAU/USD per ounce from GoldPricez."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None):
        self.base_url = (
            base_url or os.getenv("GOLDPRICEZ_BASE_URL") or GOLDPRICEZ_DEFAULT_BASE_URL
        ).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("GOLDPRICEZ_API_KEY", "")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    async def fetch_latest_gold_price(self) -> PriceSnapshot:
        """Fetch the current price.

        Raises
        ------
        GoldApiUnavailableError
            On any failure; no other exception escapes.
        """

        request_id = new_request_id()
        try:
            return await self._fetch(request_id)
        except GoldApiUnavailableError:
            raise
        except GoldPriceParseError as exc:
            logger.error(
                "[requestId=%s] [errorType=%s] %s",
                request_id,
                ErrorCategory.JSON_PARSE_ERROR.value,
                exc,
            )
            raise GoldApiUnavailableError(
                str(exc), 502, ErrorCategory.JSON_PARSE_ERROR, exc.request_id
            ) from exc
        except Exception as exc:
            logger.exception(
                "[requestId=%s] [errorType=%s] Failed to fetch gold price from GoldPricez: %s",
                request_id,
                ErrorCategory.UNEXPECTED_ERROR.value,
                exc,
            )
            raise GoldApiUnavailableError(
                f"Failed to fetch gold price from GoldPricez: {exc}",
                502,
                ErrorCategory.UNEXPECTED_ERROR,
                request_id,
            ) from exc

    async def _fetch(self, request_id: str) -> PriceSnapshot:
        if not self.is_configured:
            logger.error(
                "[requestId=%s] [errorType=%s] GoldPricez API key not configured",
                request_id,
                ErrorCategory.CONFIG_ERROR.value,
            )
            raise GoldApiUnavailableError(
                "GoldPricez API key not configured",
                503,
                ErrorCategory.CONFIG_ERROR,
                request_id,
            )

        try:
            body = await fetch_text(
                f"{self.base_url}{GOLDPRICEZ_PRICE_PATH}",
                headers={"X-API-KEY": self.api_key},
            )
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            category = category_for_status(status)
            logger.error(
                "[requestId=%s] [errorType=%s] GoldPricez request failed: %s",
                request_id,
                category.value,
                status,
            )
            raise GoldApiUnavailableError(
                f"GoldPricez request failed with status {status}",
                status,
                category,
                request_id,
            ) from exc

        if body is None or not body.strip():
            logger.error(
                "[requestId=%s] [errorType=%s] GoldPricez returned null or empty response",
                request_id,
                ErrorCategory.NULL_RESPONSE.value,
            )
            raise GoldApiUnavailableError(
                "GoldPricez returned null or empty response",
                502,
                ErrorCategory.NULL_RESPONSE,
                request_id,
            )

        logger.debug("[requestId=%s] Raw GoldPricez response: %s", request_id, body)
        payload = decode_payload(body, request_id)
        snapshot = build_snapshot(payload, request_id)
        logger.info(
            "[requestId=%s] Fetched gold price from GoldPricez: %s %s/%s",
            request_id,
            snapshot.price,
            snapshot.currency,
            snapshot.unit,
        )
        return snapshot


__all__ = [
    "GOLDPRICEZ_DEFAULT_BASE_URL",
    "GoldPricezClient",
    "build_snapshot",
    "decode_payload",
    "new_request_id",
    "parse_timestamp",
    "unwrap_json_string",
]
