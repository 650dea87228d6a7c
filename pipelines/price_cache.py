"""Single-slot TTL cache in front of the gold price provider.

The slot holds an immutable :class:`CachedPrice` that is replaced wholesale on
every successful fetch, so readers always see either the previous or the new
value and never a partially updated one.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from pipelines.errors import GoldApiUnavailableError
from pipelines.model import PriceSnapshot
from pipelines.sources.goldpricez import GoldPricezClient

GOLD_PRICE_CACHE_KEY = "gold.latest.usd.ounce"
TTL_ENV_VAR = "GOLD_PRICE_CACHE_TTL_SECONDS"
DEFAULT_TTL_SECONDS = 300.0

logger = logging.getLogger(__name__)


class PriceProvider(Protocol):
    async def fetch_latest_gold_price(self) -> PriceSnapshot: ...


@dataclass(frozen=True)
class CachedPrice:
    snapshot: PriceSnapshot
    fetched_at: float


def _ttl_from_env() -> float:
    raw = os.getenv(TTL_ENV_VAR)
    if not raw:
        return DEFAULT_TTL_SECONDS
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%s is not a number; using %ss.", TTL_ENV_VAR, raw, DEFAULT_TTL_SECONDS)
        return DEFAULT_TTL_SECONDS


class GoldPriceCache:
    """Serves the latest gold price with a TTL and stale fallback."""

    def __init__(
        self,
        provider: PriceProvider | None = None,
        *,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider if provider is not None else GoldPricezClient()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else _ttl_from_env()
        self._clock = clock
        self._slot: CachedPrice | None = None
        self._consecutive_failures = 0

    @property
    def key(self) -> str:
        return GOLD_PRICE_CACHE_KEY

    @property
    def consecutive_failures(self) -> int:
        """Upstream failures since the last successful fetch."""

        return self._consecutive_failures

    def _is_fresh(self, cached: CachedPrice) -> bool:
        return self._clock() - cached.fetched_at < self.ttl_seconds

    def get_cached_price(self) -> PriceSnapshot | None:
        """Return whatever the slot holds without contacting the provider."""

        cached = self._slot
        return cached.snapshot if cached is not None else None

    async def get_latest_price(self) -> PriceSnapshot:
        """Return the cached price while fresh, otherwise fetch a new one.

        Raises
        ------
        GoldApiUnavailableError
            Only when the provider fails and nothing has ever been cached.
        """

        cached = self._slot
        if cached is not None and self._is_fresh(cached):
            logger.debug("Returning cached gold price for key %s", self.key)
            return cached.snapshot

        logger.info("Cache expired or empty - fetching fresh gold price")
        return await self._fetch_with_fallback()

    async def refresh(self) -> PriceSnapshot:
        """Bypass the TTL and fetch now, with the same stale fallback."""

        return await self._fetch_with_fallback()

    async def _fetch_with_fallback(self) -> PriceSnapshot:
        previous = self._slot
        try:
            snapshot = await self.provider.fetch_latest_gold_price()
        except GoldApiUnavailableError as exc:
            self._consecutive_failures += 1
            if previous is None:
                logger.error(
                    "[requestId=%s] [errorType=%s] Gold price unavailable and no cached value "
                    "(consecutive failures=%s)",
                    exc.request_id,
                    exc.error_type.value,
                    self._consecutive_failures,
                )
                raise
            logger.warning(
                "[requestId=%s] [errorType=%s] Fetch failed - returning stale cached price from %s "
                "(consecutive failures=%s)",
                exc.request_id,
                exc.error_type.value,
                previous.snapshot.as_of,
                self._consecutive_failures,
            )
            return previous.snapshot.model_copy(update={"is_live": False})

        self._slot = CachedPrice(snapshot=snapshot, fetched_at=self._clock())
        self._consecutive_failures = 0
        logger.info("Cached new gold price: %s", snapshot.price)
        return snapshot

    def clear(self) -> None:
        self._slot = None


_cache: GoldPriceCache | None = None


def get_price_cache() -> GoldPriceCache:
    """Return the process-wide price cache, creating it on first use."""

    global _cache
    if _cache is None:
        _cache = GoldPriceCache()
    return _cache


def reset_price_cache(cache: GoldPriceCache | None = None) -> None:
    """Replace (or drop) the process-wide cache instance."""

    global _cache
    _cache = cache


__all__ = [
    "CachedPrice",
    "GOLD_PRICE_CACHE_KEY",
    "GoldPriceCache",
    "get_price_cache",
    "reset_price_cache",
]
