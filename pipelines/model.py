"""Canonical data model for indicators, derived signals and gold prices."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SignalType(str, Enum):
    """Trend state of a single indicator, read from gold's point of view."""

    RED = "RED"
    YELLOW = "YELLOW"
    GREEN = "GREEN"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class Indicator(_FrozenModel):
    """A tracked macro series."""

    code: str = Field(..., description="Stable identifier (e.g. 'US_10Y_REAL_YIELD').")
    name: str = Field(..., description="Human-readable name suitable for display.")
    unit: str = Field(..., description="Measurement unit (e.g. '%', 'index').")
    active: bool = Field(default=True)


class Observation(_FrozenModel):
    """One dated data point for an indicator."""

    indicator_code: str = Field(..., description="Code of the owning indicator.")
    value: Decimal = Field(..., description="Observed value, kept as a fixed-point decimal.")
    observed_on: date = Field(..., description="Calendar day the value applies to.")
    source: str = Field(..., description="Upstream provider label (e.g. 'FRED').")


class Signal(_FrozenModel):
    """Trend classification for an indicator on a given day."""

    indicator_code: str
    signal_type: SignalType
    reason: str
    as_of: date
    confidence: Decimal = Field(..., ge=0, le=1)


class RiskSnapshot(_FrozenModel):
    """Aggregated gold risk verdict for one calendar day."""

    risk_level: RiskLevel
    reason: str
    as_of: date


class PriceSnapshot(_FrozenModel):
    """Spot gold price as served to callers."""

    price: Decimal
    currency: str = "USD"
    unit: str = "oz"
    as_of: datetime
    source: str
    ask: Optional[Decimal] = None
    bid: Optional[Decimal] = None
    is_live: bool = Field(
        default=True,
        description="False when the value was served from cache after an upstream failure.",
    )
    supports_history: bool = False


class GoldPriceHistoryPoint(_FrozenModel):
    """Daily gold price recorded from live snapshots."""

    price_on: date
    price: Decimal
    source: str


__all__ = [
    "GoldPriceHistoryPoint",
    "Indicator",
    "Observation",
    "PriceSnapshot",
    "RiskLevel",
    "RiskSnapshot",
    "Signal",
    "SignalType",
]
