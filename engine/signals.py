"""Trend classification for a short window of indicator observations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence

from pipelines.model import Observation, Signal, SignalType

REAL_YIELD_CODE = "US_10Y_REAL_YIELD"
DXY_CODE = "US_DOLLAR_INDEX"

WINDOW_SIZE = 3
MIN_OBSERVATIONS = 2

CONFIDENCE_HIGH = Decimal("0.7")
CONFIDENCE_MEDIUM = Decimal("0.5")

_REASONS: dict[str, dict[SignalType, str]] = {
    REAL_YIELD_CODE: {
        SignalType.RED: "Real yields rising consistently – historically bearish for gold",
        SignalType.GREEN: "Real yields easing – supportive for gold",
        SignalType.YELLOW: "Real yields mixed – potential correction risk",
    },
    DXY_CODE: {
        SignalType.RED: "A strengthening dollar tends to pressure gold prices",
        SignalType.GREEN: "A weakening dollar supports gold prices",
        SignalType.YELLOW: "Dollar index mixed – uncertain impact on gold",
    },
}

_GENERIC_REASONS: dict[SignalType, str] = {
    SignalType.RED: "Indicator rising consistently – negative for gold",
    SignalType.GREEN: "Indicator falling – supportive for gold",
    SignalType.YELLOW: "Indicator mixed – uncertain outlook",
}


@dataclass(frozen=True)
class TrendCounts:
    rising: int
    falling: int
    points: int


@dataclass(frozen=True)
class SignalOutcome:
    signal_type: SignalType
    reason: str
    confidence: Decimal

    def to_signal(self, indicator_code: str, as_of: date) -> Signal:
        return Signal(
            indicator_code=indicator_code,
            signal_type=self.signal_type,
            reason=self.reason,
            as_of=as_of,
            confidence=self.confidence,
        )


def count_moves(values: Sequence[Decimal]) -> TrendCounts:
    """Count rising and falling steps in a most-recent-first sequence."""

    rising = falling = 0
    for current, previous in zip(values, values[1:]):
        if current > previous:
            rising += 1
        elif current < previous:
            falling += 1
    return TrendCounts(rising=rising, falling=falling, points=len(values))


def classify_trend(values: Sequence[Decimal]) -> tuple[SignalType, Decimal]:
    counts = count_moves(values)
    if counts.rising >= 2 and counts.points >= 3:
        return SignalType.RED, CONFIDENCE_HIGH
    if counts.falling >= 2:
        return SignalType.GREEN, CONFIDENCE_HIGH
    return SignalType.YELLOW, CONFIDENCE_MEDIUM


def signal_reason(indicator_code: str, signal_type: SignalType) -> str:
    return _REASONS.get(indicator_code, _GENERIC_REASONS)[signal_type]


def derive_signal(
    indicator_code: str,
    recent_observations: Sequence[Observation],
    as_of: date | None = None,
) -> SignalOutcome | None:
    """Classify the trend of the newest observations.

    ``recent_observations`` must be ordered by date descending; observations
    dated after ``as_of`` are ignored and only the first three of the rest are
    used. Returns ``None`` when fewer than two points are available, which is
    an ordinary outcome rather than an error.
    """

    window = [
        obs
        for obs in recent_observations
        if as_of is None or obs.observed_on <= as_of
    ][:WINDOW_SIZE]
    if len(window) < MIN_OBSERVATIONS:
        return None

    signal_type, confidence = classify_trend([obs.value for obs in window])
    return SignalOutcome(
        signal_type=signal_type,
        reason=signal_reason(indicator_code, signal_type),
        confidence=confidence,
    )


__all__ = [
    "CONFIDENCE_HIGH",
    "CONFIDENCE_MEDIUM",
    "DXY_CODE",
    "REAL_YIELD_CODE",
    "SignalOutcome",
    "TrendCounts",
    "WINDOW_SIZE",
    "classify_trend",
    "count_moves",
    "derive_signal",
    "signal_reason",
]
