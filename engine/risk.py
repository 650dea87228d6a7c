"""Combine the real yield and dollar index signals into a gold risk level."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from pipelines.model import RiskLevel, RiskSnapshot, Signal, SignalType

RED = SignalType.RED
YELLOW = SignalType.YELLOW
GREEN = SignalType.GREEN

INCOMPLETE_DATA_REASON = "Incomplete data – not all indicator signals are available"
BOTH_ADVERSE_REASON = (
    "Rising real yields and a strengthening dollar increase downside risk for gold"
)
BOTH_SUPPORTIVE_REASON = "Easing real yields and a weakening dollar are supportive for gold"
YIELD_ADVERSE_DXY_MIXED_REASON = (
    "Rising real yields are negative for gold, while dollar trends are mixed"
)
DXY_ADVERSE_YIELD_MIXED_REASON = (
    "A strengthening dollar pressures gold, while real yield trends are mixed"
)
CONTRADICTORY_REASON = (
    "Mixed signals – one indicator is bearish while the other is supportive for gold"
)
BOTH_MIXED_REASON = "Both indicators show mixed trends – uncertain outlook for gold"
PARTIALLY_SUPPORTIVE_REASON = (
    "Partially supportive conditions – one indicator is positive while the other is mixed"
)


@dataclass(frozen=True)
class RiskAssessment:
    level: RiskLevel
    reason: str

    def to_snapshot(self, as_of: date) -> RiskSnapshot:
        return RiskSnapshot(risk_level=self.level, reason=self.reason, as_of=as_of)


def _pair(yield_type: SignalType, dxy_type: SignalType, a: SignalType, b: SignalType) -> bool:
    return (yield_type, dxy_type) in {(a, b), (b, a)}


def classify_risk(yield_type: SignalType, dxy_type: SignalType) -> RiskAssessment:
    """Apply the decision table to two present signal types; first match wins."""

    if yield_type is RED and dxy_type is RED:
        return RiskAssessment(RiskLevel.HIGH, BOTH_ADVERSE_REASON)
    if yield_type is GREEN and dxy_type is GREEN:
        return RiskAssessment(RiskLevel.LOW, BOTH_SUPPORTIVE_REASON)
    if _pair(yield_type, dxy_type, RED, YELLOW):
        if yield_type is RED:
            return RiskAssessment(RiskLevel.MEDIUM, YIELD_ADVERSE_DXY_MIXED_REASON)
        return RiskAssessment(RiskLevel.MEDIUM, DXY_ADVERSE_YIELD_MIXED_REASON)
    if _pair(yield_type, dxy_type, RED, GREEN):
        return RiskAssessment(RiskLevel.MEDIUM, CONTRADICTORY_REASON)
    if yield_type is YELLOW and dxy_type is YELLOW:
        return RiskAssessment(RiskLevel.MEDIUM, BOTH_MIXED_REASON)
    # GREEN with YELLOW, in either order
    return RiskAssessment(RiskLevel.MEDIUM, PARTIALLY_SUPPORTIVE_REASON)


def aggregate(yield_signal: Signal | None, dxy_signal: Signal | None) -> RiskAssessment:
    """Aggregate the latest real yield and dollar index signals.

    A missing signal on either side yields ``MEDIUM`` with the incomplete-data
    reason.
    """

    if yield_signal is None or dxy_signal is None:
        return RiskAssessment(RiskLevel.MEDIUM, INCOMPLETE_DATA_REASON)
    return classify_risk(yield_signal.signal_type, dxy_signal.signal_type)


__all__ = [
    "BOTH_ADVERSE_REASON",
    "BOTH_MIXED_REASON",
    "BOTH_SUPPORTIVE_REASON",
    "CONTRADICTORY_REASON",
    "DXY_ADVERSE_YIELD_MIXED_REASON",
    "INCOMPLETE_DATA_REASON",
    "PARTIALLY_SUPPORTIVE_REASON",
    "RiskAssessment",
    "YIELD_ADVERSE_DXY_MIXED_REASON",
    "aggregate",
    "classify_risk",
]
