from datetime import date, timedelta
from decimal import Decimal

import pytest

from engine.signals import (
    CONFIDENCE_HIGH,
    CONFIDENCE_MEDIUM,
    DXY_CODE,
    REAL_YIELD_CODE,
    classify_trend,
    count_moves,
    derive_signal,
    signal_reason,
)
from pipelines.model import Observation, SignalType

AS_OF = date(2025, 3, 14)


def _window(*values, code=REAL_YIELD_CODE):
    """Observations most recent first, one business day apart."""

    return [
        Observation(
            indicator_code=code,
            value=Decimal(str(value)),
            observed_on=AS_OF - timedelta(days=offset),
            source="FRED",
        )
        for offset, value in enumerate(values)
    ]


@pytest.mark.parametrize("values", [(), (1.5,)])
def test_fewer_than_two_points_yields_no_signal(values):
    assert derive_signal(REAL_YIELD_CODE, _window(*values), AS_OF) is None


def test_rising_window_is_red():
    outcome = derive_signal(REAL_YIELD_CODE, _window(12, 11, 10), AS_OF)

    assert outcome.signal_type is SignalType.RED
    assert outcome.confidence == Decimal("0.7")
    assert outcome.reason == "Real yields rising consistently – historically bearish for gold"


def test_falling_window_is_green():
    outcome = derive_signal(DXY_CODE, _window(8, 9, 10, code=DXY_CODE), AS_OF)

    assert outcome.signal_type is SignalType.GREEN
    assert outcome.confidence == CONFIDENCE_HIGH
    assert outcome.reason == "A weakening dollar supports gold prices"


def test_up_then_down_is_yellow():
    outcome = derive_signal(REAL_YIELD_CODE, _window(10, 11, 10), AS_OF)

    assert outcome.signal_type is SignalType.YELLOW
    assert outcome.confidence == CONFIDENCE_MEDIUM
    assert outcome.reason == "Real yields mixed – potential correction risk"


def test_two_points_rising_is_not_enough_for_red():
    outcome = derive_signal(REAL_YIELD_CODE, _window(2.1, 2.0), AS_OF)

    assert outcome.signal_type is SignalType.YELLOW


def test_ties_count_for_neither_direction():
    counts = count_moves([Decimal("1.0"), Decimal("1.0"), Decimal("0.9")])

    assert counts.rising == 1
    assert counts.falling == 0
    assert classify_trend([Decimal("1.0"), Decimal("1.0"), Decimal("1.0")]) == (
        SignalType.YELLOW,
        CONFIDENCE_MEDIUM,
    )


def test_only_three_most_recent_points_are_used():
    # 4th point would make the trend mixed if it were considered.
    outcome = derive_signal(REAL_YIELD_CODE, _window(3, 2, 1, 5), AS_OF)

    assert outcome.signal_type is SignalType.RED


def test_observations_after_as_of_are_ignored():
    window = _window(9, 12, 11, 10)
    outcome = derive_signal(REAL_YIELD_CODE, window, AS_OF - timedelta(days=1))

    assert outcome.signal_type is SignalType.RED


def test_unknown_indicator_uses_generic_reason():
    outcome = derive_signal("US_CPI", _window(3, 2, 1, code="US_CPI"), AS_OF)

    assert outcome.reason == "Indicator rising consistently – negative for gold"
    assert signal_reason("US_CPI", SignalType.GREEN) == "Indicator falling – supportive for gold"
    assert signal_reason("US_CPI", SignalType.YELLOW) == "Indicator mixed – uncertain outlook"


def test_derivation_is_deterministic():
    window = _window(1.71, 1.69, 1.74)

    first = derive_signal(REAL_YIELD_CODE, window, AS_OF)
    second = derive_signal(REAL_YIELD_CODE, list(window), AS_OF)

    assert first == second


def test_dxy_reason_catalog():
    assert signal_reason(DXY_CODE, SignalType.RED) == (
        "A strengthening dollar tends to pressure gold prices"
    )
    assert signal_reason(DXY_CODE, SignalType.YELLOW) == (
        "Dollar index mixed – uncertain impact on gold"
    )
    assert signal_reason(REAL_YIELD_CODE, SignalType.GREEN) == (
        "Real yields easing – supportive for gold"
    )


def test_outcome_converts_to_signal():
    outcome = derive_signal(REAL_YIELD_CODE, _window(1, 2, 3), AS_OF)
    signal = outcome.to_signal(REAL_YIELD_CODE, AS_OF)

    assert signal.indicator_code == REAL_YIELD_CODE
    assert signal.as_of == AS_OF
    assert signal.signal_type is SignalType.GREEN
