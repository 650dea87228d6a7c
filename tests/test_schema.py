from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from pipelines.model import Observation, PriceSnapshot, Signal, SignalType


def test_observation_keeps_decimal_precision():
    observation = Observation(
        indicator_code=" US_10Y_REAL_YIELD ",
        value="1.830000",
        observed_on=date(2025, 1, 2),
        source="FRED",
    )

    assert observation.indicator_code == "US_10Y_REAL_YIELD"
    assert observation.value == Decimal("1.83")
    assert isinstance(observation.value, Decimal)

    serialized = observation.model_dump()
    assert serialized["observed_on"] == date(2025, 1, 2)


def test_observation_requires_numeric_value():
    with pytest.raises(ValueError):
        Observation(
            indicator_code="US_DOLLAR_INDEX",
            value="not-a-number",
            observed_on=date(2025, 1, 2),
            source="FRED",
        )


def test_models_are_immutable():
    snapshot = PriceSnapshot(price=Decimal("2650.10"), as_of=datetime(2025, 1, 2), source="GoldPricez")

    with pytest.raises(ValidationError):
        snapshot.is_live = False

    stale = snapshot.model_copy(update={"is_live": False})
    assert snapshot.is_live is True
    assert stale.is_live is False
    assert stale.price == snapshot.price


def test_signal_confidence_is_bounded():
    with pytest.raises(ValidationError):
        Signal(
            indicator_code="US_10Y_REAL_YIELD",
            signal_type=SignalType.RED,
            reason="r",
            as_of=date(2025, 1, 2),
            confidence=Decimal("1.5"),
        )
