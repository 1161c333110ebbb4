from decimal import Decimal

import pytest

from helpers.types.money import (
    Price,
    from_cents,
    max_price,
    min_price,
    notional,
    to_cents,
)


def test_prices():
    assert Price(10) == Decimal("10.00")
    assert Price("1234567.891") == Decimal("1234567.89")
    # Half up, not bankers rounding
    assert Price("0.125") == Decimal("0.13")
    assert Price(0) == Decimal(0)

    # Allows float without picking up binary noise
    assert Price(90.1) == Decimal("90.10")
    assert Price(0.1) + Price(0.2) == Decimal("0.30")

    with pytest.raises(ValueError):
        Price(-1)
    with pytest.raises(ValueError):
        Price(float("nan"))
    with pytest.raises(ValueError):
        Price(Decimal("Infinity"))


def test_notional_keeps_precision():
    # Large quantities at large prices must not lose cents
    assert notional(Price("12345678.99"), 1_000_000_007) == Decimal(
        "12345678.99"
    ) * Decimal(1_000_000_007)
    assert notional(Price(10), 100) == Decimal(1000)


def test_max_min_price():
    assert max_price(Price(10), Price("10.01")) == Price("10.01")
    assert min_price(Price(10), Price("10.01")) == Price(10)
    assert max_price(Price(5), Price(5)) == Price(5)


def test_cents():
    assert to_cents(Decimal("1080.00")) == 108000
    assert to_cents(Price("0.03") * 1) == 3
    assert to_cents(Decimal("99999999.99") * 3_000_000) == 29999999997000000
    assert from_cents(108000) == Decimal("1080.00")
    assert from_cents(3) == Decimal("0.03")
    assert str(from_cents(5)) == "0.05"
    assert from_cents(to_cents(Price("12.34") * 7)) == Decimal("86.38")
