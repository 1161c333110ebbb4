from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import CoreSchema, core_schema

CENT = Decimal("0.01")


class Price(Decimal):
    """Unit price of an order. Fixed point with two decimal places"""

    def __new__(cls, value: Decimal | int | str | float):
        # Floats go through str so 0.1 stays 0.1
        num = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        if not num.is_finite() or num < 0:
            raise ValueError(f"{value} invalid price")
        return super(Price, cls).__new__(
            cls, num.quantize(CENT, rounding=ROUND_HALF_UP)
        )

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_after_validator_function(cls, handler(Decimal))


def notional(price: Price, quantity: int) -> Decimal:
    """Value of quantity units traded at price"""
    return price * Decimal(quantity)


def max_price(a: Price, b: Price) -> Price:
    return a if a > b else b


def min_price(a: Price, b: Price) -> Price:
    return a if a < b else b


def to_cents(amount: Decimal) -> int:
    """Amount in hundredths of ISK. Prices have two places so totals are exact"""
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return Decimal(int(cents)).scaleb(-2)
