from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, List, Tuple

from pydantic import ConfigDict, GetCoreSchemaHandler, RootModel, field_validator
from pydantic_core import CoreSchema, core_schema

from helpers.types.api import ExternalApi
from helpers.types.common import PositiveInt
from helpers.types.money import Price


class OrderId(PositiveInt):
    """Id the venue gives to an order. Stable across polls"""


class ItemId(PositiveInt):
    """Id of the item being traded"""


class VenueId(PositiveInt):
    """Id of the structure whose order book we poll"""


class Quantity(int):
    """Provides a type for quantities"""

    def __new__(cls, num: int):
        if num < 0:
            raise ValueError(f"{num} invalid quantity")
        return super(Quantity, cls).__new__(cls, num)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_after_validator_function(cls, handler(int))


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @classmethod
    def from_is_buy(cls, is_buy_order: bool) -> "Side":
        return cls.BUY if is_buy_order else cls.SELL

    @property
    def is_buy(self) -> bool:
        return self == Side.BUY


class Order(ExternalApi):
    """A resting order as the venue reports it at one point in time"""

    model_config = ConfigDict(frozen=True)

    order_id: OrderId
    type_id: ItemId
    is_buy_order: bool
    price: Price
    volume_remain: Quantity
    volume_total: Quantity
    issued: datetime
    # Days until the order expires on its own
    duration: int
    min_volume: int = 1
    range: str = "region"
    location_id: int | None = None

    @field_validator("issued")
    @classmethod
    def _issued_is_utc(cls, issued: datetime) -> datetime:
        if issued.tzinfo is None:
            return issued.replace(tzinfo=timezone.utc)
        return issued.astimezone(timezone.utc)

    @property
    def side(self) -> Side:
        return Side.from_is_buy(self.is_buy_order)

    @property
    def expires_at(self) -> datetime:
        return self.issued + timedelta(days=self.duration)

    def diff_key(self) -> Tuple[int, int, Price, bool, int]:
        """Fields that matter when deciding whether an order changed"""
        return (
            self.volume_remain,
            self.volume_total,
            self.price,
            self.is_buy_order,
            self.type_id,
        )


class GetStructureOrdersResponse(RootModel[List[Order]]):
    """One page of the structure order book"""

    def __iter__(self):  # type:ignore[override]
        return iter(self.root)

    def __len__(self):
        return len(self.root)
