import itertools
import random
import typing
from datetime import datetime, timedelta, timezone
from enum import Enum

from polyfactory.factories import DataclassFactory, pydantic_factory
from pydantic import BaseModel

from helpers.types.auth import AccountId
from helpers.types.money import Price
from helpers.types.orders import ItemId, Order, OrderId, Quantity, VenueId

# Dataclasses don't have native type hints
BM = typing.TypeVar("BM", bound=BaseModel | typing.Any)

_order_ids = itertools.count(1_000_000)

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
TEST_VENUE_ID = VenueId(1035466617946)
TEST_ACCOUNT_ID = AccountId(90000001)


class FactoryType(Enum):
    BASEMODEL = "basemodel"
    DATACLASS = "dataclass"


def random_data(
    base_model_class: type[BM],
    custom_args: typing.Dict[typing.Any, typing.Any] = {},
    factory_type: FactoryType = FactoryType.BASEMODEL,
) -> BM:
    """Fills in a basemodel with random data. Custom args lets you specify a
    mapping of custom types to their output.
    For example: {Quantity: lambda: Quantity(random.randint(0,100))}.
    """

    factory = (
        pydantic_factory.ModelFactory
        if factory_type == FactoryType.BASEMODEL
        else DataclassFactory
    )

    class Factory(factory[base_model_class]):  # type:ignore
        __model__ = base_model_class

        @classmethod
        def get_provider_map(cls) -> typing.Dict[typing.Type, typing.Any]:
            providers_map = super().get_provider_map()
            return {
                **custom_args,
                **providers_map,
            }

    return Factory.build()


def random_order(**overrides) -> Order:
    """Random but valid order. Ids never repeat within a test run"""
    order = random_data(
        Order,
        custom_args={
            OrderId: lambda: OrderId(next(_order_ids)),
            ItemId: lambda: ItemId(random.randint(1, 50_000)),
            Price: lambda: Price(random.randint(1, 100_000)),
            Quantity: lambda: Quantity(random.randint(1, 1_000)),
        },
    )
    return order.model_copy(update=overrides)


def make_order(
    order_id: int = 1,
    type_id: int = 34,
    is_buy_order: bool = False,
    price: str | int = 10,
    volume_remain: int = 100,
    volume_total: int = 100,
    issued: datetime = BASE_TIME - timedelta(days=1),
    duration: int = 90,
) -> Order:
    return Order(
        order_id=OrderId(order_id),
        type_id=ItemId(type_id),
        is_buy_order=is_buy_order,
        price=Price(price),
        volume_remain=Quantity(volume_remain),
        volume_total=Quantity(volume_total),
        issued=issued,
        duration=duration,
        location_id=1035466617946,
    )


def order_payload(order: Order) -> typing.Dict[str, typing.Any]:
    """What the venue would send for this order"""
    payload = order.model_dump(mode="json")
    # The venue sends prices as numbers
    payload["price"] = float(order.price)
    return payload
