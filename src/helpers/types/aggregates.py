from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from helpers.types.money import Price, notional
from helpers.types.orders import ItemId, Side, VenueId


class BoundMode(Enum):
    """Which estimate a trade counts towards.

    The same fill may count towards both, so consumers can pick
    the view they want"""

    # Only confirmed reductions of remaining volume
    CONSERVATIVE = False
    # Also disappearances that don't look like expiry
    LIBERAL = True

    @property
    def upper_bound(self) -> bool:
        return self.value


@dataclass(frozen=True)
class AggregateKey:
    scan_date: date
    venue_id: VenueId
    item_id: ItemId
    side: Side
    bound_mode: BoundMode


@dataclass(frozen=True)
class TradeDelta:
    """Inferred trading activity for one order between two snapshots"""

    scan_date: date
    venue_id: VenueId
    item_id: ItemId
    side: Side
    bound_mode: BoundMode
    quantity: int
    event_count: int
    price: Price

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"{self.quantity} invalid trade quantity")
        if self.event_count < 0:
            raise ValueError(f"{self.event_count} invalid event count")

    @property
    def key(self) -> AggregateKey:
        return AggregateKey(
            scan_date=self.scan_date,
            venue_id=self.venue_id,
            item_id=self.item_id,
            side=self.side,
            bound_mode=self.bound_mode,
        )

    @property
    def value(self) -> Decimal:
        return notional(self.price, self.quantity)


@dataclass
class AggregateRow:
    """Accumulated statistics for one aggregate key"""

    key: AggregateKey
    amount: int
    order_num: int
    value: Decimal
    high: Price
    low: Price

    @property
    def average(self) -> Decimal:
        if self.amount <= 0:
            return Decimal(0)
        return self.value / Decimal(self.amount)
