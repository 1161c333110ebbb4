from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List

from helpers.types.money import Price
from helpers.types.orders import ItemId, Order, VenueId


@dataclass(frozen=True)
class Snapshot:
    """Full set of active orders at one venue at one instant"""

    venue_id: VenueId
    observed_at: datetime
    orders: List[Order] = field(default_factory=list)


@dataclass
class SnapshotView:
    """Filtered slice of the latest snapshot"""

    venue_id: VenueId
    observed_at: datetime | None
    total_orders: int
    matched_orders: int
    orders: List[Order]

    @property
    def returned_orders(self) -> int:
        return len(self.orders)


@dataclass
class ItemSummary:
    item_id: ItemId
    sell_count: int = 0
    buy_count: int = 0
    best_sell: Price | None = None
    best_buy: Price | None = None

    @property
    def total_count(self) -> int:
        return self.sell_count + self.buy_count


@dataclass
class VenueStatus:
    venue_id: VenueId
    observed_at: datetime | None
    order_count: int
    buy_count: int
    sell_count: int
    unique_items: int
    latest_aggregate_day: date | None
