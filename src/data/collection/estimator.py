"""Infers trades from two consecutive order book snapshots.

The venue never tells us about executions. An order whose remaining volume
went down was (at least partly) filled. An order that vanished was either
filled completely, cancelled, or expired. Expiry can be predicted from the
issue time and duration, cancellation can't, so vanished orders only count
towards the liberal estimate."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List

from helpers.types.aggregates import BoundMode, TradeDelta
from helpers.types.money import Price
from helpers.types.orders import Order, OrderId, VenueId
from helpers.utils import ensure_utc, utc_day

logger = logging.getLogger(__name__)


@dataclass
class EstimateResult:
    # True when nothing that matters changed between the snapshots
    unchanged: bool
    deltas: List[TradeDelta] = field(default_factory=list)


def index_orders(orders: Iterable[Order]) -> Dict[OrderId, Order]:
    return {order.order_id: order for order in orders}


def snapshots_unchanged(
    previous: Dict[OrderId, Order], current: Dict[OrderId, Order]
) -> bool:
    """Same ids with the same remaining volume, total volume, price, side
    and item on both sides"""
    if len(previous) != len(current):
        return False
    for order_id, curr in current.items():
        prev = previous.get(order_id)
        if prev is None or prev.diff_key() != curr.diff_key():
            return False
    return True


def likely_expired(
    order: Order,
    previous_observed_at: datetime,
    observed_at: datetime,
    expiry_window: timedelta,
) -> bool:
    """The order disappeared somewhere in (previous_observed_at, observed_at].
    If it was due to expire around then, we assume it did"""
    expires_at = order.expires_at
    return (
        previous_observed_at - expiry_window
        <= expires_at
        <= observed_at + expiry_window
    )


def _usable_price(*candidates: Price | None) -> Price | None:
    for price in candidates:
        if price is not None and price.is_finite():
            return price
    return None


def estimate_deltas(
    previous_orders: Iterable[Order],
    current_orders: Iterable[Order],
    previous_observed_at: datetime,
    observed_at: datetime,
    venue_id: VenueId,
    expiry_window: timedelta,
) -> EstimateResult:
    """Compares two snapshots of the same venue and returns the trade deltas.

    Confirmed volume reductions count towards both bounds. Disappeared orders
    that were not due to expire count towards the liberal bound only. New
    orders are just the baseline for the next pass."""
    previous_observed_at = ensure_utc(previous_observed_at)
    observed_at = ensure_utc(observed_at)
    previous = index_orders(previous_orders)
    current = index_orders(current_orders)

    if snapshots_unchanged(previous, current):
        return EstimateResult(unchanged=True)

    scan_date = utc_day(observed_at)
    deltas: List[TradeDelta] = []

    for order_id, curr in current.items():
        prev = previous.get(order_id)
        if prev is None:
            continue
        filled = prev.volume_remain - curr.volume_remain
        if filled <= 0:
            continue
        # The fill happened at the price that was in effect before
        price = _usable_price(prev.price, curr.price)
        if price is None:
            logger.debug("Skipping order %s: no usable price", order_id)
            continue
        for bound_mode in (BoundMode.CONSERVATIVE, BoundMode.LIBERAL):
            deltas.append(
                TradeDelta(
                    scan_date=scan_date,
                    venue_id=venue_id,
                    item_id=curr.type_id,
                    side=curr.side,
                    bound_mode=bound_mode,
                    quantity=filled,
                    event_count=1,
                    price=price,
                )
            )

    for order_id, prev in previous.items():
        if order_id in current:
            continue
        if prev.duration <= 0:
            logger.debug("Skipping order %s: duration %s", order_id, prev.duration)
            continue
        if likely_expired(prev, previous_observed_at, observed_at, expiry_window):
            continue
        if prev.volume_remain <= 0:
            logger.debug("Skipping order %s: nothing remaining", order_id)
            continue
        price = _usable_price(prev.price)
        if price is None:
            logger.debug("Skipping order %s: no usable price", order_id)
            continue
        deltas.append(
            TradeDelta(
                scan_date=scan_date,
                venue_id=venue_id,
                item_id=prev.type_id,
                side=prev.side,
                bound_mode=BoundMode.LIBERAL,
                quantity=prev.volume_remain,
                event_count=1,
                price=price,
            )
        )

    return EstimateResult(unchanged=False, deltas=deltas)
