from typing import Dict, Iterable, List

from helpers.types.aggregates import AggregateKey, AggregateRow, TradeDelta
from helpers.types.money import max_price, min_price


class Aggregator:
    """Folds the trade deltas of one pass into one row per aggregate key"""

    def __init__(self):
        self._rows: Dict[AggregateKey, AggregateRow] = {}

    def add(self, delta: TradeDelta):
        row = self._rows.get(delta.key)
        if row is None:
            self._rows[delta.key] = AggregateRow(
                key=delta.key,
                amount=delta.quantity,
                order_num=delta.event_count,
                value=delta.value,
                high=delta.price,
                low=delta.price,
            )
            return
        row.amount += delta.quantity
        row.order_num += delta.event_count
        row.value += delta.value
        row.high = max_price(row.high, delta.price)
        row.low = min_price(row.low, delta.price)

    def add_all(self, deltas: Iterable[TradeDelta]):
        for delta in deltas:
            self.add(delta)

    def rows(self) -> List[AggregateRow]:
        """Rows in a stable order so writes always lock keys the same way"""
        return sorted(
            self._rows.values(),
            key=lambda row: (
                row.key.scan_date,
                row.key.venue_id,
                row.key.item_id,
                row.key.side.value,
                row.key.bound_mode.value,
            ),
        )

    def __len__(self):
        return len(self._rows)

    def __bool__(self):
        return bool(self._rows)


def aggregate(deltas: Iterable[TradeDelta]) -> List[AggregateRow]:
    aggregator = Aggregator()
    aggregator.add_all(deltas)
    return aggregator.rows()
