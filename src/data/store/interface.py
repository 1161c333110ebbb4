import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Sequence

from pydantic import ValidationError
from sqlalchemy import (
    Float,
    Numeric,
    case,
    cast,
    create_engine,
    func,
    select,
    text,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from data.store.models import Base, OrderTradeDaily, SnapshotLatest
from helpers.config import CollectorConfig
from helpers.constants import AGGREGATE_CHUNK_SIZE, DEFAULT_COMMIT_TIMEOUT_SECONDS
from helpers.errors import PersistenceError
from helpers.types.aggregates import AggregateKey, AggregateRow, BoundMode
from helpers.types.money import Price, from_cents, to_cents
from helpers.types.orders import ItemId, Order, Side, VenueId
from helpers.types.snapshots import ItemSummary, Snapshot, SnapshotView, VenueStatus
from helpers.utils import chunked, ensure_utc

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("sqlite", "postgresql")


class StoreInterface:
    def __init__(
        self,
        database_url: str,
        commit_timeout_seconds: float = DEFAULT_COMMIT_TIMEOUT_SECONDS,
        chunk_size: int = AGGREGATE_CHUNK_SIZE,
    ):
        """Reads and writes collector state in a SQL database.

        Everything a pass writes goes through commit_pass, in one
        transaction. Only SQLite and PostgreSQL are supported since the
        aggregate merge relies on INSERT ... ON CONFLICT.

        :param str database_url: SQLAlchemy database url
        :param float commit_timeout_seconds: upper bound on waiting for the db
        :param int chunk_size: aggregate rows per merge statement
        """
        self._backend = make_url(database_url).get_backend_name()
        if self._backend not in SUPPORTED_BACKENDS:
            raise PersistenceError(f"Unsupported database backend: {self._backend}")
        self._commit_timeout_seconds = commit_timeout_seconds
        self._chunk_size = chunk_size
        connect_args: Dict[str, Any] = {}
        if self._backend == "sqlite":
            # Busy timeout. Writers wait this long for the file lock
            connect_args["timeout"] = commit_timeout_seconds
        self._engine = create_engine(database_url, connect_args=connect_args)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)

    @classmethod
    def from_config(cls, config: CollectorConfig) -> "StoreInterface":
        return cls(
            config.database_url,
            commit_timeout_seconds=config.commit_timeout_seconds,
        )

    def create_tables(self):
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not create tables: {e}") from e

    def dispose(self):
        self._engine.dispose()

    ######## Writes ############

    def commit_pass(
        self,
        venue_id: VenueId,
        observed_at: datetime,
        orders: Sequence[Order],
        unchanged: bool,
        rows: Sequence[AggregateRow],
    ):
        """Persists everything one pass produced, or nothing.

        An unchanged order book only moves the snapshot timestamp forward.
        Otherwise the stored order book is replaced. Aggregate rows are added
        onto what is already stored for their key."""
        observed_at = ensure_utc(observed_at)
        with self._transaction() as session:
            self._set_statement_timeout(session)
            if unchanged:
                touched = self._touch_snapshot(session, venue_id, observed_at)
                if not touched:
                    # Nothing stored yet for this venue
                    self._write_snapshot(session, venue_id, observed_at, orders)
            else:
                self._write_snapshot(session, venue_id, observed_at, orders)
            self._merge_aggregates(session, rows, observed_at)

    def _touch_snapshot(
        self, session: Session, venue_id: VenueId, observed_at: datetime
    ) -> bool:
        result = session.execute(
            update(SnapshotLatest)
            .where(SnapshotLatest.venue_id == venue_id)
            .values(observed_at=observed_at)
        )
        return result.rowcount > 0  # type:ignore[attr-defined]

    def _write_snapshot(
        self,
        session: Session,
        venue_id: VenueId,
        observed_at: datetime,
        orders: Sequence[Order],
    ):
        session.merge(
            SnapshotLatest(
                venue_id=venue_id,
                observed_at=observed_at,
                orders=[order.model_dump(mode="json") for order in orders],
            )
        )

    def _merge_aggregates(
        self, session: Session, rows: Sequence[AggregateRow], updated_at: datetime
    ):
        for chunk in chunked(list(rows), self._chunk_size):
            session.execute(
                self._merge_statement([_row_params(r, updated_at) for r in chunk])
            )

    def _merge_statement(self, params: List[Dict[str, Any]]):
        table = OrderTradeDaily.__table__
        if self._backend == "sqlite":
            stmt = sqlite.insert(table).values(params)
            greatest, least = func.max, func.min
            exact: Any = Float
        else:
            stmt = postgresql.insert(table).values(params)
            greatest, least = func.greatest, func.least
            exact = Numeric
        amount_total = table.c.amount + stmt.excluded.amount
        cents_total = table.c.value_cents + stmt.excluded.value_cents
        return stmt.on_conflict_do_update(
            index_elements=[
                table.c.scan_date,
                table.c.venue_id,
                table.c.item_id,
                table.c.is_buy_order,
                table.c.upper_bound,
            ],
            set_={
                "amount": amount_total,
                "order_num": table.c.order_num + stmt.excluded.order_num,
                "value_cents": cents_total,
                "high_cents": greatest(table.c.high_cents, stmt.excluded.high_cents),
                "low_cents": least(table.c.low_cents, stmt.excluded.low_cents),
                # Integer columns would make this an integer division
                "avg": case(
                    (amount_total > 0, cast(cents_total, exact) / amount_total / 100),
                    else_=0,
                ),
                "updated_at": stmt.excluded.updated_at,
            },
        )

    def _set_statement_timeout(self, session: Session):
        if self._backend == "postgresql":
            ms = int(self._commit_timeout_seconds * 1000)
            session.execute(text(f"SET LOCAL statement_timeout = {ms}"))

    ######## Reads ############

    def load_latest_snapshot(self, venue_id: VenueId) -> Snapshot | None:
        with self._transaction() as session:
            row = session.get(SnapshotLatest, venue_id)
            if row is None:
                return None
            observed_at = ensure_utc(row.observed_at)
            raw_orders = list(row.orders or [])

        orders: List[Order] = []
        for raw in raw_orders:
            try:
                orders.append(Order.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "Skipping stored order %s for structure %s: %s",
                    raw.get("order_id") if isinstance(raw, dict) else raw,
                    venue_id,
                    e,
                )
        return Snapshot(venue_id=venue_id, observed_at=observed_at, orders=orders)

    def get_latest_snapshot_view(
        self,
        venue_id: VenueId,
        item_id: ItemId | None = None,
        side: Side | None = None,
        limit: int = 200,
    ) -> SnapshotView:
        snapshot = self.load_latest_snapshot(venue_id)
        if snapshot is None:
            return SnapshotView(
                venue_id=venue_id,
                observed_at=None,
                total_orders=0,
                matched_orders=0,
                orders=[],
            )
        matched = [
            order
            for order in snapshot.orders
            if (item_id is None or order.type_id == item_id)
            and (side is None or order.side == side)
        ]
        return SnapshotView(
            venue_id=venue_id,
            observed_at=snapshot.observed_at,
            total_orders=len(snapshot.orders),
            matched_orders=len(matched),
            orders=matched[: max(limit, 0)],
        )

    def get_item_summaries(
        self, venue_id: VenueId, side: Side | None = None, limit: int = 200
    ) -> List[ItemSummary]:
        """Per item counts and best prices in the latest order book. Items
        with the most orders come first"""
        snapshot = self.load_latest_snapshot(venue_id)
        if snapshot is None:
            return []
        summaries: Dict[ItemId, ItemSummary] = {}
        for order in snapshot.orders:
            if side is not None and order.side != side:
                continue
            summary = summaries.setdefault(
                order.type_id, ItemSummary(item_id=order.type_id)
            )
            if order.is_buy_order:
                summary.buy_count += 1
                if summary.best_buy is None or order.price > summary.best_buy:
                    summary.best_buy = order.price
            else:
                summary.sell_count += 1
                if summary.best_sell is None or order.price < summary.best_sell:
                    summary.best_sell = order.price
        ordered = sorted(
            summaries.values(), key=lambda s: (-s.total_count, s.item_id)
        )
        return ordered[: max(limit, 0)]

    def get_daily_aggregates(
        self,
        venue_id: VenueId,
        day: date,
        side: Side | None = None,
        upper_bound: bool = False,
        item_id: ItemId | None = None,
        limit: int = 500,
    ) -> List[AggregateRow]:
        """Aggregates of one day, highest traded value first.
        No side means both sides"""
        query = select(OrderTradeDaily).where(
            OrderTradeDaily.venue_id == venue_id,
            OrderTradeDaily.scan_date == day,
            OrderTradeDaily.upper_bound == upper_bound,
        )
        if side is not None:
            query = query.where(OrderTradeDaily.is_buy_order == side.is_buy)
        if item_id is not None:
            query = query.where(OrderTradeDaily.item_id == item_id)
        query = query.order_by(
            OrderTradeDaily.value_cents.desc(), OrderTradeDaily.item_id
        ).limit(max(limit, 0))

        with self._transaction() as session:
            return [_to_aggregate_row(r) for r in session.scalars(query).all()]

    def get_status(self, venue_id: VenueId) -> VenueStatus:
        snapshot = self.load_latest_snapshot(venue_id)
        with self._transaction() as session:
            latest_day = session.execute(
                select(func.max(OrderTradeDaily.scan_date)).where(
                    OrderTradeDaily.venue_id == venue_id
                )
            ).scalar_one_or_none()

        orders = snapshot.orders if snapshot else []
        buy_count = sum(1 for order in orders if order.is_buy_order)
        return VenueStatus(
            venue_id=venue_id,
            observed_at=snapshot.observed_at if snapshot else None,
            order_count=len(orders),
            buy_count=buy_count,
            sell_count=len(orders) - buy_count,
            unique_items=len({order.type_id for order in orders}),
            latest_aggregate_day=latest_day,
        )

    ######## Helpers ############

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        """Commits on success, rolls back on any error"""
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database transaction failed: {e}") from e


def _row_params(row: AggregateRow, updated_at: datetime) -> Dict[str, Any]:
    return {
        "scan_date": row.key.scan_date,
        "venue_id": int(row.key.venue_id),
        "item_id": int(row.key.item_id),
        "is_buy_order": row.key.side.is_buy,
        "upper_bound": row.key.bound_mode.upper_bound,
        "amount": row.amount,
        "order_num": row.order_num,
        "value_cents": to_cents(row.value),
        "high_cents": to_cents(row.high),
        "low_cents": to_cents(row.low),
        "avg": row.average,
        "updated_at": updated_at.astimezone(timezone.utc),
    }


def _to_aggregate_row(r: OrderTradeDaily) -> AggregateRow:
    return AggregateRow(
        key=AggregateKey(
            scan_date=r.scan_date,
            venue_id=VenueId(r.venue_id),
            item_id=ItemId(r.item_id),
            side=Side.from_is_buy(r.is_buy_order),
            bound_mode=BoundMode(r.upper_bound),
        ),
        amount=int(r.amount),
        order_num=int(r.order_num),
        value=from_cents(r.value_cents),
        high=Price(from_cents(r.high_cents)),
        low=Price(from_cents(r.low_cents)),
    )
