"""Tables the collector writes to.

One row per venue holds the latest order book. Daily trade estimates are
keyed by day, venue, item, side and bound."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class SnapshotLatest(Base):
    __tablename__ = "structure_snapshot_latest"

    venue_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    # Orders as the venue sent them, serialized
    orders: Mapped[List[Dict[str, Any]]] = mapped_column(JSON)


class OrderTradeDaily(Base):
    __tablename__ = "structure_order_trades_daily"

    scan_date: Mapped[date] = mapped_column(Date, primary_key=True)
    venue_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    item_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    is_buy_order: Mapped[bool] = mapped_column(Boolean, primary_key=True)
    # False is the conservative estimate, True the liberal one
    upper_bound: Mapped[bool] = mapped_column(Boolean, primary_key=True)

    amount: Mapped[int] = mapped_column(BigInteger, default=0)
    order_num: Mapped[int] = mapped_column(BigInteger, default=0)
    # Money in hundredths of ISK
    value_cents: Mapped[int] = mapped_column(BigInteger, default=0)
    high_cents: Mapped[int] = mapped_column(BigInteger)
    low_cents: Mapped[int] = mapped_column(BigInteger)
    # Derived from value_cents and amount on every merge
    avg: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_trades_daily_venue_date", "venue_id", "scan_date"),
    )
