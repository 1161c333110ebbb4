from datetime import date, datetime, timezone
from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def ensure_utc(d: datetime) -> datetime:
    """Naive datetimes are taken to already be UTC"""
    if d.tzinfo is None:
        return d.replace(tzinfo=timezone.utc)
    return d.astimezone(timezone.utc)


def utc_day(d: datetime) -> date:
    """Calendar day in UTC that d falls in"""
    return ensure_utc(d).date()


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    if size <= 0:
        raise ValueError(f"{size} invalid chunk size")
    for i in range(0, len(items), size):
        yield list(items[i : i + size])
