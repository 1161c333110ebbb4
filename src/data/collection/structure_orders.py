"""Runs collection passes over a structure's order book.

Each pass fetches the full order book, compares it with the one stored by
the previous pass, and adds the inferred trades to the daily aggregates.
Scheduling passes is up to the caller. Run this module to do one pass."""

import argparse
import logging
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter
from typing import Dict, List

from fastapi.testclient import TestClient
from rich.console import Console
from rich.table import Table

from data.collection.aggregator import Aggregator
from data.collection.estimator import estimate_deltas
from data.collection.failures import FailureTracker
from data.store.interface import StoreInterface
from helpers.config import CollectorConfig
from helpers.errors import CollectionError, CollectionInProgressError
from helpers.logger import setup_logger
from helpers.types.auth import EnvTokenProvider, TokenProvider
from helpers.types.orders import Order, VenueId
from helpers.types.venue import BaseVenueInterface
from helpers.utils import ensure_utc
from venue.interface import VenueInterface

logger = logging.getLogger(__name__)


@dataclass
class CollectResult:
    observed_at: datetime
    order_count: int
    aggregate_key_count: int
    unchanged: bool
    had_previous_snapshot: bool


class StructureOrderCollector:
    def __init__(
        self,
        venue: BaseVenueInterface,
        store: StoreInterface,
        config: CollectorConfig,
    ):
        self._venue = venue
        self._store = store
        self._config = config
        self._locks: Dict[VenueId, threading.Lock] = {}
        self._trackers: Dict[VenueId, FailureTracker] = {}
        # Guards the two dicts above
        self._guard = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: CollectorConfig,
        provider: TokenProvider,
        test_client: TestClient | None = None,
    ) -> "StructureOrderCollector":
        store = StoreInterface.from_config(config)
        store.create_tables()
        venue = VenueInterface.from_config(config, provider, test_client)
        return cls(venue, store, config)

    @property
    def store(self) -> StoreInterface:
        return self._store

    def collect_once(
        self,
        venue_id: VenueId | None = None,
        force_refresh: bool = False,
        observed_at: datetime | None = None,
    ) -> CollectResult:
        """Runs one pass for a venue. Passes for the same venue never overlap.

        Any failure is recorded against the venue and re-raised"""
        tracker_key = venue_id or self._config.venue_id
        try:
            venue_id, _ = self._config.validate_for_pass(venue_id)
            with self._venue_lock(venue_id):
                result = self._collect(venue_id, force_refresh, observed_at)
        except Exception as e:
            logger.warning("Structure order pass failed for %s: %s", tracker_key, e)
            if tracker_key is not None:
                self.tracker(VenueId(tracker_key)).record_failure()
            raise
        self.tracker(venue_id).record_success()
        return result

    def tracker(self, venue_id: VenueId) -> FailureTracker:
        with self._guard:
            if venue_id not in self._trackers:
                self._trackers[venue_id] = FailureTracker(
                    enabled=self._config.enabled
                )
            return self._trackers[venue_id]

    def should_notify_failure(
        self, now: datetime, venue_id: VenueId | None = None
    ) -> bool:
        """Asks whether the failures collect_once already recorded warrant
        telling an operator"""
        return self.tracker(self._tracker_venue(venue_id)).should_notify(now)

    def mark_success(self, venue_id: VenueId | None = None):
        self.tracker(self._tracker_venue(venue_id)).record_success()

    ######## Helpers ############

    def _collect(
        self,
        venue_id: VenueId,
        force_refresh: bool,
        observed_at: datetime | None,
    ) -> CollectResult:
        start = perf_counter()
        logger.info("Starting structure order pass for %s", venue_id)
        orders: List[Order] = self._venue.get_structure_orders(
            venue_id, force_refresh=force_refresh
        )
        observed_at = ensure_utc(observed_at or datetime.now(timezone.utc))

        previous = self._store.load_latest_snapshot(venue_id)
        # Without a baseline every order looks new, so nothing is estimated
        previous_orders = previous.orders if previous else []
        previous_observed_at = previous.observed_at if previous else observed_at

        estimate = estimate_deltas(
            previous_orders,
            orders,
            previous_observed_at,
            observed_at,
            venue_id,
            self._config.expiry_window,
        )
        aggregator = Aggregator()
        aggregator.add_all(estimate.deltas)
        rows = aggregator.rows()

        self._store.commit_pass(
            venue_id,
            observed_at,
            orders,
            unchanged=estimate.unchanged,
            rows=rows,
        )
        logger.info(
            "Structure order pass for %s done in %.2fs: %d orders, %d keys%s",
            venue_id,
            perf_counter() - start,
            len(orders),
            len(rows),
            " (unchanged)" if estimate.unchanged else "",
        )
        return CollectResult(
            observed_at=observed_at,
            order_count=len(orders),
            aggregate_key_count=len(rows),
            unchanged=estimate.unchanged,
            had_previous_snapshot=previous is not None,
        )

    def _tracker_venue(self, venue_id: VenueId | None) -> VenueId:
        venue_id = venue_id or self._config.venue_id
        if venue_id is None:
            raise ValueError("No venue given and none configured")
        return VenueId(venue_id)

    def _venue_lock(self, venue_id: VenueId) -> "_HeldLock":
        with self._guard:
            lock = self._locks.setdefault(venue_id, threading.Lock())
        return _HeldLock(lock, venue_id, self._config.lock_timeout_seconds)


class _HeldLock:
    def __init__(self, lock: threading.Lock, venue_id: VenueId, timeout: float):
        self._lock = lock
        self._venue_id = venue_id
        self._timeout = timeout

    def __enter__(self):
        if not self._lock.acquire(timeout=self._timeout):
            raise CollectionInProgressError(
                f"A pass for structure {self._venue_id} is still running"
            )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._lock.release()


def generate_table(result: CollectResult) -> Table:
    table = Table(
        show_header=True, header_style="bold", title="Structure Order Collection"
    )

    table.add_column("Observed at", style="cyan")
    table.add_column("Orders", style="cyan", width=10)
    table.add_column("Aggregate keys", style="cyan", width=14)
    table.add_column("Unchanged", style="cyan", width=10)
    table.add_column("Had baseline", style="cyan", width=12)

    table.add_row(
        result.observed_at.isoformat(),
        str(result.order_count),
        str(result.aggregate_key_count),
        str(result.unchanged),
        str(result.had_previous_snapshot),
    )

    return table


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run one structure order pass")
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Ask the venue to bypass its cache",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    setup_logger(level=logging.DEBUG if args.debug else logging.INFO)
    try:
        config = CollectorConfig.from_env()
        collector = StructureOrderCollector.from_config(config, EnvTokenProvider())
        result = collector.collect_once(force_refresh=args.force_refresh)
    except CollectionError as e:
        logger.error("Structure order collection failed: %s", e)
        return 1
    Console().print(generate_table(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
