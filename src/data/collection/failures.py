from datetime import datetime, timedelta

from helpers.constants import NOTIFY_AFTER_FAILURES, NOTIFY_INTERVAL_SECONDS
from helpers.utils import ensure_utc


class FailureTracker:
    """Counts consecutive failed passes for one venue and decides when an
    operator should hear about it.

    Nobody is told about the first couple of failures. From the third one in
    a row on, we notify at most once per interval until a pass succeeds."""

    def __init__(
        self,
        enabled: bool = True,
        notify_after: int = NOTIFY_AFTER_FAILURES,
        notify_interval: timedelta = timedelta(seconds=NOTIFY_INTERVAL_SECONDS),
    ):
        self.enabled = enabled
        self._notify_after = notify_after
        self._notify_interval = notify_interval
        self._consecutive_failures = 0
        self._last_notified_at: datetime | None = None

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_notified_at(self) -> datetime | None:
        return self._last_notified_at

    def record_failure(self):
        self._consecutive_failures += 1

    def should_notify(self, now: datetime) -> bool:
        """Remembers a positive answer, so asking twice in a row only says
        yes once"""
        if not self.enabled:
            return False
        if self._consecutive_failures < self._notify_after:
            return False
        now = ensure_utc(now)
        if (
            self._last_notified_at is not None
            and now - self._last_notified_at < self._notify_interval
        ):
            return False
        self._last_notified_at = now
        return True

    def should_notify_failure(self, now: datetime) -> bool:
        self.record_failure()
        return self.should_notify(now)

    def record_success(self):
        self._consecutive_failures = 0
        self._last_notified_at = None

    def mark_success(self):
        self.record_success()
