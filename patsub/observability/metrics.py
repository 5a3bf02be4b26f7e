"""Hub metrics: publish, match, delivery, retire, guard-failure and flush counts."""

import threading
from typing import Dict

PUBLISHED = "published"
MATCHED = "matched"
DELIVERED = "delivered"
RETIRED = "retired"
GUARD_FAILURES = "guard_failures"
UNSUBSCRIBED = "unsubscribed"
FLUSHED = "flushed"

COUNTERS = (PUBLISHED, MATCHED, DELIVERED, RETIRED, GUARD_FAILURES, UNSUBSCRIBED, FLUSHED)


class Metrics:
    """Thread-safe counters for hub events plus the live subscription gauge.

    Dispatch threads, subscribers and the stats endpoint all touch the same
    instance, so every read and write goes through one lock.
    """

    def __init__(self) -> None:
        self._counters: Dict[str, int] = dict.fromkeys(COUNTERS, 0)
        self._subscriptions = 0
        self._lock = threading.Lock()

    def _add(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += value

    def record_published(self) -> None:
        self._add(PUBLISHED)

    def record_matched(self) -> None:
        self._add(MATCHED)

    def record_delivered(self) -> None:
        self._add(DELIVERED)

    def record_retired(self) -> None:
        self._add(RETIRED)

    def record_guard_failure(self) -> None:
        self._add(GUARD_FAILURES)

    def record_unsubscribed(self, live_subscriptions: int) -> None:
        with self._lock:
            self._counters[UNSUBSCRIBED] += 1
            self._subscriptions = live_subscriptions

    def record_flushed(self, count: int) -> None:
        if count > 0:
            self._add(FLUSHED, count)

    def set_subscriptions(self, live_subscriptions: int) -> None:
        """Gauge of live subscriptions across all channels."""
        with self._lock:
            self._subscriptions = live_subscriptions

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    @property
    def subscriptions(self) -> int:
        with self._lock:
            return self._subscriptions

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        """Return a snapshot of all metrics."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "gauges": {"subscriptions": self._subscriptions},
            }
