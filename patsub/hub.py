"""Hub: the in-process publish/subscribe API over the registry and dispatcher."""

import threading
from typing import Any, Dict, Optional

from patsub.config import get_settings
from patsub.dispatcher import Dispatcher
from patsub.mailbox import Mailbox
from patsub.observability import Metrics, get_logger
from patsub.registry import Registry
from patsub.subscription import SubscriptionRef


class Hub:
    """Pattern-matched publish/subscribe hub.

    Subscribers own a Mailbox and register patterns per channel; publishers
    send arbitrary values; matching values are enqueued on the owners' mailboxes.
    """

    def __init__(
        self,
        registry: Optional[Registry] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self._registry = registry or Registry()
        self._metrics = metrics or Metrics()
        self._dispatcher = Dispatcher(self._registry, self._metrics)
        self._logger = get_logger("patsub.hub")

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def subscribe(
        self,
        channel: str,
        pattern: Any,
        owner: Mailbox,
        count: Optional[int] = None,
        multi: bool = False,
    ) -> SubscriptionRef:
        """Register ``pattern`` on ``channel`` for ``owner``. Raises PatternError on a malformed pattern."""
        ref = self._registry.subscribe(channel, pattern, owner, count=count, multi=multi)
        self._metrics.set_subscriptions(self._registry.subscription_count())
        return ref

    def unsubscribe(self, ref: SubscriptionRef) -> None:
        """Remove a subscription; unknown or already removed refs are ignored."""
        if self._registry.unsubscribe(ref) is not None:
            self._metrics.record_unsubscribed(self._registry.subscription_count())

    def unsubscribe_and_flush(self, ref: SubscriptionRef) -> int:
        """
        Unsubscribe, then discard every item already queued in the owner's mailbox
        that the subscription's pattern matches. Only the mailbox owner may call this.
        Returns the number of discarded items.
        """
        subscription = self._registry.unsubscribe(ref)
        if subscription is None:
            return 0
        self._metrics.record_unsubscribed(self._registry.subscription_count())
        flushed = subscription.owner.drain_matching(subscription.pattern)
        self._metrics.record_flushed(flushed)
        self._logger.info(
            "unsubscribed_and_flushed",
            extra={"subscription": str(ref), "flushed": flushed},
        )
        return flushed

    def publish(self, channel: str, message: Any) -> int:
        """Fire-and-forget publish; returns how many subscribers received ``message``."""
        return self._dispatcher.publish(channel, message)

    def is_live(self, ref: SubscriptionRef) -> bool:
        return self._registry.is_live(ref)

    def stats(self) -> Dict[str, Any]:
        """Per-channel subscription counts plus hub counters."""
        return {
            "channels": self._registry.channel_stats(),
            "metrics": self._metrics.snapshot(),
        }


_default_hub: Optional[Hub] = None
_default_lock = threading.Lock()


def get_hub() -> Hub:
    """Return the process-wide hub, creating it on first use."""
    global _default_hub
    with _default_lock:
        if _default_hub is None:
            settings = get_settings()
            _default_hub = Hub(Registry(max_pattern_depth=settings.max_pattern_depth))
        return _default_hub


def reset_hub() -> Hub:
    """Replace the process-wide hub with a fresh one (tests, restarts)."""
    global _default_hub
    with _default_lock:
        _default_hub = None
    return get_hub()
