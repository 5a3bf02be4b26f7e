"""In-memory channel and subscription registry for the hub."""

import itertools
import threading
from typing import Any, Callable, Dict, List, Optional

from patsub.channel import GONE, Channel
from patsub.compiler import compile_alternatives, compile_pattern
from patsub.mailbox import Mailbox
from patsub.observability import get_logger
from patsub.subscription import Subscription, SubscriptionRef


class Registry:
    """Concurrent mapping of channel name to its ordered live subscriptions.

    The channel map is guarded by a registry lock and each channel's
    collection by the channel lock. When both are held they are taken registry
    first, channel second; subscribe never waits on a channel lock while
    holding the registry lock. Empty channels are dropped from the map.
    """

    def __init__(self, max_pattern_depth: Optional[int] = None) -> None:
        self._channels: Dict[str, Channel] = {}
        self._lock = threading.Lock()
        self._order = itertools.count(1)
        self._max_pattern_depth = max_pattern_depth
        self._logger = get_logger("patsub.registry")

    def subscribe(
        self,
        channel: str,
        pattern: Any,
        owner: Mailbox,
        count: Optional[int] = None,
        multi: bool = False,
    ) -> SubscriptionRef:
        """
        Compile ``pattern`` (an Alternation of the list when ``multi``), then add a
        subscription that delivers to ``owner`` at most ``count`` times (None = unbounded).
        Raises PatternError before inserting anything if the pattern is malformed.
        """
        if not isinstance(channel, str) or not channel:
            raise ValueError("channel must be a non-empty string")
        if count is not None and (isinstance(count, bool) or not isinstance(count, int) or count <= 0):
            raise ValueError(f"count must be a positive integer or None, got {count!r}")
        if multi:
            compiled = compile_alternatives(pattern, max_depth=self._max_pattern_depth)
        else:
            compiled = compile_pattern(pattern, max_depth=self._max_pattern_depth)

        ref = SubscriptionRef.new(channel)
        while True:
            with self._lock:
                target = self._channels.get(channel)
                if target is None:
                    target = Channel(channel)
                    self._channels[channel] = target
            with target.lock:
                # _prune removes a channel only while holding its lock
                if self._channels.get(channel) is not target:
                    continue
                subscription = Subscription(
                    ref=ref,
                    pattern=compiled,
                    owner=owner,
                    remaining=count,
                    created_order=next(self._order),
                )
                target.add(subscription)
                break
        self._logger.info(
            "subscribed",
            extra={
                "channel": channel,
                "subscription": str(subscription.ref),
                "owner_id": owner.owner_id,
                "count": count,
            },
        )
        return subscription.ref

    def unsubscribe(self, ref: SubscriptionRef) -> Optional[Subscription]:
        """Remove a subscription. Returns it, or None if it was unknown or already gone."""
        if not isinstance(ref, SubscriptionRef):
            return None
        target = self._get_channel(ref.channel)
        if target is None:
            return None
        subscription = target.remove(ref)
        if subscription is None:
            return None
        self._prune(ref.channel)
        self._logger.info(
            "unsubscribed",
            extra={"channel": ref.channel, "subscription": str(ref)},
        )
        return subscription

    def snapshot_channel(self, channel: str) -> List[Subscription]:
        """Point-in-time copy of the channel's live subscriptions, oldest first."""
        target = self._get_channel(channel)
        if target is None:
            return []
        return target.snapshot()

    def decrement_and_maybe_remove(
        self,
        ref: SubscriptionRef,
        deliver: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """
        Atomically run ``deliver`` (non-blocking), decrement the remaining count and
        retire the subscription when it reaches zero. Returns the remaining count
        (None when unbounded) or GONE if the subscription was already removed.
        """
        target = self._get_channel(ref.channel)
        if target is None:
            return GONE
        remaining = target.claim(ref, deliver)
        if remaining is not GONE and remaining == 0:
            self._prune(ref.channel)
            self._logger.info(
                "subscription_retired",
                extra={"channel": ref.channel, "subscription": str(ref)},
            )
        return remaining

    def lookup(self, ref: SubscriptionRef) -> Optional[Subscription]:
        """Return the live subscription for ``ref`` or None."""
        if not isinstance(ref, SubscriptionRef):
            return None
        target = self._get_channel(ref.channel)
        if target is None:
            return None
        return target.get(ref)

    def is_live(self, ref: SubscriptionRef) -> bool:
        return self.lookup(ref) is not None

    def channel_names(self) -> List[str]:
        with self._lock:
            return list(self._channels)

    def channel_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def subscription_count(self) -> int:
        """Total live subscriptions across all channels."""
        with self._lock:
            channels = list(self._channels.values())
        return sum(c.subscription_count for c in channels)

    def channel_stats(self) -> Dict[str, Dict[str, int]]:
        """Return { channel: { subscriptions } } for the stats endpoint."""
        with self._lock:
            channels = list(self._channels.values())
        return {c.name: {"subscriptions": c.subscription_count} for c in channels}

    def _get_channel(self, name: str) -> Optional[Channel]:
        with self._lock:
            return self._channels.get(name)

    def _prune(self, name: str) -> None:
        with self._lock:
            target = self._channels.get(name)
            if target is None:
                return
            with target.lock:
                if target.is_empty():
                    del self._channels[name]
