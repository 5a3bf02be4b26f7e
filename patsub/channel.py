"""Channel: the ordered set of live subscriptions for one channel name."""

import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from patsub.subscription import Subscription, SubscriptionRef


class _Gone:
    """Sentinel: the subscription was removed before this dispatch could claim it."""

    def __repr__(self) -> str:
        return "GONE"


GONE: Any = _Gone()


class Channel:
    """In-memory named channel holding subscriptions oldest first, guarded by its own lock."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._subscriptions: Dict["SubscriptionRef", "Subscription"] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def is_empty(self) -> bool:
        """Caller must hold ``lock``."""
        return not self._subscriptions

    def add(self, subscription: "Subscription") -> None:
        """Append a subscription. Caller must hold ``lock``; created_order grows with insertion."""
        self._subscriptions[subscription.ref] = subscription

    def remove(self, ref: "SubscriptionRef") -> Optional["Subscription"]:
        """Remove and return a subscription if present (idempotent)."""
        with self._lock:
            return self._discard(ref)

    def get(self, ref: "SubscriptionRef") -> Optional["Subscription"]:
        with self._lock:
            return self._subscriptions.get(ref)

    def snapshot(self) -> List["Subscription"]:
        """Return a copy of the subscription list (under lock), oldest first."""
        with self._lock:
            return list(self._subscriptions.values())

    def claim(self, ref: "SubscriptionRef", deliver: Optional[Callable[[], Any]] = None) -> Any:
        """Atomically deliver to, decrement and maybe retire one subscription.

        Returns the remaining count (None when unbounded), 0 when this claim
        retired it, or GONE if it was already removed. ``deliver`` must not block.
        """
        with self._lock:
            subscription = self._subscriptions.get(ref)
            if subscription is None or not subscription.live:
                return GONE
            if deliver is not None:
                deliver()
            if subscription.remaining is None:
                return None
            subscription.remaining -= 1
            if subscription.remaining <= 0:
                self._discard(ref)
                return 0
            return subscription.remaining

    def _discard(self, ref: "SubscriptionRef") -> Optional["Subscription"]:
        subscription = self._subscriptions.pop(ref, None)
        if subscription is not None:
            subscription.live = False
        return subscription

    def __repr__(self) -> str:
        return f"Channel(name={self._name!r}, subscriptions={len(self._subscriptions)})"
