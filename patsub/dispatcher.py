"""Dispatcher: evaluate a published message against a channel's subscriptions and deliver matches."""

from typing import Any, Optional

from patsub import pattern as p
from patsub.channel import GONE
from patsub.matcher import match
from patsub.observability import Metrics, get_logger
from patsub.registry import Registry


class Dispatcher:
    """Runs publish: snapshot, match outside any lock, then claim-and-deliver per subscription."""

    def __init__(self, registry: Registry, metrics: Optional[Metrics] = None) -> None:
        self._registry = registry
        self._metrics = metrics or Metrics()
        self._logger = get_logger("patsub.dispatcher")

    def publish(self, channel: str, message: Any) -> int:
        """
        Deliver ``message`` to every live subscription on ``channel`` whose pattern
        matches. Never raises for an empty channel, failing guards or closed
        mailboxes. Returns the number of deliveries.
        """
        self._metrics.record_published()
        subscriptions = self._registry.snapshot_channel(channel)
        delivered = 0
        for subscription in subscriptions:
            if match(subscription.pattern, message, self._guard_failed) is None:
                continue
            self._metrics.record_matched()
            accepted = []
            owner = subscription.owner
            ref = subscription.ref

            def deliver() -> None:
                accepted.append(owner.deliver(ref, message))

            remaining = self._registry.decrement_and_maybe_remove(ref, deliver)
            if remaining is GONE:
                self._logger.debug(
                    "subscription_gone",
                    extra={"channel": channel, "subscription": str(ref)},
                )
                continue
            if remaining == 0:
                self._metrics.record_retired()
                self._metrics.set_subscriptions(self._registry.subscription_count())
            if accepted and accepted[0]:
                delivered += 1
                self._metrics.record_delivered()
            else:
                self._logger.debug(
                    "mailbox_closed_dropped",
                    extra={"channel": channel, "owner_id": owner.owner_id},
                )
        self._logger.debug(
            "published",
            extra={"channel": channel, "candidates": len(subscriptions), "delivered": delivered},
        )
        return delivered

    def _guard_failed(self, node: p.Guarded, error: Exception) -> None:
        self._metrics.record_guard_failure()
