"""Tests for the subscription Registry."""

from __future__ import annotations

import pytest

from patsub import WILDCARD, Mailbox, PatternError, SubscriptionRef, lit
from patsub.channel import GONE
from patsub.registry import Registry


@pytest.fixture
def registry() -> Registry:
    return Registry()


class TestSubscribe:
    """Subscription creation."""

    def test_refs_are_unique(self, registry: Registry, mailbox: Mailbox) -> None:
        refs = {registry.subscribe("c", WILDCARD, mailbox) for _ in range(10)}
        assert len(refs) == 10

    def test_snapshot_in_created_order(self, registry: Registry, mailbox: Mailbox) -> None:
        first = registry.subscribe("c", lit(1), mailbox)
        second = registry.subscribe("c", lit(2), mailbox)
        snapshot = registry.snapshot_channel("c")
        assert [s.ref for s in snapshot] == [first, second]
        assert snapshot[0].created_order < snapshot[1].created_order

    def test_pattern_error_inserts_nothing(self, registry: Registry, mailbox: Mailbox) -> None:
        with pytest.raises(PatternError):
            registry.subscribe("c", {"type": "bogus"}, mailbox)
        assert registry.snapshot_channel("c") == []
        assert registry.channel_count() == 0

    def test_multi_requires_list(self, registry: Registry, mailbox: Mailbox) -> None:
        with pytest.raises(PatternError):
            registry.subscribe("c", lit("x"), mailbox, multi=True)

    @pytest.mark.parametrize("count", [0, -1, 1.5, True])
    def test_invalid_count(self, registry: Registry, mailbox: Mailbox, count: object) -> None:
        with pytest.raises(ValueError):
            registry.subscribe("c", WILDCARD, mailbox, count=count)

    def test_channels_are_isolated(self, registry: Registry, mailbox: Mailbox) -> None:
        registry.subscribe("a", WILDCARD, mailbox)
        assert registry.snapshot_channel("b") == []


class TestUnsubscribe:
    """Removal is idempotent and prunes empty channels."""

    def test_unsubscribe_twice(self, registry: Registry, mailbox: Mailbox) -> None:
        ref = registry.subscribe("c", WILDCARD, mailbox)
        assert registry.unsubscribe(ref) is not None
        assert registry.unsubscribe(ref) is None
        assert not registry.is_live(ref)

    def test_empty_channel_pruned(self, registry: Registry, mailbox: Mailbox) -> None:
        ref = registry.subscribe("c", WILDCARD, mailbox)
        assert registry.channel_names() == ["c"]
        registry.unsubscribe(ref)
        assert registry.channel_names() == []

    def test_unknown_refs_are_ignored(self, registry: Registry) -> None:
        assert registry.unsubscribe(SubscriptionRef("nowhere", 10**9)) is None
        assert registry.unsubscribe("not-a-ref") is None

    def test_snapshot_is_a_copy(self, registry: Registry, mailbox: Mailbox) -> None:
        ref = registry.subscribe("c", WILDCARD, mailbox)
        snapshot = registry.snapshot_channel("c")
        registry.unsubscribe(ref)
        assert len(snapshot) == 1
        assert snapshot[0].live is False


class TestDecrement:
    """Atomic decrement-and-maybe-remove."""

    def test_counts_down_and_retires(self, registry: Registry, mailbox: Mailbox) -> None:
        ref = registry.subscribe("c", WILDCARD, mailbox, count=2)
        assert registry.decrement_and_maybe_remove(ref) == 1
        assert registry.is_live(ref)
        assert registry.decrement_and_maybe_remove(ref) == 0
        assert not registry.is_live(ref)
        assert registry.decrement_and_maybe_remove(ref) is GONE

    def test_unbounded_never_retires(self, registry: Registry, mailbox: Mailbox) -> None:
        ref = registry.subscribe("c", WILDCARD, mailbox)
        for _ in range(5):
            assert registry.decrement_and_maybe_remove(ref) is None
        assert registry.is_live(ref)

    def test_deliver_runs_only_when_live(self, registry: Registry, mailbox: Mailbox) -> None:
        ref = registry.subscribe("c", WILDCARD, mailbox, count=1)
        calls: list[int] = []
        registry.decrement_and_maybe_remove(ref, lambda: calls.append(1))
        registry.decrement_and_maybe_remove(ref, lambda: calls.append(2))
        assert calls == [1]

    def test_stats(self, registry: Registry, mailbox: Mailbox) -> None:
        registry.subscribe("a", WILDCARD, mailbox)
        registry.subscribe("a", WILDCARD, mailbox)
        registry.subscribe("b", WILDCARD, mailbox)
        assert registry.subscription_count() == 3
        assert registry.channel_stats() == {"a": {"subscriptions": 2}, "b": {"subscriptions": 1}}
