"""Tests for the subscriber Mailbox."""

from __future__ import annotations

import threading
import time

import pytest

from patsub import Mailbox, MailboxClosed, ReceiveTimeout, guarded, lit, mapping, var


class TestEnqueueReceive:
    """FIFO behaviour."""

    def test_fifo_order(self, mailbox: Mailbox) -> None:
        for i in range(3):
            mailbox.enqueue(i)
        assert [mailbox.receive(timeout=0.1) for _ in range(3)] == [0, 1, 2]

    def test_receive_timeout(self, mailbox: Mailbox) -> None:
        start = time.monotonic()
        with pytest.raises(ReceiveTimeout):
            mailbox.receive(timeout=0.05)
        assert time.monotonic() - start >= 0.04

    def test_receive_blocks_until_enqueue(self, mailbox: Mailbox) -> None:
        timer = threading.Timer(0.05, mailbox.enqueue, args=("late",))
        timer.start()
        try:
            assert mailbox.receive(timeout=2) == "late"
        finally:
            timer.cancel()

    def test_len_tracks_queue(self, mailbox: Mailbox) -> None:
        mailbox.enqueue("a")
        mailbox.enqueue("b")
        assert len(mailbox) == 2


class TestClose:
    """Closed mailboxes drop new items and wake receivers."""

    def test_enqueue_after_close_is_dropped(self, mailbox: Mailbox) -> None:
        mailbox.close()
        assert mailbox.enqueue("x") is False
        assert len(mailbox) == 0

    def test_queued_items_still_readable_after_close(self, mailbox: Mailbox) -> None:
        mailbox.enqueue("x")
        mailbox.close()
        assert mailbox.receive(timeout=0.1) == "x"
        with pytest.raises(MailboxClosed):
            mailbox.receive(timeout=0.1)

    def test_close_wakes_blocked_receiver(self, mailbox: Mailbox) -> None:
        errors: list[BaseException] = []

        def reader() -> None:
            try:
                mailbox.receive()
            except MailboxClosed as e:
                errors.append(e)

        thread = threading.Thread(target=reader)
        thread.start()
        time.sleep(0.05)
        mailbox.close()
        thread.join(timeout=2)
        assert not thread.is_alive()
        assert len(errors) == 1


class TestSelective:
    """Selective receive and drain."""

    def test_receive_matching_skips_others(self, mailbox: Mailbox) -> None:
        mailbox.enqueue({"kind": "a"})
        mailbox.enqueue({"kind": "b", "n": 1})
        mailbox.enqueue({"kind": "a", "n": 2})
        got = mailbox.receive_matching(mapping(kind=lit("b")), timeout=0.1)
        assert got == {"kind": "b", "n": 1}
        assert mailbox.receive(timeout=0.1) == {"kind": "a"}
        assert mailbox.receive(timeout=0.1) == {"kind": "a", "n": 2}

    def test_receive_matching_timeout(self, mailbox: Mailbox) -> None:
        mailbox.enqueue("other")
        with pytest.raises(ReceiveTimeout):
            mailbox.receive_matching(lit("wanted"), timeout=0.05)
        assert len(mailbox) == 1

    def test_drain_matching_keeps_order_of_rest(self, mailbox: Mailbox) -> None:
        for item in ["x1", {"n": 1}, "x2", {"n": 2}, "x3"]:
            mailbox.enqueue(item)
        assert mailbox.drain_matching(mapping(n=var("n"))) == 2
        assert [mailbox.receive(timeout=0.1) for _ in range(3)] == ["x1", "x2", "x3"]

    def test_drain_nothing(self, mailbox: Mailbox) -> None:
        mailbox.enqueue("keep")
        assert mailbox.drain_matching(lit("gone")) == 0
        assert len(mailbox) == 1

    def test_duplicate_item_drained_per_occurrence(self, mailbox: Mailbox) -> None:
        shared = {"n": 1}
        mailbox.enqueue(shared)
        mailbox.enqueue("keep")
        mailbox.enqueue(shared)
        assert mailbox.drain_matching(mapping(n=var("n"))) == 2
        assert mailbox.receive(timeout=0.1) == "keep"
        assert len(mailbox) == 0


class TestSlowGuards:
    """Patterns run with no mailbox lock held."""

    def test_drain_does_not_block_producers(self, mailbox: Mailbox) -> None:
        def slow(x: object) -> bool:
            time.sleep(0.2)
            return True

        for i in range(3):
            mailbox.enqueue(i)
        drainer = threading.Thread(target=mailbox.drain_matching, args=(guarded(var("x"), slow),))
        drainer.start()
        time.sleep(0.05)
        start = time.monotonic()
        assert mailbox.enqueue("late") is True
        assert time.monotonic() - start < 0.1
        drainer.join(timeout=5)
        # Items that arrived during the drain are not flushed
        assert mailbox.receive(timeout=0.1) == "late"
        assert len(mailbox) == 0

    def test_receive_matching_does_not_block_producers(self, mailbox: Mailbox) -> None:
        def slow(x: object) -> bool:
            time.sleep(0.2)
            return x == "wanted"

        mailbox.enqueue("other")
        got: list = []
        reader = threading.Thread(
            target=lambda: got.append(mailbox.receive_matching(guarded(var("x"), slow), timeout=5))
        )
        reader.start()
        time.sleep(0.05)
        start = time.monotonic()
        mailbox.enqueue("wanted")
        assert time.monotonic() - start < 0.1
        reader.join(timeout=5)
        assert got == ["wanted"]
        assert mailbox.receive(timeout=0.1) == "other"


class TestConcurrentProducers:
    """Many producers, one consumer."""

    def test_all_items_arrive(self, mailbox: Mailbox) -> None:
        producers, per_producer = 8, 200

        def produce(pid: int) -> None:
            for i in range(per_producer):
                mailbox.enqueue((pid, i))

        threads = [threading.Thread(target=produce, args=(p,)) for p in range(producers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        received = [mailbox.receive(timeout=1) for _ in range(producers * per_producer)]
        # Per-producer order is preserved
        for pid in range(producers):
            assert [i for p, i in received if p == pid] == list(range(per_producer))
