"""Mailbox: a subscriber-owned, unbounded, thread-safe inbound queue.

Any thread may ``enqueue``; only the owner should ``receive`` or flush. Built
on ``queue.Queue`` so the owner blocks on its condition variable. Selective
operations (``receive_matching``, ``drain_matching``) copy the queue under the
mutex, run patterns with no lock held, then remove the chosen items by
identity. A slow guard never holds up producers.
"""

import queue
import time
import uuid
from collections import Counter, deque
from typing import TYPE_CHECKING, Any, Dict, Optional

from patsub.errors import MailboxClosed, ReceiveTimeout
from patsub.matcher import matches
from patsub.observability import get_logger
from patsub.pattern import Pattern

if TYPE_CHECKING:
    from patsub.subscription import SubscriptionRef


class Mailbox(queue.Queue):
    """Single-consumer, multi-producer FIFO delivery queue owned by one subscriber."""

    def __init__(self, owner_id: Optional[str] = None) -> None:
        super().__init__(maxsize=0)
        self._owner_id = owner_id or f"mbx_{uuid.uuid4().hex[:12]}"
        self._closed = False
        self._logger = get_logger(f"patsub.mailbox.{self._owner_id}")

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return self.qsize()

    def enqueue(self, item: Any) -> bool:
        """Append without blocking. Returns False (dropping the item) if the mailbox is closed."""
        with self.mutex:
            if self._closed:
                return False
            self._put(item)
            self.unfinished_tasks += 1
            self.not_empty.notify()
        return True

    def deliver(self, ref: "SubscriptionRef", message: Any) -> bool:
        """Called by the hub when subscription ``ref`` matched ``message``; enqueues the message."""
        return self.enqueue(message)

    def receive(self, timeout: Optional[float] = None) -> Any:
        """Remove and return the oldest item, blocking up to ``timeout`` seconds (forever if None).

        Raises ReceiveTimeout when nothing arrives in time and MailboxClosed
        when the mailbox is closed and empty.
        """
        return self._take(None, timeout)

    def receive_matching(self, pattern: Pattern, timeout: Optional[float] = None) -> Any:
        """Selective receive: remove and return the oldest item matching ``pattern``.

        Non-matching items stay queued in their original order.
        """
        return self._take(pattern, timeout)

    def drain_matching(self, pattern: Pattern) -> int:
        """Discard every queued item matching ``pattern`` without blocking; returns how many."""
        with self.mutex:
            pending = list(self.queue)
        doomed = Counter(id(item) for item in pending if matches(pattern, self._unwrap(item)))
        if not doomed:
            return 0
        dropped = 0
        with self.mutex:
            kept = deque()
            for item in self.queue:
                if doomed[id(item)] > 0:
                    doomed[id(item)] -= 1
                    dropped += 1
                else:
                    kept.append(item)
            self.queue = kept
            self.unfinished_tasks = max(0, self.unfinished_tasks - dropped)
        if dropped:
            self._logger.info(
                "mailbox_drained",
                extra={"owner_id": self._owner_id, "dropped": dropped},
            )
        return dropped

    def close(self) -> None:
        """Stop accepting items and wake any blocked receiver."""
        with self.mutex:
            self._closed = True
            self.not_empty.notify_all()

    def _take(self, pattern: Optional[Pattern], timeout: Optional[float]) -> Any:
        deadline = None if timeout is None else time.monotonic() + max(0.0, timeout)
        # Items already known not to match; kept referenced so their ids stay unique
        rejected: Dict[int, Any] = {}
        while True:
            with self.not_empty:
                while True:
                    if pattern is None and self.queue:
                        return self._pop(0)
                    candidates = [item for item in self.queue if id(item) not in rejected]
                    if pattern is not None and candidates:
                        break
                    if self._closed:
                        raise MailboxClosed(self._owner_id)
                    self._wait(deadline)
            for item in candidates:
                if not matches(pattern, self._unwrap(item)):
                    rejected[id(item)] = item
                    continue
                with self.mutex:
                    index = self._index_of(item)
                    if index is not None:
                        return self._pop(index)
                # Taken by another receiver meanwhile; rescan
                break

    def _unwrap(self, item: Any) -> Any:
        """The message a queued item carries; patterns are matched against it."""
        return item

    def _wait(self, deadline: Optional[float]) -> None:
        """Wait on ``not_empty`` (caller holds it); raise ReceiveTimeout past ``deadline``."""
        if deadline is None:
            self.not_empty.wait()
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ReceiveTimeout()
        self.not_empty.wait(remaining)

    def _index_of(self, item: Any) -> Optional[int]:
        for index, queued in enumerate(self.queue):
            if queued is item:
                return index
        return None

    def _pop(self, index: int) -> Any:
        item = self.queue[index]
        del self.queue[index]
        self.unfinished_tasks = max(0, self.unfinished_tasks - 1)
        return item

    def __repr__(self) -> str:
        return f"Mailbox(owner_id={self._owner_id!r}, size={self.qsize()})"
