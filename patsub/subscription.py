"""Subscription records held by the registry."""

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from patsub.pattern import Pattern

if TYPE_CHECKING:
    from patsub.mailbox import Mailbox

_ids = itertools.count(1)


@dataclass(frozen=True)
class SubscriptionRef:
    """Opaque handle returned by subscribe; never reused within a process."""

    channel: str
    id: int

    @classmethod
    def new(cls, channel: str) -> "SubscriptionRef":
        return cls(channel, next(_ids))

    def __str__(self) -> str:
        return f"sub-{self.id}"


@dataclass(eq=False)
class Subscription:
    """A live subscription; ``remaining`` is None when unbounded.

    ``remaining`` and ``live`` change only under the owning channel's lock.
    """

    ref: SubscriptionRef
    pattern: Pattern
    owner: "Mailbox"
    remaining: Optional[int]
    created_order: int
    live: bool = field(default=True)

    @property
    def channel(self) -> str:
        return self.ref.channel

    @property
    def unbounded(self) -> bool:
        return self.remaining is None

    def to_dict(self) -> dict:
        """Summary for stats and logging."""
        return {
            "subscription": str(self.ref),
            "channel": self.channel,
            "owner_id": self.owner.owner_id,
            "remaining": self.remaining,
            "created_order": self.created_order,
        }
