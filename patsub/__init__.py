"""Pattern-matched publish/subscribe hub (in-memory, single process)."""

from patsub.compiler import compile_pattern
from patsub.errors import MailboxClosed, PatternError, ReceiveTimeout
from patsub.guard import Guard
from patsub.hub import Hub, get_hub, reset_hub
from patsub.mailbox import Mailbox
from patsub.matcher import match, matches
from patsub.pattern import (
    WILDCARD,
    Alternation,
    Composite,
    Guarded,
    Literal,
    Mapping,
    Pattern,
    Shape,
    Tagged,
    Variable,
    Wildcard,
    any_of,
    guarded,
    lit,
    mapping,
    seq,
    tagged,
    tup,
    var,
)
from patsub.record import Record
from patsub.subscription import SubscriptionRef

__all__ = [
    "Hub",
    "get_hub",
    "reset_hub",
    "Mailbox",
    "SubscriptionRef",
    "Record",
    "Guard",
    "match",
    "matches",
    "compile_pattern",
    "PatternError",
    "ReceiveTimeout",
    "MailboxClosed",
    "Pattern",
    "Shape",
    "Literal",
    "Wildcard",
    "WILDCARD",
    "Variable",
    "Composite",
    "Mapping",
    "Tagged",
    "Alternation",
    "Guarded",
    "lit",
    "var",
    "tup",
    "seq",
    "mapping",
    "tagged",
    "any_of",
    "guarded",
]
