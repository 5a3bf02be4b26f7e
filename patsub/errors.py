"""Errors surfaced by the hub to its callers."""

import queue


class PatternError(ValueError):
    """A pattern is structurally malformed (raised at subscribe/compile time only)."""


class ReceiveTimeout(queue.Empty):
    """No matching item arrived in a mailbox before the receive timeout."""


class MailboxClosed(Exception):
    """The mailbox was closed and holds nothing left to receive."""
