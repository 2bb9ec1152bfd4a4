"""Relay error taxonomy.

Misses (no recipient block, unknown recipient, reply with no record) are
not exceptions: they surface as empty sets, ``unresolved`` entries and
DROPPED outcomes. Only failures that a caller has to react to are raised.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class StorageError(RelayError):
    """Routing store unavailable or a write failed.

    Fatal to the event being processed. The event must be treated as
    not-yet-processed so the inbound transport can redeliver it.
    """


class LookupFailure(RelayError):
    """Directory lookup failed (timeout, transport error)."""


class SendError(RelayError):
    """A single send or conversation open failed."""

    def __init__(self, message: str, target: str = ""):
        super().__init__(message)
        self.target = target


class PermalinkUnavailable(RelayError):
    """Permalink could not be fetched. Only affects audit notices."""
