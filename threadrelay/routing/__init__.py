"""Routing core — platform-agnostic fan-out/fan-in logic.

- Extract: recipient block parsing from origin text
- Resolve: recipients → user ids via the directory
- Dispatch: one derived thread per recipient + routing record
- Relay: reply classification and fan-out
- Dedup: skip redelivered origins
"""

from .dedup import DedupGuard
from .dispatch import Dispatcher
from .errors import LookupFailure, PermalinkUnavailable, RelayError, SendError, StorageError
from .extract import extract_recipients
from .models import (
    Classification,
    Delivery,
    DispatchOutcome,
    RelayOutcome,
    RelayState,
    ReplyEvent,
    ReplyFormatter,
    RoutingRecord,
    ThreadRef,
)
from .relay import PlainReplyFormatter, ReplyRelay, classify, plan_fanout
from .resolve import resolve_recipients

__all__ = [
    "DedupGuard",
    "Dispatcher",
    "ReplyRelay",
    "PlainReplyFormatter",
    "classify",
    "plan_fanout",
    "extract_recipients",
    "resolve_recipients",
    # Model
    "Classification",
    "Delivery",
    "DispatchOutcome",
    "RelayOutcome",
    "RelayState",
    "ReplyEvent",
    "ReplyFormatter",
    "RoutingRecord",
    "ThreadRef",
    # Errors
    "RelayError",
    "StorageError",
    "LookupFailure",
    "SendError",
    "PermalinkUnavailable",
]
