"""Routing data model and collaborator interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class ThreadRef:
    """A conversation thread: channel id plus the ts of its root message."""
    channel: str
    ts: str

    def to_dict(self) -> dict:
        return {"channel": self.channel, "ts": self.ts}


@dataclass(frozen=True)
class Delivery:
    recipient: str          # lower-case email the origin message named
    endpoint: str           # Slack user id it resolved to
    derived_thread: ThreadRef

    def to_dict(self) -> dict:
        return {
            "recipient": self.recipient,
            "endpoint": self.endpoint,
            "channel": self.derived_thread.channel,
            "ts": self.derived_thread.ts,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Delivery":
        return cls(
            recipient=data["recipient"],
            endpoint=data["endpoint"],
            derived_thread=ThreadRef(channel=data["channel"], ts=data["ts"]),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RoutingRecord:
    """Links one origin message to the derived thread of every recipient.

    ``origin_key`` is the ts of the origin message and never changes.
    ``created_at`` is set once; upserts keep the stored value.
    """
    origin_key: str
    origin_thread: str
    deliveries: list[Delivery]
    unresolved: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def origin_ref(self) -> ThreadRef:
        """The origin message as a thread root in the origin channel."""
        return ThreadRef(channel=self.origin_thread, ts=self.origin_key)

    def derived_threads(self) -> list[ThreadRef]:
        return [d.derived_thread for d in self.deliveries]


@dataclass
class Resolution:
    resolved: list[tuple[str, str]]     # (recipient, endpoint), sorted by recipient
    unresolved: set[str]


@dataclass
class DispatchOutcome:
    """Result of one dispatch. ``record`` is None when nothing was delivered."""
    record: Optional[RoutingRecord]
    delivered: list[Delivery]
    unresolved: list[str]


class RelayState(str, Enum):
    UNCLASSIFIED = "unclassified"
    LOCATED = "located"
    CLASSIFIED = "classified"
    RELAYED = "relayed"
    DROPPED = "dropped"


class Classification(str, Enum):
    ORIGIN_SIDE = "origin_side"
    DERIVATIVE_SIDE = "derivative_side"


@dataclass
class ReplyEvent:
    """A message posted inside a thread, as delivered by the platform."""
    channel: str
    ts: str
    thread_ts: Optional[str]
    user: Optional[str]
    text: str
    bot_id: Optional[str] = None
    subtype: Optional[str] = None

    @classmethod
    def from_slack(cls, event: dict) -> "ReplyEvent":
        return cls(
            channel=event.get("channel", ""),
            ts=event.get("ts", ""),
            thread_ts=event.get("thread_ts"),
            user=event.get("user"),
            text=event.get("text") or "",
            bot_id=event.get("bot_id"),
            subtype=event.get("subtype"),
        )

    @property
    def is_machine_originated(self) -> bool:
        return bool(self.bot_id) or self.subtype == "bot_message"


@dataclass
class RelayOutcome:
    state: RelayState
    classification: Optional[Classification] = None
    targets_attempted: list[ThreadRef] = field(default_factory=list)
    targets_failed: list[ThreadRef] = field(default_factory=list)
    notified: bool = False
    reason: str = ""


# ============================================================
# COLLABORATORS
# ============================================================

class Directory(ABC):
    """User directory keyed by email."""

    @abstractmethod
    async def lookup_by_email(self, email: str) -> Optional[str]:
        """Return the user id for ``email``, or None if there is no such user.

        Raises LookupFailure when the directory could not be queried.
        """


class Transport(ABC):
    """Message transport of the chat platform."""

    @abstractmethod
    async def open_conversation(self, endpoint: str) -> str:
        """Open (or reuse) a direct conversation with a user, return its channel id."""

    @abstractmethod
    async def send(self, channel: str, text: str, thread_ts: Optional[str] = None) -> ThreadRef:
        """Post ``text`` and return a reference to the posted message. Raises SendError."""

    @abstractmethod
    async def permalink(self, thread: ThreadRef) -> str:
        """Raises PermalinkUnavailable."""

    @abstractmethod
    async def display_name(self, user_id: str) -> str:
        """Best-effort human name; falls back to ``user_id``."""


class ReplyFormatter(ABC):
    """Text of mirrored replies and audit notices, in the platform's markup."""

    @abstractmethod
    def mirrored_reply(self, author: str, text: str) -> str:
        ...

    @abstractmethod
    def audit_notice(self, author: str, permalink: str, from_origin_side: bool) -> str:
        ...


class RoutingStore(ABC):
    """Durable origin_key → RoutingRecord mapping with a derived-thread index."""

    @abstractmethod
    async def put(self, record: RoutingRecord) -> RoutingRecord:
        """Upsert a whole record. Returns it with the persisted ``created_at``."""

    @abstractmethod
    async def get(self, origin_key: str) -> Optional[RoutingRecord]:
        ...

    @abstractmethod
    async def find_by_derived_thread(self, thread: ThreadRef) -> Optional[RoutingRecord]:
        ...
