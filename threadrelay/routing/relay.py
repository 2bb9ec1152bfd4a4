"""Reply relay — mirror a thread reply to every other side of its routing record.

Each inbound reply walks a small state machine:

    UNCLASSIFIED → LOCATED → CLASSIFIED → RELAYED
          └──────────┴───────────┴──────→ DROPPED

UNCLASSIFIED → LOCATED
    (a) the reply's thread root is an origin key and the reply was posted in
        the origin channel, or
    (b) the reply's (channel, thread root) is a derived thread of a record.
    Exactly one path yields the record, so a reply is never fanned out twice.

LOCATED → CLASSIFIED
    Origin side when the reply was posted in the record's origin channel,
    derivative side otherwise. A derivative reply remembers the thread it
    came from.

CLASSIFIED → RELAYED
    Origin side: every derived thread.
    Derivative side: every other derived thread, then the origin thread.
    The thread a reply came from is never a target.
"""

import asyncio
import logging
from typing import Optional

from .errors import PermalinkUnavailable, SendError
from .models import (
    Classification,
    RelayOutcome,
    RelayState,
    ReplyEvent,
    ReplyFormatter,
    RoutingRecord,
    RoutingStore,
    ThreadRef,
    Transport,
)

logger = logging.getLogger("threadrelay.relay")

# Subtypes that still carry a user-authored reply
_RELAYABLE_SUBTYPES = {None, "thread_broadcast", "file_share"}


def drop_reason(event: ReplyEvent) -> Optional[str]:
    """Why an event must be dropped before any lookup, or None if it may proceed."""
    if event.is_machine_originated:
        return "machine-originated"
    if not event.thread_ts or event.thread_ts == event.ts:
        return "no thread context"
    if event.subtype not in _RELAYABLE_SUBTYPES:
        return f"subtype {event.subtype}"
    if not event.user:
        return "no author"
    return None


def classify(event: ReplyEvent, record: RoutingRecord) -> Classification:
    if event.channel == record.origin_thread:
        return Classification.ORIGIN_SIDE
    return Classification.DERIVATIVE_SIDE


def plan_fanout(
    classification: Classification,
    record: RoutingRecord,
    source_thread: Optional[ThreadRef] = None,
) -> list[ThreadRef]:
    """Targets for one reply, in stored delivery order.

    Pure function of the classification and record: no I/O.
    """
    if classification is Classification.ORIGIN_SIDE:
        return record.derived_threads()

    targets = [t for t in record.derived_threads() if t != source_thread]
    targets.append(record.origin_ref)
    return targets


class PlainReplyFormatter(ReplyFormatter):
    """Markup-free text, used when no platform formatter is given."""

    def mirrored_reply(self, author: str, text: str) -> str:
        return f"{author}: {text}"

    def audit_notice(self, author: str, permalink: str, from_origin_side: bool) -> str:
        where = "thread" if from_origin_side else "DM"
        return f"{author} replied in {where}: {permalink}"


class ReplyRelay:
    """Relays thread replies across a routing record's sides.

    Args:
        store: routing store used for both lookup strategies
        transport: platform transport for sends, names and permalinks
        notify_channel: audit channel for observer notices; None disables them
        formatter: text of mirrored replies and notices; plain text when None
    """

    def __init__(
        self,
        store: RoutingStore,
        transport: Transport,
        notify_channel: Optional[str] = None,
        formatter: Optional[ReplyFormatter] = None,
    ):
        self.store = store
        self.transport = transport
        self.notify_channel = notify_channel
        self.formatter = formatter or PlainReplyFormatter()

    async def locate(self, event: ReplyEvent) -> tuple[Optional[RoutingRecord], Optional[ThreadRef]]:
        """Find the record a reply belongs to.

        Returns (record, source_thread). ``source_thread`` is set only when the
        reply came from a derived thread. StorageError propagates.
        """
        record = await self.store.get(event.thread_ts)
        if record and event.channel == record.origin_thread:
            return record, None

        source = ThreadRef(channel=event.channel, ts=event.thread_ts)
        record = await self.store.find_by_derived_thread(source)
        if record:
            return record, source
        return None, None

    async def _send_all(self, targets: list[ThreadRef], text: str) -> list[ThreadRef]:
        failed: list[ThreadRef] = []
        for target in targets:
            try:
                await self.transport.send(target.channel, text, thread_ts=target.ts)
            except (SendError, asyncio.TimeoutError) as e:
                logger.warning(f"Relay to {target.channel}/{target.ts} failed: {e or type(e).__name__}")
                failed.append(target)
        return failed

    async def _notify(self, record: RoutingRecord, author: str, classification: Classification) -> bool:
        if not self.notify_channel:
            return False
        try:
            link = await self.transport.permalink(record.origin_ref)
        except (PermalinkUnavailable, asyncio.TimeoutError) as e:
            logger.info(f"No permalink for {record.origin_key}, skipping notice: {e or type(e).__name__}")
            return False
        text = self.formatter.audit_notice(author, link, classification is Classification.ORIGIN_SIDE)
        try:
            await self.transport.send(self.notify_channel, text)
        except (SendError, asyncio.TimeoutError) as e:
            logger.warning(f"Audit notice to {self.notify_channel} failed: {e or type(e).__name__}")
            return False
        return True

    async def relay(self, event: ReplyEvent) -> RelayOutcome:
        reason = drop_reason(event)
        if reason:
            logger.debug(f"Dropped reply {event.ts}: {reason}")
            return RelayOutcome(state=RelayState.DROPPED, reason=reason)

        record, source_thread = await self.locate(event)
        if record is None:
            logger.debug(f"Dropped reply {event.ts}: no routing record for thread {event.thread_ts}")
            return RelayOutcome(state=RelayState.DROPPED, reason="record not found")

        classification = classify(event, record)
        targets = plan_fanout(classification, record, source_thread)

        author = await self.transport.display_name(event.user)
        failed = await self._send_all(targets, self.formatter.mirrored_reply(author, event.text))
        if failed:
            logger.error(
                f"Reply {event.ts} on {record.origin_key}: {len(failed)}/{len(targets)} target(s) failed"
            )
        else:
            logger.info(
                f"Reply {event.ts} on {record.origin_key} ({classification.value}) "
                f"relayed to {len(targets)} target(s)"
            )

        notified = await self._notify(record, author, classification)
        return RelayOutcome(
            state=RelayState.RELAYED,
            classification=classification,
            targets_attempted=targets,
            targets_failed=failed,
            notified=notified,
        )
