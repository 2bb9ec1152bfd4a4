"""Dispatcher — fan an origin message out to one DM thread per recipient."""

import asyncio
import logging
from typing import Iterable

from .errors import SendError
from .models import (
    Delivery,
    Directory,
    DispatchOutcome,
    RoutingRecord,
    RoutingStore,
    Transport,
)
from .resolve import resolve_recipients

logger = logging.getLogger("threadrelay.dispatch")


class Dispatcher:
    """Resolves recipients, opens their threads and persists the routing record.

    Partial success is the normal case: a recipient whose DM cannot be
    opened or sent is moved to ``unresolved`` and the others still go out.
    Nothing is retried here.
    """

    def __init__(self, directory: Directory, transport: Transport, store: RoutingStore):
        self.directory = directory
        self.transport = transport
        self.store = store

    async def _deliver(self, recipient: str, endpoint: str, payload: str) -> Delivery:
        channel = await self.transport.open_conversation(endpoint)
        sent = await self.transport.send(channel, payload)
        return Delivery(recipient=recipient, endpoint=endpoint, derived_thread=sent)

    async def dispatch(
        self,
        origin_key: str,
        origin_thread: str,
        recipients: Iterable[str],
        payload: str,
    ) -> DispatchOutcome:
        """Dispatch ``payload`` to every recipient.

        Returns an outcome whose ``record`` is None when nobody could be
        reached; in that case nothing is written to the store. StorageError
        from the final put propagates to the caller.
        """
        resolution = await resolve_recipients(recipients, self.directory)
        unresolved = set(resolution.unresolved)
        deliveries: list[Delivery] = []

        for recipient, endpoint in resolution.resolved:
            try:
                deliveries.append(await self._deliver(recipient, endpoint, payload))
            except (SendError, asyncio.TimeoutError) as e:
                logger.warning(f"Send to {recipient} ({endpoint}) failed: {e or type(e).__name__}")
                unresolved.add(recipient)

        unresolved_list = sorted(unresolved)
        if not deliveries:
            logger.info(f"Origin {origin_key}: no recipient reachable ({len(unresolved_list)} unresolved)")
            return DispatchOutcome(record=None, delivered=[], unresolved=unresolved_list)

        record = RoutingRecord(
            origin_key=origin_key,
            origin_thread=origin_thread,
            deliveries=deliveries,
            unresolved=unresolved_list,
        )
        record = await self.store.put(record)
        logger.info(
            f"Origin {origin_key}: routed to {len(deliveries)} recipient(s), "
            f"{len(unresolved_list)} unresolved"
        )
        return DispatchOutcome(record=record, delivered=deliveries, unresolved=unresolved_list)
