"""Event entry points — wire the routing core to inbound Slack events."""

import logging
from typing import Optional, Union

from .communication.formatting import (
    SlackReplyFormatter,
    routed_confirmation,
    routed_message,
    unresolved_notice,
)
from .config import RelaySettings
from .routing.dedup import DedupGuard
from .routing.dispatch import Dispatcher
from .routing.errors import SendError
from .routing.extract import DEFAULT_END_MARKER, DEFAULT_START_MARKER, extract_recipients
from .routing.models import (
    Directory,
    DispatchOutcome,
    RelayOutcome,
    ReplyEvent,
    RoutingStore,
    Transport,
)
from .routing.relay import ReplyRelay

logger = logging.getLogger("threadrelay.app")

_ORIGIN_SUBTYPES = {None, "file_share"}


class RelayApp:
    """Routes origin messages to recipients and relays thread replies.

    Safe to call concurrently for distinct events; the only shared state
    is the routing store.
    """

    def __init__(
        self,
        transport: Transport,
        directory: Directory,
        store: RoutingStore,
        notify_channel: Optional[str] = None,
        start_marker: str = DEFAULT_START_MARKER,
        end_marker: str = DEFAULT_END_MARKER,
        dedup_origins: bool = True,
    ):
        self.transport = transport
        self.store = store
        self.start_marker = start_marker
        self.end_marker = end_marker
        self.dispatcher = Dispatcher(directory, transport, store)
        self.relay = ReplyRelay(
            store, transport, notify_channel=notify_channel, formatter=SlackReplyFormatter(),
        )
        self.dedup = DedupGuard(store, enabled=dedup_origins)

    @classmethod
    def from_settings(cls, settings: RelaySettings, slack, store: RoutingStore) -> "RelayApp":
        return cls(
            transport=slack,
            directory=slack,
            store=store,
            notify_channel=settings.notify_channel,
            start_marker=settings.start_marker,
            end_marker=settings.end_marker,
            dedup_origins=settings.dedup_origins,
        )

    async def _post_notice(self, channel: str, text: str, thread_ts: Optional[str] = None):
        try:
            await self.transport.send(channel, text, thread_ts=thread_ts)
        except SendError as e:
            logger.warning(f"Notice to {channel} failed: {e}")

    async def on_origin_message(self, message: dict) -> Optional[DispatchOutcome]:
        """Dispatch an origin message to the recipients it names.

        Returns None when the message is not a routable origin or was
        already routed. StorageError propagates so the event can be redelivered.
        """
        text = message.get("text") or ""
        if message.get("bot_id") or message.get("subtype") not in _ORIGIN_SUBTYPES:
            return None

        recipients = extract_recipients(text, self.start_marker, self.end_marker)
        if not recipients:
            return None

        origin_key = message["ts"]
        origin_thread = message["channel"]
        if not await self.dedup.should_dispatch(origin_key):
            return None

        logger.info(f"Origin {origin_key} in {origin_thread}: {len(recipients)} recipient(s)")
        outcome = await self.dispatcher.dispatch(
            origin_key, origin_thread, recipients, routed_message(origin_thread, text),
        )

        if outcome.delivered:
            await self._post_notice(
                origin_thread,
                routed_confirmation(d.endpoint for d in outcome.delivered),
                thread_ts=origin_key,
            )
        if outcome.unresolved:
            await self._post_notice(
                origin_thread, unresolved_notice(outcome.unresolved), thread_ts=origin_key,
            )
        return outcome

    async def on_reply_event(self, event: Union[ReplyEvent, dict]) -> RelayOutcome:
        if isinstance(event, dict):
            event = ReplyEvent.from_slack(event)
        return await self.relay.relay(event)

    async def handle_event(self, event: dict) -> Union[DispatchOutcome, RelayOutcome, None]:
        """Route one Events API ``event`` object.

        Thread replies go to the relay, top-level messages to dispatch.
        """
        if event.get("type") != "message":
            return None
        thread_ts = event.get("thread_ts")
        if thread_ts and thread_ts != event.get("ts"):
            return await self.on_reply_event(event)
        return await self.on_origin_message(event)
