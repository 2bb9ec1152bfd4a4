"""End-to-end tests of the event entry points on fake collaborators."""

import pytest

from threadrelay.app import RelayApp
from threadrelay.config import RelaySettings
from threadrelay.routing.dedup import DedupGuard
from threadrelay.routing.errors import StorageError
from threadrelay.routing.models import Classification, RelayState

ORIGIN_TEXT = "Ticket #12\nEmail Recipients\na@x.com, b@x.com, c@unknown.com\nEmail Subject\nPrinter on fire"


def origin_message(text=ORIGIN_TEXT, ts="1700.000100", channel="C1", **extra):
    return {"type": "message", "channel": channel, "ts": ts, "user": "U9", "text": text, **extra}


@pytest.fixture
def app(slack, store):
    return RelayApp(slack, slack, store)


class TestOriginMessage:

    @pytest.mark.asyncio
    async def test_routes_and_confirms(self, app, slack, store):
        outcome = await app.handle_event(origin_message())

        assert [d.endpoint for d in outcome.delivered] == ["U1", "U2"]
        assert outcome.unresolved == ["c@unknown.com"]

        dm_text = slack.sent_to("DU1")[0][1]
        assert dm_text.startswith("📩 You received a routed message from <#C1>:")
        assert "Printer on fire" in dm_text

        notices = slack.sent_to("C1")
        assert notices == [
            ("C1", "✅ Routed message to: <@U1>, <@U2>", "1700.000100"),
            ("C1", "⚠️ Not found in Slack: c@unknown.com", "1700.000100"),
        ]
        assert await store.get("1700.000100") is not None

    @pytest.mark.asyncio
    async def test_fully_unresolved_only_notifies(self, app, slack, store):
        text = "Email Recipients\nc@unknown.com\nEmail Subject\nhi"
        outcome = await app.handle_event(origin_message(text))
        assert outcome.record is None
        assert slack.sent == [("C1", "⚠️ Not found in Slack: c@unknown.com", "1700.000100")]
        assert store.records == {}

    @pytest.mark.asyncio
    async def test_non_routable_message_ignored(self, app, slack):
        assert await app.handle_event(origin_message("just chatting")) is None
        assert slack.sent == []

    @pytest.mark.asyncio
    async def test_bot_messages_ignored(self, app, slack):
        assert await app.handle_event(origin_message(bot_id="B1")) is None
        assert await app.handle_event(origin_message(subtype="bot_message")) is None
        assert slack.sent == []

    @pytest.mark.asyncio
    async def test_non_message_events_ignored(self, app):
        assert await app.handle_event({"type": "reaction_added"}) is None

    @pytest.mark.asyncio
    async def test_redelivery_skipped_by_dedup(self, app, slack, store):
        await app.handle_event(origin_message())
        sent = len(slack.sent)
        assert await app.handle_event(origin_message()) is None
        assert len(slack.sent) == sent
        assert store.puts == 1

    @pytest.mark.asyncio
    async def test_redispatch_without_dedup_overwrites(self, slack, store):
        app = RelayApp(slack, slack, store, dedup_origins=False)
        await app.handle_event(origin_message())
        await app.handle_event(origin_message("Email Recipients d@x.com Email Subject hi"))

        record = await store.get("1700.000100")
        assert [d.recipient for d in record.deliveries] == ["d@x.com"]
        assert record.unresolved == []

    @pytest.mark.asyncio
    async def test_storage_error_propagates(self, app, store):
        store.unavailable = True
        with pytest.raises(StorageError):
            await app.handle_event(origin_message())

    @pytest.mark.asyncio
    async def test_custom_markers(self, slack, store):
        app = RelayApp(slack, slack, store, start_marker="To:", end_marker="Body:")
        outcome = await app.handle_event(origin_message("To: a@x.com Body: hi"))
        assert [d.recipient for d in outcome.delivered] == ["a@x.com"]


class TestReplies:

    @pytest.mark.asyncio
    async def test_round_trip(self, app, slack):
        outcome = await app.handle_event(origin_message())
        t1 = outcome.delivered[0].derived_thread
        t2 = outcome.delivered[1].derived_thread
        slack.sent.clear()

        # Recipient replies in their DM
        relayed = await app.handle_event({
            "type": "message", "channel": t1.channel, "ts": "1900.000001",
            "thread_ts": t1.ts, "user": "U1", "text": "on it",
        })
        assert relayed.classification is Classification.DERIVATIVE_SIDE
        assert slack.sent == [
            (t2.channel, "💬 *Ada*: on it", t2.ts),
            ("C1", "💬 *Ada*: on it", "1700.000100"),
        ]
        slack.sent.clear()

        # Origin side answers in the channel thread
        relayed = await app.handle_event({
            "type": "message", "channel": "C1", "ts": "1900.000002",
            "thread_ts": "1700.000100", "user": "U9", "text": "thanks",
        })
        assert relayed.classification is Classification.ORIGIN_SIDE
        assert [s[0] for s in slack.sent] == [t1.channel, t2.channel]

    @pytest.mark.asyncio
    async def test_relay_own_notices_dropped(self, app, slack):
        await app.handle_event(origin_message())
        outcome = await app.on_reply_event({
            "type": "message", "channel": "C1", "ts": "1900.000003",
            "thread_ts": "1700.000100", "bot_id": "B0", "text": "✅ Routed message to: <@U1>",
        })
        assert outcome.state is RelayState.DROPPED


class TestDedupGuard:

    @pytest.mark.asyncio
    async def test_disabled_always_dispatches(self, store):
        assert await DedupGuard(store, enabled=False).should_dispatch("x") is True

    @pytest.mark.asyncio
    async def test_unknown_key_dispatches(self, store):
        assert await DedupGuard(store).should_dispatch("1700.000100") is True


def test_from_settings(slack, store):
    settings = RelaySettings(
        slack_bot_token="xoxb-test", notify_channel="CAUDIT", dedup_origins=False, start_marker="To:",
    )
    app = RelayApp.from_settings(settings, slack, store)
    assert app.relay.notify_channel == "CAUDIT"
    assert app.dedup.enabled is False
    assert app.start_marker == "To:"
