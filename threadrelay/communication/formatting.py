"""Slack message text for everything the relay posts.

Plain mrkdwn strings only. Kept in one place so the wording of routed
messages, mirrored replies and notices is consistent across channels.
"""

from typing import Iterable

from ..routing.models import ReplyFormatter


def user_mention(user_id: str) -> str:
    return f"<@{user_id}>"


def channel_mention(channel_id: str) -> str:
    return f"<#{channel_id}>"


def routed_message(origin_channel: str, text: str) -> str:
    """Initial payload posted into each recipient's DM."""
    return f"📩 You received a routed message from {channel_mention(origin_channel)}:\n\n{text}"


def mirrored_reply(author: str, text: str) -> str:
    return f"💬 *{author}*: {text}"


def routed_confirmation(endpoints: Iterable[str]) -> str:
    """Confirmation for the origin side. Lists routed recipients only."""
    return "✅ Routed message to: " + ", ".join(user_mention(e) for e in endpoints)


def unresolved_notice(recipients: Iterable[str]) -> str:
    return "⚠️ Not found in Slack: " + ", ".join(sorted(set(recipients)))


def audit_notice(author: str, permalink: str, from_origin_side: bool) -> str:
    """Observer notification posted to the audit channel."""
    if from_origin_side:
        return f"🔔 *{author}* replied in thread — <{permalink}|View reply>"
    return f"🔔 *{author}* replied in DM — <{permalink}|View in channel>"


class SlackReplyFormatter(ReplyFormatter):
    """mrkdwn text for the reply relay."""

    def mirrored_reply(self, author: str, text: str) -> str:
        return mirrored_reply(author, text)

    def audit_notice(self, author: str, permalink: str, from_origin_side: bool) -> str:
        return audit_notice(author, permalink, from_origin_side)
