"""Slack adapter — directory and transport on the Slack Web API.

Every call runs under its own timeout. Failures are turned into the
relay's typed errors here so the routing core never sees SDK exceptions.
"""

import asyncio
import logging
from typing import Optional

import aiohttp
from slack_sdk.errors import SlackApiError, SlackClientError
from slack_sdk.web.async_client import AsyncWebClient

from ..routing.errors import LookupFailure, PermalinkUnavailable, SendError
from ..routing.models import Directory, ThreadRef, Transport

logger = logging.getLogger("threadrelay.slack")

# Errors that mean "no such user" rather than "lookup failed"
_NOT_FOUND_ERRORS = {"users_not_found", "user_not_found"}

# AsyncWebClient re-raises aiohttp errors (e.g. ServerDisconnectedError) as-is
_CALL_ERRORS = (SlackClientError, aiohttp.ClientError, asyncio.TimeoutError, OSError)


def _error_code(e: Exception) -> str:
    if isinstance(e, SlackApiError):
        return e.response.get("error", "unknown_error")
    if isinstance(e, asyncio.TimeoutError):
        return "timeout"
    return type(e).__name__


class SlackClient(Directory, Transport):
    """Slack implementation of the relay's Directory and Transport."""

    def __init__(self, token: str, timeout: float = 10.0, client: Optional[AsyncWebClient] = None):
        self._client = client or AsyncWebClient(token=token)
        self.timeout = timeout
        self._names: dict[str, str] = {}
        self.bot_user_id: Optional[str] = None

    async def _call(self, coro):
        return await asyncio.wait_for(coro, timeout=self.timeout)

    async def connect(self) -> Optional[str]:
        """Verify the token and remember the bot's own user id."""
        try:
            response = await self._call(self._client.auth_test())
        except _CALL_ERRORS as e:
            logger.error(f"Slack auth check failed: {_error_code(e)}")
            raise
        self.bot_user_id = response.get("user_id")
        logger.info(f"Connected to Slack team {response.get('team')} as {response.get('user')}")
        return self.bot_user_id

    # ── Directory ──

    async def lookup_by_email(self, email: str) -> Optional[str]:
        try:
            response = await self._call(self._client.users_lookupByEmail(email=email))
        except SlackApiError as e:
            if _error_code(e) in _NOT_FOUND_ERRORS:
                return None
            raise LookupFailure(f"users.lookupByEmail: {_error_code(e)}") from e
        except _CALL_ERRORS as e:
            raise LookupFailure(f"users.lookupByEmail: {_error_code(e)}") from e
        user = response.get("user") or {}
        if user.get("deleted"):
            return None
        return user.get("id")

    # ── Transport ──

    async def open_conversation(self, endpoint: str) -> str:
        try:
            response = await self._call(self._client.conversations_open(users=endpoint))
        except _CALL_ERRORS as e:
            raise SendError(f"conversations.open: {_error_code(e)}", target=endpoint) from e
        return response["channel"]["id"]

    async def send(self, channel: str, text: str, thread_ts: Optional[str] = None) -> ThreadRef:
        kwargs = {"channel": channel, "text": text}
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        try:
            response = await self._call(self._client.chat_postMessage(**kwargs))
        except _CALL_ERRORS as e:
            raise SendError(f"chat.postMessage: {_error_code(e)}", target=channel) from e
        return ThreadRef(channel=response.get("channel", channel), ts=response["ts"])

    async def permalink(self, thread: ThreadRef) -> str:
        try:
            response = await self._call(
                self._client.chat_getPermalink(channel=thread.channel, message_ts=thread.ts)
            )
        except _CALL_ERRORS as e:
            raise PermalinkUnavailable(f"chat.getPermalink: {_error_code(e)}") from e
        link = response.get("permalink")
        if not link:
            raise PermalinkUnavailable("chat.getPermalink returned no permalink")
        return link

    async def display_name(self, user_id: str) -> str:
        if user_id in self._names:
            return self._names[user_id]
        try:
            response = await self._call(self._client.users_info(user=user_id))
        except _CALL_ERRORS as e:
            logger.debug(f"users.info {user_id}: {_error_code(e)}")
            return user_id
        user = response.get("user") or {}
        name = user.get("real_name") or user.get("name") or user_id
        self._names[user_id] = name
        return name
