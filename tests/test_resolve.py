"""Tests for recipient resolution."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from threadrelay.routing.errors import LookupFailure
from threadrelay.routing.resolve import resolve_recipients


class TestResolveRecipients:

    @pytest.mark.asyncio
    async def test_partition_covers_input(self, slack):
        identifiers = {"a@x.com", "b@x.com", "c@unknown.com"}
        result = await resolve_recipients(identifiers, slack)

        resolved_ids = {email for email, _ in result.resolved}
        assert resolved_ids | result.unresolved == identifiers
        assert not resolved_ids & result.unresolved
        assert result.unresolved == {"c@unknown.com"}

    @pytest.mark.asyncio
    async def test_lookup_failure_counts_as_unresolved(self, slack):
        slack.fail_lookup.add("a@x.com")
        result = await resolve_recipients({"a@x.com", "b@x.com"}, slack)
        assert result.resolved == [("b@x.com", "U2")]
        assert result.unresolved == {"a@x.com"}

    @pytest.mark.asyncio
    async def test_timeout_counts_as_unresolved(self):
        directory = AsyncMock()
        directory.lookup_by_email = AsyncMock(side_effect=asyncio.TimeoutError())
        result = await resolve_recipients({"a@x.com"}, directory)
        assert result.resolved == []
        assert result.unresolved == {"a@x.com"}

    @pytest.mark.asyncio
    async def test_resolved_order_is_deterministic(self, slack):
        first = await resolve_recipients({"d@x.com", "a@x.com", "b@x.com"}, slack)
        second = await resolve_recipients(["b@x.com", "d@x.com", "a@x.com"], slack)
        assert first.resolved == second.resolved
        assert [e for e, _ in first.resolved] == ["a@x.com", "b@x.com", "d@x.com"]

    @pytest.mark.asyncio
    async def test_each_identifier_looked_up_once(self):
        directory = AsyncMock()
        directory.lookup_by_email = AsyncMock(return_value="U1")
        await resolve_recipients({"a@x.com", "b@x.com"}, directory)
        assert directory.lookup_by_email.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_input(self, slack):
        result = await resolve_recipients(set(), slack)
        assert result.resolved == []
        assert result.unresolved == set()

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        """Only lookup failures are demoted; programming errors are not hidden."""
        directory = AsyncMock()
        directory.lookup_by_email = AsyncMock(side_effect=KeyError("user"))
        with pytest.raises(KeyError):
            await resolve_recipients({"a@x.com"}, directory)


def test_lookup_failure_is_relay_error():
    from threadrelay.routing.errors import RelayError
    assert issubclass(LookupFailure, RelayError)


class TestUnexpectedErrors:

    @pytest.mark.asyncio
    async def test_error_cancels_pending_lookups(self):
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def lookup(email):
            if email == "a@x.com":
                await started.wait()
                raise KeyError("user")
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        directory = AsyncMock()
        directory.lookup_by_email = lookup
        with pytest.raises(KeyError):
            await resolve_recipients({"a@x.com", "b@x.com"}, directory)
        await asyncio.wait_for(cancelled.wait(), timeout=1)

