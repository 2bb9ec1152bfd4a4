"""Recipient resolution against the user directory."""

import asyncio
import logging
from typing import Iterable, Optional

from .errors import LookupFailure
from .models import Directory, Resolution

logger = logging.getLogger("threadrelay.resolve")


async def _lookup(directory: Directory, email: str) -> Optional[str]:
    """Look up one identifier. A failed lookup counts as not found."""
    try:
        return await directory.lookup_by_email(email)
    except (LookupFailure, asyncio.TimeoutError) as e:
        logger.warning(f"Lookup failed for {email}: {e or type(e).__name__}")
        return None


async def resolve_recipients(identifiers: Iterable[str], directory: Directory) -> Resolution:
    """Partition identifiers into resolved (recipient, endpoint) pairs and unresolved ones.

    Lookups run concurrently and are never retried. ``resolved`` is sorted
    by identifier so the result is deterministic for a fixed directory.
    Any other error cancels the lookups still in flight and propagates.
    """
    ordered = sorted(set(identifiers))
    tasks = [asyncio.ensure_future(_lookup(directory, email)) for email in ordered]
    try:
        endpoints = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise

    resolved: list[tuple[str, str]] = []
    unresolved: set[str] = set()
    for email, endpoint in zip(ordered, endpoints):
        if endpoint:
            resolved.append((email, endpoint))
        else:
            unresolved.add(email)

    logger.debug(f"Resolved {len(resolved)}/{len(ordered)} recipients")
    return Resolution(resolved=resolved, unresolved=unresolved)
