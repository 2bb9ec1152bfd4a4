"""Dedup guard for redelivered origin messages."""

import logging

from .models import RoutingStore

logger = logging.getLogger("threadrelay.dedup")


class DedupGuard:
    """Skips dispatch of an origin key that already has a routing record.

    The Events API redelivers any event it did not see acknowledged in
    time, so the webhook path checks the store before dispatching again.
    Disabled, every redelivery redispatches and the record is upserted.
    """

    def __init__(self, store: RoutingStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled

    async def should_dispatch(self, origin_key: str) -> bool:
        if not self.enabled:
            return True
        existing = await self.store.get(origin_key)
        if existing:
            logger.info(f"Origin {origin_key} already routed at {existing.created_at.isoformat()}, skipping")
            return False
        return True
