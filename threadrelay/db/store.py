"""Postgres-backed routing store.

Records live in ``routing_records``; ``routing_threads`` indexes every
derived thread back to its origin key. Both are written in one
transaction, so readers see either the previous record or the new one
in full.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

from ..routing.errors import StorageError
from ..routing.models import Delivery, RoutingRecord, RoutingStore, ThreadRef
from .connection import get_connection, get_transaction

logger = logging.getLogger("threadrelay.db.store")

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


@asynccontextmanager
async def _storage_errors(operation: str):
    """Re-raise database errors as StorageError."""
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        logger.error(f"{operation}: derived thread already owned by another record: {e}")
        raise StorageError(f"{operation}: derived thread already routed for another origin") from e
    except _DB_ERRORS as e:
        logger.error(f"{operation} failed: {type(e).__name__}: {e}")
        raise StorageError(f"{operation} failed: {e}") from e


def _parse_json(value) -> list:
    # asyncpg hands JSONB back as text unless a codec is registered
    if isinstance(value, str):
        return json.loads(value)
    return value or []


def _row_to_record(row) -> RoutingRecord:
    return RoutingRecord(
        origin_key=row["origin_key"],
        origin_thread=row["origin_thread"],
        deliveries=[Delivery.from_dict(d) for d in _parse_json(row["deliveries"])],
        unresolved=list(_parse_json(row["unresolved"])),
        created_at=row["created_at"],
    )


class PostgresRoutingStore(RoutingStore):
    """RoutingStore on the shared asyncpg pool."""

    async def put(self, record: RoutingRecord) -> RoutingRecord:
        deliveries = json.dumps([d.to_dict() for d in record.deliveries])
        unresolved = json.dumps(sorted(record.unresolved))

        async with _storage_errors(f"put {record.origin_key}"):
            async with get_transaction() as conn:
                created_at = await conn.fetchval("""
                    INSERT INTO routing_records (origin_key, origin_thread, deliveries, unresolved, created_at)
                    VALUES ($1, $2, $3::jsonb, $4::jsonb, $5)
                    ON CONFLICT (origin_key) DO UPDATE SET
                        origin_thread = EXCLUDED.origin_thread,
                        deliveries = EXCLUDED.deliveries,
                        unresolved = EXCLUDED.unresolved,
                        updated_at = NOW()
                    RETURNING created_at
                """, record.origin_key, record.origin_thread, deliveries, unresolved, record.created_at)

                await conn.execute(
                    "DELETE FROM routing_threads WHERE origin_key = $1", record.origin_key
                )
                await conn.executemany(
                    "INSERT INTO routing_threads (channel, ts, origin_key) VALUES ($1, $2, $3)",
                    [(t.channel, t.ts, record.origin_key) for t in record.derived_threads()],
                )

        return RoutingRecord(
            origin_key=record.origin_key,
            origin_thread=record.origin_thread,
            deliveries=list(record.deliveries),
            unresolved=sorted(record.unresolved),
            created_at=created_at,
        )

    async def get(self, origin_key: str) -> Optional[RoutingRecord]:
        async with _storage_errors(f"get {origin_key}"):
            async with get_connection() as conn:
                row = await conn.fetchrow("""
                    SELECT origin_key, origin_thread, deliveries, unresolved, created_at
                    FROM routing_records WHERE origin_key = $1
                """, origin_key)
        return _row_to_record(row) if row else None

    async def find_by_derived_thread(self, thread: ThreadRef) -> Optional[RoutingRecord]:
        async with _storage_errors(f"find {thread.channel}/{thread.ts}"):
            async with get_connection() as conn:
                row = await conn.fetchrow("""
                    SELECT r.origin_key, r.origin_thread, r.deliveries, r.unresolved, r.created_at
                    FROM routing_threads t
                    JOIN routing_records r ON r.origin_key = t.origin_key
                    WHERE t.channel = $1 AND t.ts = $2
                """, thread.channel, thread.ts)
        return _row_to_record(row) if row else None
