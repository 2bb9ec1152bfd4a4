"""Pytest configuration and shared fixtures."""

import os

import pytest

from fakes import FakeSlack, FakeStore


@pytest.fixture
def slack():
    """Directory/transport with three known users."""
    return FakeSlack(
        users={"a@x.com": "U1", "b@x.com": "U2", "d@x.com": "U3"},
        names={"U1": "Ada", "U2": "Bob", "U3": "Dee", "U9": "Origin Owner"},
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
async def db_pool():
    """Initialize a Postgres pool for store tests, or skip without a database."""
    asyncpg = pytest.importorskip("asyncpg")
    from threadrelay.db.connection import apply_schema, close_db, get_connection, get_pool

    db_url = os.environ.get("RELAY_TEST_DATABASE_URL")
    if not db_url:
        pytest.skip("RELAY_TEST_DATABASE_URL not set")

    import threadrelay.db.connection as connection
    try:
        connection._pool = await asyncpg.create_pool(db_url, min_size=1, max_size=4)
    except (OSError, asyncpg.PostgresError) as e:
        pytest.skip(f"Test database unavailable: {e}")

    await apply_schema(get_pool())
    async with get_connection() as conn:
        await conn.execute("DELETE FROM routing_records WHERE origin_key LIKE 'test_%'")
    yield
    async with get_connection() as conn:
        await conn.execute("DELETE FROM routing_records WHERE origin_key LIKE 'test_%'")
    await close_db()
