"""Database management commands."""

import asyncio
import click

from . import cli
from .shared import console, record_table


@cli.group()
def db():
    """Database management commands."""
    pass


@db.command("init")
def db_init():
    """Initialize database schema."""
    async def _init():
        from threadrelay.config import load_settings
        from threadrelay.db.connection import apply_schema, init_db, close_db

        settings = load_settings()
        pool = await init_db(settings.database_url)
        try:
            await apply_schema(pool)
        finally:
            await close_db()
        console.print("[green]✓ Database schema initialized[/green]")

    asyncio.run(_init())


async def _with_store(fn):
    from threadrelay.config import load_settings
    from threadrelay.db.connection import init_db, close_db
    from threadrelay.db.store import PostgresRoutingStore

    settings = load_settings()
    await init_db(settings.database_url)
    try:
        return await fn(PostgresRoutingStore())
    finally:
        await close_db()


@db.command("show")
@click.argument("origin_key")
def db_show(origin_key):
    """Show the routing record of an origin message (its ts)."""
    record = asyncio.run(_with_store(lambda store: store.get(origin_key)))
    if not record:
        console.print(f"[yellow]No routing record for {origin_key}.[/yellow]")
        return
    console.print(record_table(record))
    console.print(f"[dim]created {record.created_at.isoformat()}[/dim]")


@db.command("find")
@click.argument("channel")
@click.argument("ts")
def db_find(channel, ts):
    """Find the routing record owning a derived thread (CHANNEL TS)."""
    from threadrelay.routing.models import ThreadRef

    thread = ThreadRef(channel=channel, ts=ts)
    record = asyncio.run(_with_store(lambda store: store.find_by_derived_thread(thread)))
    if not record:
        console.print(f"[yellow]No routing record owns {channel}/{ts}.[/yellow]")
        return
    console.print(record_table(record))
