"""Shared utilities for threadrelay CLI commands."""

from rich.console import Console

console = Console()


def record_table(record):
    """Render a RoutingRecord as a rich table."""
    from rich.table import Table

    table = Table(title=f"Origin {record.origin_key} in {record.origin_thread}", show_lines=True)
    table.add_column("Recipient")
    table.add_column("User")
    table.add_column("Derived thread")
    for d in record.deliveries:
        table.add_row(d.recipient, d.endpoint, f"{d.derived_thread.channel}/{d.derived_thread.ts}")
    for email in record.unresolved:
        table.add_row(email, "[dim]unresolved[/dim]", "[dim]—[/dim]")
    return table
