"""Start and dry-run commands."""

import asyncio
import click

from . import cli
from .shared import console


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start the Events API server."""
    from threadrelay.main import run, setup_logging

    setup_logging(debug=debug)
    console.print("[bold blue]Starting threadrelay...[/bold blue]")
    asyncio.run(run())


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
def extract(source):
    """Show the recipients an origin message would route to (reads a file or stdin)."""
    from threadrelay.config import load_settings
    from threadrelay.routing.extract import extract_recipients

    settings = load_settings()
    recipients = extract_recipients(source.read(), settings.start_marker, settings.end_marker)
    if not recipients:
        console.print(
            f"[yellow]Not a routable origin: no '{settings.start_marker}' … "
            f"'{settings.end_marker}' block with addresses.[/yellow]"
        )
        return
    for email in sorted(recipients):
        console.print(f"  {email}")
    console.print(f"[green]{len(recipients)} recipient(s)[/green]")
