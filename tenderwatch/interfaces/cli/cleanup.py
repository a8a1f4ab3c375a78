"""Expiry cleanup CLI."""

from __future__ import annotations

import click
from rich.console import Console

from tenderwatch.interfaces.cli.context import (
    build_cli_context,
    build_coordinator,
    load_cli_settings,
)

console = Console()


@click.command(name="cleanup")
@click.option("--db", "db_path", default=None, help="Path to the SQLite database.")
def cleanup(db_path: str | None) -> None:
    """Delete stored tenders whose close date has passed."""

    settings = load_cli_settings(require_ticket=False)
    coordinator = build_coordinator(build_cli_context(db_path), settings)
    try:
        deleted = coordinator.cleanup_expired()
    finally:
        coordinator.client.close()

    if deleted:
        console.print(f"[green]Deleted {deleted} expired tender(s).[/green]")
    else:
        console.print("No expired tenders.")
