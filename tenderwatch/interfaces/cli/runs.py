"""Show recorded sync runs."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from tenderwatch.infrastructure.db.repositories import SyncRunRepository
from tenderwatch.interfaces.cli.context import build_cli_context

console = Console()


@click.command(name="runs")
@click.option("--db", "db_path", default=None, help="Path to the SQLite database.")
@click.option("--limit", type=int, default=10, show_default=True, help="Number of runs to show.")
def runs(db_path: str | None, limit: int) -> None:
    """List the most recent sync runs, newest first."""

    cli_context = build_cli_context(db_path)
    with cli_context.repository(SyncRunRepository) as repository:
        rows = repository.list_recent(limit)

    if not rows:
        console.print("[yellow]No sync runs recorded yet.[/yellow]")
        return

    table = Table(title=f"Recent sync runs ({len(rows)})")
    table.add_column("ID", justify="right")
    table.add_column("Fetch date")
    table.add_column("Started")
    table.add_column("Status", style="bold")
    table.add_column("Upserted", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Enrichment")
    for row in rows:
        enrichment = row.get("enrichment_status") or "-"
        if row.get("enrichment_status"):
            enrichment = (
                f"{enrichment} ({row.get('enriched') or 0} ok, "
                f"{row.get('enrichment_failed') or 0} failed)"
            )
        table.add_row(
            str(row["id"]),
            row.get("fetch_date") or "-",
            row.get("started_at") or "-",
            row.get("status") or "-",
            str(row.get("upserted") or 0),
            str(row.get("deleted") or 0),
            str(row.get("failed") or 0),
            enrichment,
        )
    console.print(table)
