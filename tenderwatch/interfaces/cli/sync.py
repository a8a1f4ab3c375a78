"""Synchronization CLI for Tenderwatch."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from tenderwatch.interfaces.cli.context import (
    build_cli_context,
    build_coordinator,
    load_cli_settings,
)
from tenderwatch.services.sync import SyncCycleResult

console = Console()


def _summary_table(result: SyncCycleResult) -> Table:
    table = Table(title=f"Sync run {result.run_id or '-'} ({result.fetch_date or '-'})")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Status", result.status)
    table.add_row("Fetched", str(result.fetched))
    table.add_row("Eligible", str(result.eligible))
    table.add_row("[green]Upserted[/green]", str(result.upserted))
    table.add_row("[yellow]Deleted[/yellow]", str(result.deleted))
    table.add_row("[red]Failed[/red]", str(result.failed))
    report = result.enrichment
    if report is not None:
        table.add_row("Enriched", str(report.enriched))
        table.add_row("Enrichment failed", str(report.failed))
        table.add_row("Enrichment skipped", str(report.skipped))
        table.add_row("Enrichment status", report.status)
    table.add_row("Duration (s)", f"{result.duration_seconds:.2f}")
    return table


@click.command(name="sync")
@click.option(
    "--db",
    "db_path",
    default=None,
    help="Path to the SQLite database file. Will be created if it does not exist.",
)
@click.option(
    "--pacing",
    "pacing_seconds",
    type=float,
    default=None,
    help="Seconds between detail requests (defaults to sync.pacing_seconds, 3.0).",
)
@click.option("--json-output", is_flag=True, help="Output the run summary as JSON.")
def sync(db_path: str | None, pacing_seconds: float | None, json_output: bool) -> None:
    """Run one sync cycle for yesterday's tenders and wait for enrichment.

    Eligible tenders are stored first; each is then enriched with its
    detail record, pausing between requests to respect the API rate limit.
    """
    settings = load_cli_settings(require_ticket=True)
    cli_context = build_cli_context(db_path)
    coordinator = build_coordinator(cli_context, settings, pacing_seconds=pacing_seconds)

    try:
        result = coordinator.trigger_manual()
    finally:
        coordinator.client.close()

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        console.print(_summary_table(result))
        for error in result.errors:
            console.print(f"[red]{error}[/red]")

    if result.status == "failed":
        raise SystemExit(1)
