"""Text viewer for tenders stored in the database."""

from __future__ import annotations

import json

import click
from rich.console import Console

from tenderwatch.domain.models import STATUS_PUBLISHED
from tenderwatch.infrastructure.db.repositories import TenderRepository
from tenderwatch.infrastructure.db.repositories.tenders import SORT_COLUMNS
from tenderwatch.interfaces.cli.context import build_cli_context
from tenderwatch.services.dto import TenderView

console = Console()


def _format_tender_line(tender: TenderView) -> str:
    closes = tender.close_date.isoformat(sep=" ") if tender.close_date else "-"
    buyer = tender.buyer_name or "(buyer pending)"
    region = f" | region={tender.region}" if tender.region else ""
    return (
        f"- [{tender.external_code}] {tender.name or '(no name)'} "
        f"| buyer={buyer}{region} | items={len(tender.items)} | closes={closes}"
    )


@click.command()
@click.option("--db", "db_path", default=None, help="Path to the SQLite database.")
@click.option("--code", default=None, help="Show a single tender with its items.")
@click.option("--region", default=None, help="Filter by buyer region (exact, case-insensitive).")
@click.option(
    "--status",
    "status_code",
    type=int,
    default=STATUS_PUBLISHED,
    show_default=True,
    help="Filter by remote status code.",
)
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice(sorted(SORT_COLUMNS)),
    default="close_date",
    show_default=True,
    help="Sort order; dates sort newest first.",
)
@click.option(
    "--limit",
    type=int,
    default=50,
    show_default=True,
    help="Maximum number of tenders to display (0 for no limit).",
)
@click.option("--json-output", is_flag=True, help="Output the results as JSON.")
def view(
    db_path: str | None,
    code: str | None,
    region: str | None,
    status_code: int,
    sort_by: str,
    limit: int,
    json_output: bool,
) -> None:
    """Show tenders stored in the Tenderwatch database."""

    cli_context = build_cli_context(db_path)
    with cli_context.repository(TenderRepository) as repository:
        if code is not None:
            found = repository.find(code)
            tenders = [found] if found is not None else []
        else:
            tenders = repository.list_tenders(
                region=region,
                status_code=status_code,
                sort_by=sort_by,
                limit=limit or None,
            )
    views = [TenderView.from_tender(tender) for tender in tenders]

    if json_output:
        payload = [tender.model_dump(mode="json") for tender in views]
        click.echo(json.dumps(payload, indent=2))
        return

    if not views:
        console.print("[yellow]No tenders found with the provided filters.[/yellow]")
        return

    console.print(f"Showing {len(views)} tender(s):")
    for tender in views:
        console.print(_format_tender_line(tender))
        if code is not None:
            for item in tender.items:
                quantity = f"{item.quantity} {item.unit_of_measure or ''}".strip()
                console.print(f"    * {item.product_name} ({quantity or 'n/a'})")
