"""Entry point for running the Tenderwatch CLI.

This module defines a top-level Click group that aggregates all subcommands
defined in the ``tenderwatch.interfaces.cli`` package. Executing
``python -m tenderwatch.interfaces.cli`` (or the ``tenderwatch`` console
script) invokes this group.
"""

import logging

import click

from tenderwatch.infrastructure.observability import configure_logging

from .cleanup import cleanup
from .runs import runs
from .serve import serve
from .sync import sync
from .view import view


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Tenderwatch command-line interface."""
    configure_logging(level=logging.DEBUG if verbose else logging.INFO)


cli.add_command(sync)
cli.add_command(cleanup)
cli.add_command(view)
cli.add_command(runs)
cli.add_command(serve)


if __name__ == "__main__":
    cli()
