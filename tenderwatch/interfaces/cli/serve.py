"""Run the internal API with its hourly/daily scheduler."""

from __future__ import annotations

import click


@click.command(name="serve")
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", type=int, default=8000, show_default=True, help="Port to listen on.")
def serve(host: str, port: int) -> None:
    """Serve the trigger and read API; schedules sync and cleanup."""
    import uvicorn

    uvicorn.run("tenderwatch.app.api:app", host=host, port=port)
