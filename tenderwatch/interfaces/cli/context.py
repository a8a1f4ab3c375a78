"""Shared helpers for composing CLI command contexts.

This module centralises CLI wiring: resolving the database path, building
SQLite connections with the project defaults applied, and assembling the
sync coordinator from configuration.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, ContextManager, Iterator, TypeVar

import click

from tenderwatch.app.config import ConfigurationError, Settings, load_settings
from tenderwatch.infrastructure.db import ensure_schema, get_connection, get_path_config
from tenderwatch.infrastructure.db.repositories.base import BaseRepository
from tenderwatch.services.sync import SyncCoordinator

RepositoryT = TypeVar("RepositoryT", bound=BaseRepository)


@dataclass(frozen=True)
class CLIContext:
    """Container for CLI dependencies and configuration paths."""

    db_path: Path
    connection_factory: Callable[[], ContextManager[sqlite3.Connection]]

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a configured SQLite connection and ensure the schema exists."""

        with self.connection_factory() as connection:
            ensure_schema(connection)
            yield connection

    @contextmanager
    def repository(self, repository_cls: type[RepositoryT]) -> Iterator[RepositoryT]:
        """Yield a repository instance wired to a managed connection."""

        with self.connect() as connection:
            yield repository_cls(connection)


def build_cli_context(db_path: str | Path | None = None) -> CLIContext:
    """Build the CLI context with the resolved database path."""

    resolved_db_path = (
        Path(db_path).expanduser() if db_path is not None else get_path_config()["db_path"]
    )

    def connection_factory() -> ContextManager[sqlite3.Connection]:
        return get_connection(resolved_db_path)

    return CLIContext(db_path=resolved_db_path, connection_factory=connection_factory)


def load_cli_settings(*, require_ticket: bool) -> Settings:
    """Load settings, turning a bad ticket into a CLI error when one is needed."""

    settings = load_settings()
    if require_ticket:
        try:
            settings.api.validate()
        except ConfigurationError as exc:
            raise click.ClickException(str(exc)) from exc
    return settings


def build_coordinator(
    cli_context: CLIContext,
    settings: Settings,
    *,
    pacing_seconds: float | None = None,
) -> SyncCoordinator:
    """Wire a coordinator to the CLI database and the configured API."""

    if pacing_seconds is not None:
        settings.sync.pacing_seconds = pacing_seconds
    return SyncCoordinator.from_settings(settings, cli_context.connection_factory)
