"""Base service class with shared connection and infrastructure patterns.

Services receive a connection factory rather than a connection so every
unit of work (one reconcile pass, one enrichment merge, one cleanup) opens
its own SQLite connection. That keeps blocking work safe to hand to
``asyncio.to_thread``.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Callable

from tenderwatch.infrastructure.db import get_connection
from tenderwatch.infrastructure.db.repositories import SyncRunRepository, TenderRepository

ConnectionFactory = Callable[[], AbstractContextManager[sqlite3.Connection]]


def sqlite_connection_factory(db_path: str | Path | None = None) -> ConnectionFactory:
    """Bind :func:`get_connection` to a database path."""

    def connection_factory() -> AbstractContextManager[sqlite3.Connection]:
        return get_connection(db_path)

    return connection_factory


class BaseService:
    """Base class for service layer implementations.

    Example usage::

        service = MyService(sqlite_connection_factory("/path/to/tenderwatch.db"))

        # Tests hand in any factory yielding a connection:
        service = MyService(lambda: get_connection(tmp_path / "t.db"))
    """

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        self._connection_factory = connection_factory

    @contextmanager
    def _tender_store(self) -> Iterator[TenderRepository]:
        with self._connection_factory() as conn:
            yield TenderRepository(conn)

    @contextmanager
    def _sync_runs(self) -> Iterator[SyncRunRepository]:
        with self._connection_factory() as conn:
            yield SyncRunRepository(conn)
