"""Shared FastAPI dependencies for Tenderwatch application components."""

from __future__ import annotations

import sqlite3
from typing import Annotated, Iterator

from fastapi import Depends, Request

from tenderwatch.infrastructure.db import ensure_schema, get_connection
from tenderwatch.infrastructure.db.repositories import SyncRunRepository, TenderRepository
from tenderwatch.services.scheduler import SyncScheduler
from tenderwatch.services.sync import SyncCoordinator

__all__ = [
    "get_db_connection",
    "get_tender_repository",
    "get_sync_run_repository",
    "get_coordinator",
    "get_scheduler",
    "TenderRepositoryDep",
    "SyncRunRepositoryDep",
    "CoordinatorDep",
    "SchedulerDep",
]


def get_db_connection() -> Iterator[sqlite3.Connection]:
    """Provide a SQLite connection with the required schema ensured.

    Uses check_same_thread=False because FastAPI may run the dependency and
    the endpoint on different threads.
    """

    with get_connection(check_same_thread=False) as conn:
        ensure_schema(conn)
        yield conn


def get_tender_repository(
    conn: sqlite3.Connection = Depends(get_db_connection),
) -> TenderRepository:
    return TenderRepository(conn)


def get_sync_run_repository(
    conn: sqlite3.Connection = Depends(get_db_connection),
) -> SyncRunRepository:
    return SyncRunRepository(conn)


def get_coordinator(request: Request) -> SyncCoordinator:
    return request.app.state.coordinator


def get_scheduler(request: Request) -> SyncScheduler | None:
    return getattr(request.app.state, "scheduler", None)


TenderRepositoryDep = Annotated[TenderRepository, Depends(get_tender_repository)]
SyncRunRepositoryDep = Annotated[SyncRunRepository, Depends(get_sync_run_repository)]
CoordinatorDep = Annotated[SyncCoordinator, Depends(get_coordinator)]
SchedulerDep = Annotated[SyncScheduler | None, Depends(get_scheduler)]
