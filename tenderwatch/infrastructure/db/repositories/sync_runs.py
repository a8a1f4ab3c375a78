from __future__ import annotations

import sqlite3
from typing import Any

from ..connection import iso_utcnow
from ..schema import ensure_schema
from .base import BaseRepository


class SyncRunRepository(BaseRepository):
    """Bookkeeping for sync cycles in the ``sync_runs`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def start(self, fetch_date: str) -> int:
        with self.conn:
            cur = self._execute(
                "INSERT INTO sync_runs (fetch_date, started_at, status) VALUES (?, ?, ?)",
                (fetch_date, iso_utcnow(), "running"),
            )
        if cur.lastrowid is None:
            raise RuntimeError("Failed to insert sync_runs record; lastrowid is None")
        return int(cur.lastrowid)

    def finish(
        self,
        run_id: int,
        *,
        status: str,
        fetched: int = 0,
        eligible: int = 0,
        upserted: int = 0,
        deleted: int = 0,
        failed: int = 0,
        notes: str | None = None,
    ) -> None:
        """Record the Phase 1 outcome of a run."""
        with self.conn:
            self._execute(
                """
                UPDATE sync_runs SET status = ?, finished_at = ?, fetched = ?,
                    eligible = ?, upserted = ?, deleted = ?, failed = ?, notes = ?
                WHERE id = ?
                """,
                (status, iso_utcnow(), fetched, eligible, upserted, deleted, failed, notes, run_id),
            )

    def record_enrichment(
        self,
        run_id: int,
        *,
        status: str,
        enriched: int,
        failed: int,
        skipped: int,
    ) -> None:
        """Record how the detached enrichment batch of a run ended."""
        with self.conn:
            self._execute(
                """
                UPDATE sync_runs SET enrichment_status = ?, enriched = ?,
                    enrichment_failed = ?, enrichment_skipped = ?,
                    enrichment_finished_at = ?
                WHERE id = ?
                """,
                (status, enriched, failed, skipped, iso_utcnow(), run_id),
            )

    def get(self, run_id: int) -> dict[str, Any] | None:
        return self._fetch_one_as_dict("SELECT * FROM sync_runs WHERE id = ?", (run_id,))

    def list_recent(self, limit: int = 20) -> list[dict[str, Any]]:
        return self._fetch_all_as_dicts(
            "SELECT * FROM sync_runs ORDER BY id DESC LIMIT ?", (limit,)
        )
