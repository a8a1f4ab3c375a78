"""Base repository class with shared query helpers."""

from __future__ import annotations

import sqlite3
from typing import Any


class BaseRepository:
    """Base class for repository implementations.

    Repositories receive an open connection and never close it; callers
    own the connection lifecycle (see ``get_connection``).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def _fetch_all_as_dicts(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query and return all rows as dictionaries.

        Example:
            >>> rows = self._fetch_all_as_dicts(
            ...     "SELECT external_code, name FROM tenders WHERE region = ?",
            ...     ("Región Metropolitana de Santiago",),
            ... )
            >>> rows[0]["external_code"]
            '1234-56-LE26'
        """
        cur = self.conn.execute(query, params or ())
        columns = [c[0] for c in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]

    def _fetch_one_as_dict(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> dict[str, Any] | None:
        """Execute query and return the first row as a dictionary, or None."""
        cur = self.conn.execute(query, params or ())
        row = cur.fetchone()
        if not row:
            return None
        columns = [c[0] for c in cur.description]
        return dict(zip(columns, row))

    def _fetch_scalar(self, query: str, params: tuple[Any, ...] | None = None) -> Any:
        """Execute query and return the first column of the first row."""
        cur = self.conn.execute(query, params or ())
        row = cur.fetchone()
        return row[0] if row else None

    def _execute(self, query: str, params: tuple[Any, ...] | None = None) -> sqlite3.Cursor:
        return self.conn.execute(query, params or ())
