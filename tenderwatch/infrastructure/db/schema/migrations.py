from __future__ import annotations

from ..connection import iso_utcnow
from .tables import SCHEMA_VERSION_SQL

# Increment when making structural changes.
CURRENT_SCHEMA_VERSION = 1


class SchemaMigrator:
    """Version tracker backed by the single-row ``schema_version`` table.

    The stored integer is brought up to ``CURRENT_SCHEMA_VERSION`` on startup.
    """

    def __init__(self, conn) -> None:
        self.conn = conn

    def ensure_tables(self) -> None:
        self.conn.executescript(SCHEMA_VERSION_SQL)

    def get_version(self) -> int | None:
        cur = self.conn.execute("SELECT version FROM schema_version LIMIT 1")
        row = cur.fetchone()
        return row[0] if row else None

    def set_version(self, version: int) -> None:
        self.conn.execute("DELETE FROM schema_version")
        self.conn.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (version, iso_utcnow()),
        )

    def ensure_current_version(self) -> None:
        current = self.get_version()
        if current is None or current < CURRENT_SCHEMA_VERSION:
            self.set_version(CURRENT_SCHEMA_VERSION)
