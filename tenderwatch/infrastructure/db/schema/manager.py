from __future__ import annotations

from .migrations import SchemaMigrator
from .tables import SCHEMA_SYNC_RUNS_SQL, SCHEMA_TENDER_ITEMS_SQL, SCHEMA_TENDERS_SQL


def ensure_schema(conn) -> None:
    """Create every Tenderwatch table and stamp the schema version."""

    migrator = SchemaMigrator(conn)
    migrator.ensure_tables()
    conn.executescript(SCHEMA_TENDERS_SQL)
    conn.executescript(SCHEMA_TENDER_ITEMS_SQL)
    conn.executescript(SCHEMA_SYNC_RUNS_SQL)
    migrator.ensure_current_version()
    conn.commit()
