from __future__ import annotations

SCHEMA_VERSION_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);
"""

SCHEMA_TENDERS_SQL = """
CREATE TABLE IF NOT EXISTS tenders (
    external_code TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    status_code INTEGER NOT NULL,
    close_date TEXT,
    publication_date TEXT,
    region TEXT,
    buyer_name TEXT,
    buyer_rut TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tenders_status ON tenders (status_code);
CREATE INDEX IF NOT EXISTS idx_tenders_region ON tenders (region);
CREATE INDEX IF NOT EXISTS idx_tenders_close_date ON tenders (close_date);
"""

SCHEMA_TENDER_ITEMS_SQL = """
CREATE TABLE IF NOT EXISTS tender_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tender_code TEXT NOT NULL,
    position INTEGER NOT NULL,
    product_code TEXT,
    product_name TEXT NOT NULL,
    description TEXT,
    quantity INTEGER,
    unit_of_measure TEXT,
    FOREIGN KEY (tender_code) REFERENCES tenders (external_code) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_tender_items_tender_code ON tender_items (tender_code);
"""

SCHEMA_SYNC_RUNS_SQL = """
CREATE TABLE IF NOT EXISTS sync_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fetch_date TEXT NOT NULL,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL,
    fetched INTEGER DEFAULT 0,
    eligible INTEGER DEFAULT 0,
    upserted INTEGER DEFAULT 0,
    deleted INTEGER DEFAULT 0,
    failed INTEGER DEFAULT 0,
    enrichment_status TEXT,
    enriched INTEGER,
    enrichment_failed INTEGER,
    enrichment_skipped INTEGER,
    enrichment_finished_at TEXT,
    notes TEXT
);
CREATE INDEX IF NOT EXISTS idx_sync_runs_started_at ON sync_runs (started_at);
"""
