from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Iterable

from tenderwatch.domain.models import STATUS_PUBLISHED, LineItem, StoredTender, TenderEnrichment
from tenderwatch.domain.normalize import format_timestamp, parse_timestamp

from ..schema import ensure_schema
from .base import BaseRepository

SORT_COLUMNS = {
    "close_date": "t.close_date DESC",
    "creation_date": "t.created_at DESC",
    "publication_date": "t.publication_date DESC",
}

_TENDER_COLUMNS = """
    t.external_code, t.name, t.description, t.status_code, t.close_date,
    t.publication_date, t.region, t.buyer_name, t.buyer_rut, t.created_at,
    t.updated_at
"""


class TenderRepository(BaseRepository):
    """Keyed tender store.

    Every write runs in its own transaction, so an upsert, merge or delete
    is atomic per tender. Concurrent writers resolve as last-writer-wins.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    # -------------------- writes --------------------
    def upsert(self, tender: StoredTender, *, now: datetime) -> None:
        """Insert the tender or replace every mutable field and its items.

        ``created_at`` is written on insert only.
        """
        stamp = format_timestamp(now)
        with self.conn:
            self._execute(
                """
                INSERT INTO tenders (
                    external_code, name, description, status_code, close_date,
                    publication_date, region, buyer_name, buyer_rut,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(external_code) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    status_code = excluded.status_code,
                    close_date = excluded.close_date,
                    publication_date = excluded.publication_date,
                    region = excluded.region,
                    buyer_name = excluded.buyer_name,
                    buyer_rut = excluded.buyer_rut,
                    updated_at = excluded.updated_at
                """,
                (
                    tender.external_code,
                    tender.name,
                    tender.description,
                    tender.status_code,
                    format_timestamp(tender.close_date),
                    format_timestamp(tender.publication_date),
                    tender.region,
                    tender.buyer_name,
                    tender.buyer_rut,
                    stamp,
                    stamp,
                ),
            )
            self._replace_items(tender.external_code, tender.items)

    def apply_enrichment(
        self, external_code: str, enrichment: TenderEnrichment, *, now: datetime
    ) -> bool:
        """Merge detail fields into an existing tender.

        Returns False, writing nothing, when the tender is not stored; a
        merge never recreates a tender that was deleted meanwhile.
        """
        with self.conn:
            cur = self._execute(
                """
                UPDATE tenders SET
                    buyer_name = COALESCE(?, buyer_name),
                    buyer_rut = COALESCE(?, buyer_rut),
                    region = COALESCE(?, region),
                    description = COALESCE(?, description),
                    updated_at = ?
                WHERE external_code = ?
                """,
                (
                    enrichment.buyer_name,
                    enrichment.buyer_rut,
                    enrichment.region,
                    enrichment.description,
                    format_timestamp(now),
                    external_code,
                ),
            )
            if cur.rowcount == 0:
                return False
            self._replace_items(external_code, enrichment.items)
        return True

    def delete(self, external_code: str) -> bool:
        with self.conn:
            self._execute("DELETE FROM tender_items WHERE tender_code = ?", (external_code,))
            cur = self._execute("DELETE FROM tenders WHERE external_code = ?", (external_code,))
        return cur.rowcount > 0

    def delete_closed_before(self, instant: datetime) -> int:
        """Delete tenders whose close date is strictly before ``instant``."""
        cutoff = format_timestamp(instant)
        with self.conn:
            self._execute(
                """
                DELETE FROM tender_items WHERE tender_code IN (
                    SELECT external_code FROM tenders
                    WHERE close_date IS NOT NULL AND close_date < ?
                )
                """,
                (cutoff,),
            )
            cur = self._execute(
                "DELETE FROM tenders WHERE close_date IS NOT NULL AND close_date < ?",
                (cutoff,),
            )
        return cur.rowcount

    def _replace_items(self, external_code: str, items: Iterable[LineItem]) -> None:
        self._execute("DELETE FROM tender_items WHERE tender_code = ?", (external_code,))
        self.conn.executemany(
            """
            INSERT INTO tender_items (
                tender_code, position, product_code, product_name,
                description, quantity, unit_of_measure
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    external_code,
                    position,
                    item.product_code,
                    item.product_name,
                    item.description,
                    item.quantity,
                    item.unit_of_measure,
                )
                for position, item in enumerate(items)
            ],
        )

    # -------------------- reads --------------------
    def exists(self, external_code: str) -> bool:
        return (
            self._fetch_scalar("SELECT 1 FROM tenders WHERE external_code = ?", (external_code,))
            is not None
        )

    def find(self, external_code: str) -> StoredTender | None:
        row = self._fetch_one_as_dict(
            f"SELECT {_TENDER_COLUMNS} FROM tenders t WHERE t.external_code = ?",
            (external_code,),
        )
        if row is None:
            return None
        items = self._load_items([external_code])
        return _tender_from_row(row, items.get(external_code, []))

    def list_tenders(
        self,
        *,
        region: str | None = None,
        status_code: int | None = STATUS_PUBLISHED,
        sort_by: str = "close_date",
        limit: int | None = None,
    ) -> list[StoredTender]:
        """List tenders, optionally filtered by exact region and status.

        ``sort_by`` is ``close_date`` (furthest first, the default),
        ``creation_date`` (newest first) or ``publication_date``.
        """
        order = SORT_COLUMNS.get(sort_by)
        if order is None:
            raise ValueError(f"Unsupported sort order: {sort_by}")

        query = f"SELECT {_TENDER_COLUMNS} FROM tenders t"
        conditions: list[str] = []
        params: list[Any] = []
        if region:
            conditions.append("t.region = ? COLLATE NOCASE")
            params.append(region)
        if status_code is not None:
            conditions.append("t.status_code = ?")
            params.append(status_code)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += f" ORDER BY {order}, t.external_code"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self._fetch_all_as_dicts(query, tuple(params))
        items = self._load_items([row["external_code"] for row in rows])
        return [_tender_from_row(row, items.get(row["external_code"], [])) for row in rows]

    def count(self) -> int:
        return int(self._fetch_scalar("SELECT COUNT(*) FROM tenders") or 0)

    def _load_items(self, codes: list[str]) -> dict[str, list[LineItem]]:
        if not codes:
            return {}
        placeholders = ",".join("?" * len(codes))
        rows = self._fetch_all_as_dicts(
            f"""
            SELECT tender_code, product_code, product_name, description,
                   quantity, unit_of_measure
            FROM tender_items
            WHERE tender_code IN ({placeholders})
            ORDER BY tender_code, position
            """,
            tuple(codes),
        )
        grouped: dict[str, list[LineItem]] = {}
        for row in rows:
            grouped.setdefault(row["tender_code"], []).append(
                LineItem(
                    product_name=row["product_name"],
                    product_code=row["product_code"],
                    description=row["description"],
                    quantity=row["quantity"],
                    unit_of_measure=row["unit_of_measure"],
                )
            )
        return grouped


def _tender_from_row(row: dict[str, Any], items: list[LineItem]) -> StoredTender:
    return StoredTender(
        external_code=row["external_code"],
        name=row["name"],
        description=row["description"],
        status_code=row["status_code"],
        close_date=parse_timestamp(row["close_date"]),
        publication_date=parse_timestamp(row["publication_date"]),
        region=row["region"],
        buyer_name=row["buyer_name"],
        buyer_rut=row["buyer_rut"],
        items=items,
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )
