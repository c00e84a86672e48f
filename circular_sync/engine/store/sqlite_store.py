"""Persist circulars and attachments to SQLite."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from ...infra.storage import SQLiteManager, StoreError
from ..reconciler import RemovalPlan
from ..records import Circular
from .base import DEFAULT_RECENT_WINDOW, BaseStore, PurgeResult, SyncResult

UPSERT_CIRCULAR = """
    INSERT INTO circolare (id, titolo, categoria, data, valida_fino, aggiunta_il)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        titolo = excluded.titolo,
        categoria = excluded.categoria,
        data = excluded.data,
        valida_fino = excluded.valida_fino
"""
INSERT_CIRCULAR = """
    INSERT OR IGNORE INTO circolare (id, titolo, categoria, data, valida_fino, aggiunta_il)
    VALUES (?, ?, ?, ?, ?, ?)
"""
UPSERT_ATTACHMENT = """
    INSERT INTO circolare_allegato (id_allegato, titolo, id_circolare)
    VALUES (?, ?, ?)
    ON CONFLICT(id_allegato) DO UPDATE SET titolo = excluded.titolo
"""
INSERT_ATTACHMENT = """
    INSERT OR IGNORE INTO circolare_allegato (id_allegato, titolo, id_circolare)
    VALUES (?, ?, ?)
"""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# Portal identifiers are unsigned 64-bit while SQLite INTEGER is signed, so the
# upper half of the range is stored in two's complement.
_SIGNED_LIMIT = 2**63
_UNSIGNED_SPAN = 2**64


def to_column(identifier: int) -> int:
    return identifier - _UNSIGNED_SPAN if identifier >= _SIGNED_LIMIT else identifier


def from_column(value: int) -> int:
    return value + _UNSIGNED_SPAN if value < 0 else value


class SQLiteCircularStore(BaseStore):
    """Apply extraction batches and removal plans inside single transactions."""

    def __init__(self, path: Path, manager: SQLiteManager | None = None) -> None:
        self.path = Path(path)
        self.manager = manager or SQLiteManager()

    def sync(
        self, circulars: Sequence[Circular], recent_window: int = DEFAULT_RECENT_WINDOW
    ) -> SyncResult:
        """Upsert the leading ``recent_window`` circulars, insert-if-absent the rest."""

        added_at = _utc_now()
        attachments = 0
        with self.manager.transaction(self.path) as conn:
            for index, circular in enumerate(circulars):
                recent = index < recent_window
                conn.execute(
                    UPSERT_CIRCULAR if recent else INSERT_CIRCULAR,
                    (
                        to_column(circular.id),
                        circular.title,
                        circular.category,
                        circular.published_date.isoformat(),
                        circular.valid_until_date.isoformat(),
                        added_at,
                    ),
                )
                for attachment in circular.attachments:
                    conn.execute(
                        UPSERT_ATTACHMENT if recent else INSERT_ATTACHMENT,
                        (to_column(attachment.id), attachment.title, to_column(circular.id)),
                    )
                    attachments += 1
        upserted = min(len(circulars), max(recent_window, 0))
        return SyncResult(
            upserted=upserted,
            inserted_only=len(circulars) - upserted,
            attachments=attachments,
        )

    def persisted_circular_ids(self) -> list[int]:
        return self._select_ids("SELECT id FROM circolare")

    def persisted_attachment_ids(self) -> list[int]:
        return self._select_ids("SELECT id_allegato FROM circolare_allegato")

    def purge(self, plan: RemovalPlan) -> PurgeResult:
        """Delete attachments first, then their owning circulars."""

        if plan.is_empty:
            return PurgeResult(circulars=0, attachments=0)
        removed_attachments = 0
        removed_circulars = 0
        with self.manager.transaction(self.path) as conn:
            for attachment_id in plan.attachment_ids:
                cursor = conn.execute(
                    "DELETE FROM circolare_allegato WHERE id_allegato = ?", (to_column(attachment_id),)
                )
                removed_attachments += cursor.rowcount
            for circular_id in plan.circular_ids:
                # Leftover attachments would block the circular delete through the foreign key
                cursor = conn.execute(
                    "DELETE FROM circolare_allegato WHERE id_circolare = ?", (to_column(circular_id),)
                )
                removed_attachments += cursor.rowcount
                cursor = conn.execute("DELETE FROM circolare WHERE id = ?", (to_column(circular_id),))
                removed_circulars += cursor.rowcount
        return PurgeResult(circulars=removed_circulars, attachments=removed_attachments)

    def recent(self, limit: int = 20) -> list[dict]:
        """Most recently published circulars, newest first."""

        conn = self.manager.connect(self.path)
        try:
            rows = conn.execute(
                "SELECT id, titolo, categoria, data, valida_fino, aggiunta_il FROM circolare "
                "ORDER BY data DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot read circulars: {exc}") from exc
        return [{**dict(row), "id": from_column(row["id"])} for row in rows]

    def ensure_schema(self) -> None:
        self.manager.connect(self.path)

    def close(self) -> None:
        self.manager.close(self.path)

    def _select_ids(self, query: str) -> list[int]:
        conn = self.manager.connect(self.path)
        try:
            ids = [from_column(row[0]) for row in conn.execute(query)]
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot read identifiers: {exc}") from exc
        # Column order is signed, so sort after mapping back
        return sorted(ids, reverse=True)


__all__ = ["SQLiteCircularStore", "from_column", "to_column"]
