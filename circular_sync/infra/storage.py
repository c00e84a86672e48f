"""SQLite connection management for the circulars store."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Dict, Iterator

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS circolare (
        id          INTEGER PRIMARY KEY,
        titolo      TEXT NOT NULL,
        categoria   TEXT NOT NULL,
        data        TEXT NOT NULL,
        valida_fino TEXT NOT NULL,
        aggiunta_il TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS circolare_allegato (
        id_allegato  INTEGER PRIMARY KEY,
        titolo       TEXT NOT NULL,
        id_circolare INTEGER NOT NULL REFERENCES circolare(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_allegato_circolare ON circolare_allegato(id_circolare)",
)


class StoreError(RuntimeError):
    """Raised when the store cannot be reached or a transaction fails."""


class SQLiteManager:
    """Manage SQLite connections with schema guarantees and explicit transactions."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path = Path(path)
        with self._lock:
            if path not in self._connections:
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                    # Autocommit mode: transactions are opened explicitly by ``transaction``
                    conn = sqlite3.connect(path, isolation_level=None)
                    conn.row_factory = sqlite3.Row
                    conn.execute("PRAGMA foreign_keys = ON")
                    self._ensure_schema(conn)
                except (OSError, sqlite3.Error) as exc:
                    raise StoreError(f"Cannot open database {path}: {exc}") from exc
                self._connections[path] = conn
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        for statement in SCHEMA_STATEMENTS:
            conn.execute(statement)

    @contextmanager
    def transaction(self, path: Path) -> Iterator[sqlite3.Connection]:
        """Run the block inside BEGIN/COMMIT, rolling back on any error."""

        conn = self.connect(path)
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open transaction on {path}: {exc}") from exc
        try:
            yield conn
        except BaseException as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            # Unbindable parameters surface as OverflowError rather than sqlite3.Error
            if isinstance(exc, (sqlite3.Error, OverflowError)):
                raise StoreError(f"Transaction rolled back: {exc}") from exc
            raise
        else:
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise StoreError(f"Commit failed: {exc}") from exc

    def close(self, path: Path) -> None:
        with self._lock:
            conn = self._connections.pop(Path(path), None)
        if conn is not None:
            conn.close()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


__all__ = ["SCHEMA_STATEMENTS", "SQLiteManager", "StoreError"]
