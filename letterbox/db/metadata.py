"""Key/value sync metadata (last sync date, status, schema version)."""

import sqlite3
from typing import Optional

from .conn import now_iso


def get_metadata(conn: sqlite3.Connection, key: str) -> Optional[str]:
    row = conn.execute("SELECT value FROM sync_metadata WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def get_last_sync_date(conn: sqlite3.Connection) -> Optional[str]:
    return get_metadata(conn, "last_sync_date")


def update_sync_metadata(conn: sqlite3.Connection, key: str, value: str, commit: bool = True) -> None:
    conn.execute(
        """
        INSERT INTO sync_metadata (key, value, updated_at) VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """,
        (key, str(value), now_iso()),
    )
    if commit:
        conn.commit()


__all__ = ["get_metadata", "get_last_sync_date", "update_sync_metadata"]
