"""Attachment metadata and email/attachment link queries."""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from .conn import now_iso

logger = logging.getLogger("letterbox.db.attachments")


def upsert_attachment(conn: sqlite3.Connection, attachment: Dict[str, Any]) -> None:
    conn.execute(
        """
        INSERT INTO attachments (id, name, file_url, creation_date, synced_at)
        VALUES (:id, :name, :file_url, :creation_date, :synced_at)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            file_url = excluded.file_url,
            synced_at = excluded.synced_at
        """,
        {
            "id": attachment["id"],
            "name": attachment.get("name") or "",
            "file_url": attachment.get("file") or "",
            "creation_date": attachment.get("creation_date") or now_iso(),
            "synced_at": now_iso(),
        },
    )
    logger.debug("Upserted attachment: %s (%s)", attachment.get("name"), attachment["id"])


def link_email_attachment(conn: sqlite3.Connection, email_id: str, attachment_id: str) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO email_attachments (email_id, attachment_id) VALUES (?, ?)",
        (email_id, attachment_id),
    )


def get_email_attachments(conn: sqlite3.Connection, email_id: str) -> List[str]:
    rows = conn.execute(
        "SELECT attachment_id FROM email_attachments WHERE email_id = ? ORDER BY attachment_id",
        (email_id,),
    ).fetchall()
    return [r[0] for r in rows]


def get_attachment(conn: sqlite3.Connection, attachment_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT id, name, file_url AS file, creation_date FROM attachments WHERE id = ?",
        (attachment_id,),
    ).fetchone()
    return dict(row) if row else None


def get_all_attachments(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM attachments ORDER BY creation_date DESC").fetchall()
    return [dict(r) for r in rows]


__all__ = [
    "upsert_attachment",
    "link_email_attachment",
    "get_email_attachments",
    "get_attachment",
    "get_all_attachments",
]
