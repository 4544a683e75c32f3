"""Embedded image storage queries."""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from .conn import now_iso

logger = logging.getLogger("letterbox.db.images")


def store_embedded_image(conn: sqlite3.Connection, email_id: str, image) -> int:
    """Store (or replace) an image for an email and return its row id.

    `image` is any object with ``url``, ``data``, ``mime_type``,
    ``file_size``, ``width`` and ``height`` attributes
    (see :class:`letterbox.images.EmbeddedImage`).
    """
    conn.execute(
        """
        INSERT INTO embedded_images (
            email_id, original_url, image_data, mime_type, file_size,
            width, height, downloaded_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(email_id, original_url) DO UPDATE SET
            image_data = excluded.image_data,
            mime_type = excluded.mime_type,
            file_size = excluded.file_size,
            width = excluded.width,
            height = excluded.height,
            downloaded_at = excluded.downloaded_at
        """,
        (
            email_id,
            image.url,
            sqlite3.Binary(image.data),
            image.mime_type,
            image.file_size,
            image.width or None,
            image.height or None,
            now_iso(),
        ),
    )
    row = conn.execute(
        "SELECT id FROM embedded_images WHERE email_id = ? AND original_url = ?",
        (email_id, image.url),
    ).fetchone()
    image_id = int(row[0])
    logger.debug("Stored embedded image: %s (%d bytes) - ID: %d", image.url, image.file_size, image_id)
    return image_id


def get_embedded_images(conn: sqlite3.Connection, email_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT id, original_url, image_data, mime_type, file_size, width, height
        FROM embedded_images WHERE email_id = ? ORDER BY id
        """,
        (email_id,),
    ).fetchall()
    return [dict(r) for r in rows]


def get_embedded_image_by_id(conn: sqlite3.Connection, image_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        """
        SELECT id, email_id, original_url, image_data, mime_type, file_size, width, height
        FROM embedded_images WHERE id = ?
        """,
        (image_id,),
    ).fetchone()
    return dict(row) if row else None


def count_embedded_images(conn: sqlite3.Connection, email_id: str) -> int:
    return conn.execute("SELECT COUNT(*) FROM embedded_images WHERE email_id = ?", (email_id,)).fetchone()[0]


def get_embedded_images_size(conn: sqlite3.Connection, email_id: str) -> int:
    total = conn.execute("SELECT SUM(file_size) FROM embedded_images WHERE email_id = ?", (email_id,)).fetchone()[0]
    return total or 0


def get_all_embedded_images(conn: sqlite3.Connection, with_data: bool = False) -> List[Dict[str, Any]]:
    cols = "id, email_id, original_url, mime_type, file_size, width, height, downloaded_at"
    if with_data:
        cols += ", image_data"
    rows = conn.execute(f"SELECT {cols} FROM embedded_images ORDER BY file_size DESC").fetchall()
    return [dict(r) for r in rows]


def get_large_images(conn: sqlite3.Connection, min_size_bytes: int = 1_000_000) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT ei.id, ei.email_id, e.subject AS email_subject, ei.original_url, ei.mime_type, ei.file_size
        FROM embedded_images ei
        JOIN emails e ON ei.email_id = e.id
        WHERE ei.file_size > ?
        ORDER BY ei.file_size DESC
        """,
        (min_size_bytes,),
    ).fetchall()
    return [dict(r) for r in rows]


def get_images_by_type(conn: sqlite3.Connection, mime_type: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT ei.id, ei.email_id, e.subject AS email_subject, ei.file_size
        FROM embedded_images ei
        JOIN emails e ON ei.email_id = e.id
        WHERE ei.mime_type = ?
        ORDER BY ei.file_size DESC
        """,
        (mime_type,),
    ).fetchall()
    return [dict(r) for r in rows]


def delete_embedded_image(conn: sqlite3.Connection, image_id: int) -> None:
    conn.execute("DELETE FROM embedded_images WHERE id = ?", (image_id,))
    logger.info("Deleted embedded image: %s", image_id)


def get_total_image_storage(conn: sqlite3.Connection) -> Dict[str, Any]:
    total_images, total_bytes = conn.execute(
        "SELECT COUNT(*), SUM(file_size) FROM embedded_images"
    ).fetchone()
    total_bytes = total_bytes or 0
    return {
        "total_images": total_images,
        "total_bytes": total_bytes,
        "total_mb": total_bytes / 1024 / 1024,
    }


def get_emails_with_image_stats(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT e.id AS email_id, e.subject, COUNT(ei.id) AS image_count,
               COALESCE(SUM(ei.file_size), 0) AS total_size
        FROM emails e
        INNER JOIN embedded_images ei ON e.id = ei.email_id
        GROUP BY e.id, e.subject
        ORDER BY total_size DESC
        """
    ).fetchall()
    return [dict(r) for r in rows]


__all__ = [
    "store_embedded_image",
    "get_embedded_images",
    "get_embedded_image_by_id",
    "count_embedded_images",
    "get_embedded_images_size",
    "get_all_embedded_images",
    "get_large_images",
    "get_images_by_type",
    "delete_embedded_image",
    "get_total_image_storage",
    "get_emails_with_image_stats",
]
