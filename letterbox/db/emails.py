"""Email queries: upsert, lookups, markdown/author updates and reader queries.

Write helpers leave committing to the caller so several writes can share
one ``transaction()``.
"""

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from .. import config
from .conn import now_iso

logger = logging.getLogger("letterbox.db.emails")

SUMMARY_COLUMNS = (
    "id, subject, description, publish_date, creation_date, slug, image_url, status, secondary_id"
)


def _published_clause() -> str:
    statuses = ", ".join(f"'{s}'" for s in config.PUBLISHED_STATUSES)
    return f"status IN ({statuses}) AND publish_date IS NOT NULL"


def upsert_email(conn: sqlite3.Connection, email: Dict[str, Any], normalized_markdown: Optional[str] = None, author: Optional[str] = None) -> bool:
    """Insert an email or update the stored copy.

    An existing row is only overwritten when the incoming
    ``modification_date`` is not older than the stored one. A ``None``
    author keeps whatever author the row already has. Returns False when
    the stored row was newer and nothing was written.
    """
    metadata = email.get("metadata")
    cur = conn.execute(
        """
        INSERT INTO emails (
            id, subject, body, normalized_markdown, status, publish_date,
            creation_date, modification_date, slug, description,
            image_url, canonical_url, email_type, secondary_id,
            absolute_url, metadata, featured, author, synced_at
        ) VALUES (
            :id, :subject, :body, :normalized_markdown, :status, :publish_date,
            :creation_date, :modification_date, :slug, :description,
            :image_url, :canonical_url, :email_type, :secondary_id,
            :absolute_url, :metadata, :featured, :author, :synced_at
        )
        ON CONFLICT(id) DO UPDATE SET
            subject = excluded.subject,
            body = excluded.body,
            normalized_markdown = excluded.normalized_markdown,
            status = excluded.status,
            publish_date = excluded.publish_date,
            modification_date = excluded.modification_date,
            slug = excluded.slug,
            description = excluded.description,
            image_url = excluded.image_url,
            canonical_url = excluded.canonical_url,
            email_type = excluded.email_type,
            secondary_id = excluded.secondary_id,
            absolute_url = excluded.absolute_url,
            metadata = excluded.metadata,
            featured = excluded.featured,
            author = COALESCE(excluded.author, emails.author),
            synced_at = excluded.synced_at
        WHERE emails.modification_date <= excluded.modification_date
        """,
        {
            "id": email["id"],
            "subject": email.get("subject") or "",
            "body": email.get("body") or "",
            "normalized_markdown": normalized_markdown or None,
            "status": email.get("status") or "draft",
            "publish_date": email.get("publish_date") or None,
            "creation_date": email.get("creation_date") or email.get("modification_date") or now_iso(),
            "modification_date": email.get("modification_date") or email.get("creation_date") or now_iso(),
            "slug": email.get("slug") or None,
            "description": email.get("description"),
            "image_url": email.get("image"),
            "canonical_url": email.get("canonical_url"),
            "email_type": email.get("email_type") or "public",
            "secondary_id": email.get("secondary_id") or None,
            "absolute_url": email.get("absolute_url"),
            "metadata": json.dumps(metadata) if metadata else None,
            "featured": 1 if email.get("featured") else 0,
            "author": author,
            "synced_at": now_iso(),
        },
    )
    if cur.rowcount == 0:
        logger.debug("Skipped stale payload for email %s", email["id"])
        return False
    logger.debug("Upserted email: %s (%s)", email.get("subject"), email["id"])
    return True


def email_exists(conn: sqlite3.Connection, email_id: str) -> bool:
    return conn.execute("SELECT 1 FROM emails WHERE id = ? LIMIT 1", (email_id,)).fetchone() is not None


def get_email(conn: sqlite3.Connection, email_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM emails WHERE id = ?", (email_id,)).fetchone()
    return dict(row) if row else None


def get_all_emails(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    return [dict(r) for r in conn.execute("SELECT * FROM emails ORDER BY publish_date DESC").fetchall()]


def get_email_with_local_images(conn: sqlite3.Connection, email_id: str) -> Optional[Dict[str, Any]]:
    """Return ``{"email": row, "body": text}`` preferring normalized markdown."""
    email = get_email(conn, email_id)
    if not email:
        return None
    return {"email": email, "body": email.get("normalized_markdown") or email.get("body")}


def update_normalized_markdown(conn: sqlite3.Connection, email_id: str, normalized_markdown: str) -> None:
    conn.execute("UPDATE emails SET normalized_markdown = ? WHERE id = ?", (normalized_markdown, email_id))


def get_emails_without_normalized_markdown(conn: sqlite3.Connection, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    if limit:
        rows = conn.execute("SELECT * FROM emails WHERE normalized_markdown IS NULL LIMIT ?", (int(limit),)).fetchall()
    else:
        rows = conn.execute("SELECT * FROM emails WHERE normalized_markdown IS NULL").fetchall()
    return [dict(r) for r in rows]


def count_emails_without_normalized_markdown(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM emails WHERE normalized_markdown IS NULL").fetchone()[0]


def update_author(conn: sqlite3.Connection, email_id: str, author: Optional[str]) -> None:
    conn.execute("UPDATE emails SET author = ? WHERE id = ?", (author, email_id))
    logger.debug("Updated author for email %s: %s", email_id, author or "primary")


def get_emails_by_author(conn: sqlite3.Connection, author: Optional[str]) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM emails WHERE author IS ? ORDER BY publish_date DESC", (author,)).fetchall()
    return [dict(r) for r in rows]


def get_all_authors(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT author, COUNT(*) AS count FROM emails GROUP BY author ORDER BY count DESC"
    ).fetchall()
    return [dict(r) for r in rows]


# Reader / site queries


def list_published_emails(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    rows = conn.execute(
        f"SELECT {SUMMARY_COLUMNS} FROM emails WHERE {_published_clause()} ORDER BY publish_date DESC"
    ).fetchall()
    return [dict(r) for r in rows]


def get_published_emails_full(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    rows = conn.execute(
        f"SELECT * FROM emails WHERE {_published_clause()} ORDER BY publish_date DESC"
    ).fetchall()
    return [dict(r) for r in rows]


def search_published_emails(conn: sqlite3.Connection, query: str) -> List[Dict[str, Any]]:
    """Case-insensitive substring search over subject, description and bodies."""
    term = f"%{query.strip()}%"
    rows = conn.execute(
        f"""
        SELECT {SUMMARY_COLUMNS}, body, normalized_markdown
        FROM emails
        WHERE {_published_clause()}
          AND (subject LIKE ? OR description LIKE ? OR body LIKE ? OR normalized_markdown LIKE ?)
        ORDER BY publish_date DESC
        """,
        (term, term, term, term),
    ).fetchall()
    return [dict(r) for r in rows]


def get_random_published_email(conn: sqlite3.Connection) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        f"SELECT {SUMMARY_COLUMNS} FROM emails WHERE {_published_clause()} ORDER BY RANDOM() LIMIT 1"
    ).fetchone()
    return dict(row) if row else None


def get_navigation(conn: sqlite3.Connection, email_id: str) -> Optional[Dict[str, Any]]:
    """Return the previous (older) and next (newer) published emails, or None if unknown."""
    current = conn.execute("SELECT publish_date FROM emails WHERE id = ?", (email_id,)).fetchone()
    if current is None:
        return None
    publish_date = current["publish_date"]
    if publish_date is None:
        return {"prev": None, "next": None}
    prev_row = conn.execute(
        f"""
        SELECT id, subject, publish_date FROM emails
        WHERE {_published_clause()} AND publish_date < ?
        ORDER BY publish_date DESC LIMIT 1
        """,
        (publish_date,),
    ).fetchone()
    next_row = conn.execute(
        f"""
        SELECT id, subject, publish_date FROM emails
        WHERE {_published_clause()} AND publish_date > ?
        ORDER BY publish_date ASC LIMIT 1
        """,
        (publish_date,),
    ).fetchone()
    return {
        "prev": dict(prev_row) if prev_row else None,
        "next": dict(next_row) if next_row else None,
    }


__all__ = [
    "upsert_email",
    "email_exists",
    "get_email",
    "get_all_emails",
    "get_email_with_local_images",
    "update_normalized_markdown",
    "get_emails_without_normalized_markdown",
    "count_emails_without_normalized_markdown",
    "update_author",
    "get_emails_by_author",
    "get_all_authors",
    "list_published_emails",
    "get_published_emails_full",
    "search_published_emails",
    "get_random_published_email",
    "get_navigation",
]
