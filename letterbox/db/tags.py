"""Tag storage: hand-managed topic labels attached to emails."""

import logging
import re
import sqlite3
from typing import Any, Dict, Iterable, List

from .conn import now_iso

logger = logging.getLogger("letterbox.db.tags")


def normalize_tag_name(tag_name: str) -> str:
    """Lowercase, hyphenate whitespace and drop characters outside ``[a-z0-9-_]``.

    >>> normalize_tag_name("  Machine Learning! ")
    'machine-learning'
    """
    name = tag_name.lower().strip()
    name = re.sub(r"\s+", "-", name)
    name = re.sub(r"[^a-z0-9\-_]", "", name)
    name = re.sub(r"-+", "-", name)
    return name.strip("-")


def get_or_create_tag(conn: sqlite3.Connection, tag_name: str) -> Dict[str, Any]:
    normalized = normalize_tag_name(tag_name)
    row = conn.execute("SELECT * FROM tags WHERE normalized_name = ?", (normalized,)).fetchone()
    if row:
        return dict(row)
    created_at = now_iso()
    cur = conn.execute(
        "INSERT INTO tags (name, normalized_name, created_at) VALUES (?, ?, ?)",
        (tag_name, normalized, created_at),
    )
    return {"id": cur.lastrowid, "name": tag_name, "normalized_name": normalized, "created_at": created_at}


def add_tag_to_email(conn: sqlite3.Connection, email_id: str, tag_name: str) -> Dict[str, Any]:
    tag = get_or_create_tag(conn, tag_name)
    conn.execute("INSERT OR IGNORE INTO email_tags (email_id, tag_id) VALUES (?, ?)", (email_id, tag["id"]))
    return tag


def add_tags_to_email(conn: sqlite3.Connection, email_id: str, tag_names: Iterable[str]) -> None:
    names = [t for t in tag_names if t and normalize_tag_name(t)]
    for name in names:
        add_tag_to_email(conn, email_id, name)
    logger.debug("Added %d tags to email %s: %s", len(names), email_id, ", ".join(names))


def remove_tag_from_email(conn: sqlite3.Connection, email_id: str, tag_name: str) -> bool:
    cur = conn.execute(
        """
        DELETE FROM email_tags
        WHERE email_id = ?
          AND tag_id IN (SELECT id FROM tags WHERE normalized_name = ?)
        """,
        (email_id, normalize_tag_name(tag_name)),
    )
    return cur.rowcount > 0


def clear_email_tags(conn: sqlite3.Connection, email_id: str) -> None:
    conn.execute("DELETE FROM email_tags WHERE email_id = ?", (email_id,))


def set_email_tags(conn: sqlite3.Connection, email_id: str, tag_names: Iterable[str]) -> None:
    clear_email_tags(conn, email_id)
    add_tags_to_email(conn, email_id, tag_names)


def get_email_tags(conn: sqlite3.Connection, email_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT t.* FROM tags t
        JOIN email_tags et ON t.id = et.tag_id
        WHERE et.email_id = ?
        ORDER BY t.name
        """,
        (email_id,),
    ).fetchall()
    return [dict(r) for r in rows]


def get_emails_by_tag(conn: sqlite3.Connection, tag_name: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT e.* FROM emails e
        JOIN email_tags et ON e.id = et.email_id
        JOIN tags t ON et.tag_id = t.id
        WHERE t.normalized_name = ?
        ORDER BY e.publish_date DESC
        """,
        (normalize_tag_name(tag_name),),
    ).fetchall()
    return [dict(r) for r in rows]


def get_all_tags_with_counts(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT t.*, COUNT(et.email_id) AS email_count
        FROM tags t
        LEFT JOIN email_tags et ON t.id = et.tag_id
        GROUP BY t.id
        ORDER BY email_count DESC, t.name
        """
    ).fetchall()
    return [dict(r) for r in rows]


def get_all_tags(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    return [dict(r) for r in conn.execute("SELECT * FROM tags ORDER BY name").fetchall()]


def delete_tag(conn: sqlite3.Connection, tag_id: int) -> None:
    conn.execute("DELETE FROM email_tags WHERE tag_id = ?", (tag_id,))
    conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
    logger.debug("Deleted tag %s", tag_id)


def merge_tags(conn: sqlite3.Connection, source_tag_id: int, target_tag_id: int) -> None:
    """Move every email from the source tag onto the target tag, then drop the source."""
    conn.execute(
        """
        UPDATE email_tags SET tag_id = ?
        WHERE tag_id = ?
          AND email_id NOT IN (SELECT email_id FROM email_tags WHERE tag_id = ?)
        """,
        (target_tag_id, source_tag_id, target_tag_id),
    )
    delete_tag(conn, source_tag_id)
    logger.info("Merged tag %s into %s and deleted source", source_tag_id, target_tag_id)


def search_tags(conn: sqlite3.Connection, pattern: str) -> List[Dict[str, Any]]:
    """Match tags against a SQL LIKE pattern on either name column."""
    rows = conn.execute(
        "SELECT * FROM tags WHERE name LIKE ? OR normalized_name LIKE ? ORDER BY name",
        (pattern, pattern),
    ).fetchall()
    return [dict(r) for r in rows]


def get_tag_stats(conn: sqlite3.Connection) -> Dict[str, Any]:
    total_tags = conn.execute("SELECT COUNT(*) FROM tags").fetchone()[0]
    total_email_tags = conn.execute("SELECT COUNT(*) FROM email_tags").fetchone()[0]
    avg_tags, max_tags = conn.execute(
        """
        SELECT AVG(tag_count), MAX(tag_count)
        FROM (SELECT COUNT(*) AS tag_count FROM email_tags GROUP BY email_id)
        """
    ).fetchone()
    return {
        "totalTags": total_tags,
        "totalEmailTags": total_email_tags,
        "avgTagsPerEmail": avg_tags or 0,
        "maxTagsPerEmail": max_tags or 0,
    }


__all__ = [
    "normalize_tag_name",
    "get_or_create_tag",
    "add_tag_to_email",
    "add_tags_to_email",
    "remove_tag_from_email",
    "clear_email_tags",
    "set_email_tags",
    "get_email_tags",
    "get_emails_by_tag",
    "get_all_tags_with_counts",
    "get_all_tags",
    "delete_tag",
    "merge_tags",
    "search_tags",
    "get_tag_stats",
]
