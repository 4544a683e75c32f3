"""Maintenance helpers: VACUUM, run logging and space analysis."""

import json
import logging
import sqlite3

logger = logging.getLogger("letterbox.db.maintenance")

ANALYZED_TABLES = (
    "emails",
    "attachments",
    "email_attachments",
    "embedded_images",
    "sync_metadata",
    "tags",
    "email_tags",
)


def page_stats(conn: sqlite3.Connection) -> dict:
    page_count = conn.execute("PRAGMA page_count").fetchone()[0]
    page_size = conn.execute("PRAGMA page_size").fetchone()[0]
    free_pages = conn.execute("PRAGMA freelist_count").fetchone()[0]
    return {
        "page_count": page_count,
        "page_size": page_size,
        "free_pages": free_pages,
        "size_bytes": page_count * page_size,
        "wasted_bytes": free_pages * page_size,
    }


def vacuum_db(conn: sqlite3.Connection) -> dict:
    """Run VACUUM and return page statistics from before and after.

    The returned dict has ``ok`` False when VACUUM itself failed.
    """
    before = page_stats(conn)
    try:
        conn.commit()
        conn.execute("VACUUM")
        logger.info("Database vacuumed")
        ok = True
    except Exception:
        logger.exception("VACUUM failed")
        ok = False
    after = page_stats(conn)
    return {
        "ok": ok,
        "before": before,
        "after": after,
        "saved_bytes": before["size_bytes"] - after["size_bytes"],
    }


def log_maintenance_run(
    conn: sqlite3.Connection,
    command: str,
    status: str,
    started: str | None = None,
    finished: str | None = None,
    duration: float | None = None,
    details: dict | None = None,
) -> int:
    try:
        details_json = json.dumps(details, default=str) if details is not None else None
        cur = conn.execute(
            "INSERT INTO maintenance_runs (command, status, started, finished, duration, details) VALUES (?, ?, ?, ?, ?, ?)",
            (command, status, started, finished, duration, details_json),
        )
        conn.commit()
        return int(cur.lastrowid or 0)
    except Exception:
        logger.exception("Failed to log maintenance run for command=%s", command)
        return 0


def analyze_space(conn: sqlite3.Connection) -> dict:
    """Summarize row counts per table plus body and image storage."""
    tables = {}
    for table in ANALYZED_TABLES:
        try:
            tables[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        except sqlite3.Error:
            logger.debug("Table %s not present", table)
    body_bytes, markdown_bytes = conn.execute(
        "SELECT COALESCE(SUM(LENGTH(body)), 0), COALESCE(SUM(LENGTH(normalized_markdown)), 0) FROM emails"
    ).fetchone()
    image_count, image_bytes = conn.execute(
        "SELECT COUNT(*), COALESCE(SUM(file_size), 0) FROM embedded_images"
    ).fetchone()
    by_type = [
        {"mime_type": r[0], "count": r[1], "bytes": r[2]}
        for r in conn.execute(
            "SELECT mime_type, COUNT(*), SUM(file_size) FROM embedded_images GROUP BY mime_type ORDER BY SUM(file_size) DESC"
        ).fetchall()
    ]
    return {
        "pages": page_stats(conn),
        "tables": tables,
        "body_bytes": body_bytes,
        "markdown_bytes": markdown_bytes,
        "image_count": image_count,
        "image_bytes": image_bytes,
        "images_by_type": by_type,
    }


__all__ = ["page_stats", "vacuum_db", "log_maintenance_run", "analyze_space"]
