"""Schema migrations for older letterbox databases."""

import logging
import sqlite3

from .. import config
from .conn import now_iso

logger = logging.getLogger("letterbox.db.migrations")


def _columns(conn: sqlite3.Connection, table: str) -> set:
    return {r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def migrate_db(conn: sqlite3.Connection) -> dict:
    """Bring an existing database up to ``config.SCHEMA_VERSION``.

    Adds the ``normalized_markdown`` and ``author`` columns when missing,
    creates the tag tables and records the new schema version. Returns a
    summary of what changed.
    """
    result = {"added_columns": [], "created_tables": [], "schema_version": config.SCHEMA_VERSION}
    cur = conn.cursor()

    cols = _columns(conn, "emails")
    for column in ("normalized_markdown", "author"):
        if column not in cols:
            cur.execute(f"ALTER TABLE emails ADD COLUMN {column} TEXT")
            result["added_columns"].append(column)
            logger.info("Added %s column to emails table", column)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_emails_author ON emails(author)")

    existing = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()}
    if "tags" not in existing:
        result["created_tables"].append("tags")
    if "email_tags" not in existing:
        result["created_tables"].append("email_tags")
    cur.executescript(
        """
        CREATE TABLE IF NOT EXISTS tags (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            normalized_name TEXT NOT NULL,
            created_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_tags_normalized_name ON tags(normalized_name);
        CREATE TABLE IF NOT EXISTS email_tags (
            email_id TEXT NOT NULL,
            tag_id INTEGER NOT NULL,
            PRIMARY KEY (email_id, tag_id),
            FOREIGN KEY (email_id) REFERENCES emails(id) ON DELETE CASCADE,
            FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
        );
        CREATE INDEX IF NOT EXISTS idx_email_tags_tag_id ON email_tags(tag_id);
        """
    )
    for table in result["created_tables"]:
        logger.info("Created %s table", table)

    cur.execute(
        """
        INSERT INTO sync_metadata (key, value, updated_at) VALUES ('schema_version', ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """,
        (str(config.SCHEMA_VERSION), now_iso()),
    )
    conn.commit()
    logger.info("Database schema at version %s", config.SCHEMA_VERSION)
    return result


__all__ = ["migrate_db"]
