"""Schema creation and database-level statistics."""

import logging
import sqlite3
from pathlib import Path

from .. import config
from .conn import get_connection, now_iso

logger = logging.getLogger("letterbox.db.schema")


def init_db(conn: sqlite3.Connection):
    """Initialize the database schema. Safe to run on an existing database."""
    logger.debug("Initializing database schema")
    cur = conn.cursor()
    cur.executescript(
        """
        CREATE TABLE IF NOT EXISTS emails (
            id TEXT PRIMARY KEY,
            subject TEXT NOT NULL,
            body TEXT NOT NULL,
            normalized_markdown TEXT,
            status TEXT NOT NULL,
            publish_date TEXT,
            creation_date TEXT NOT NULL,
            modification_date TEXT NOT NULL,
            slug TEXT,
            description TEXT,
            image_url TEXT,
            canonical_url TEXT,
            email_type TEXT,
            secondary_id INTEGER,
            absolute_url TEXT,
            metadata TEXT,
            featured INTEGER DEFAULT 0,
            author TEXT,
            synced_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_emails_modification_date ON emails(modification_date);
        CREATE INDEX IF NOT EXISTS idx_emails_publish_date ON emails(publish_date);
        CREATE INDEX IF NOT EXISTS idx_emails_status ON emails(status);
        CREATE INDEX IF NOT EXISTS idx_emails_secondary_id ON emails(secondary_id);

        CREATE TABLE IF NOT EXISTS attachments (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            file_url TEXT NOT NULL,
            local_path TEXT,
            creation_date TEXT NOT NULL,
            file_size INTEGER,
            mime_type TEXT,
            synced_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_attachments_name ON attachments(name);

        CREATE TABLE IF NOT EXISTS email_attachments (
            email_id TEXT NOT NULL,
            attachment_id TEXT NOT NULL,
            PRIMARY KEY (email_id, attachment_id),
            FOREIGN KEY (email_id) REFERENCES emails(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS embedded_images (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email_id TEXT NOT NULL,
            original_url TEXT NOT NULL,
            image_data BLOB NOT NULL,
            mime_type TEXT NOT NULL,
            file_size INTEGER NOT NULL,
            width INTEGER,
            height INTEGER,
            downloaded_at TEXT NOT NULL,
            FOREIGN KEY (email_id) REFERENCES emails(id) ON DELETE CASCADE,
            UNIQUE(email_id, original_url)
        );

        CREATE INDEX IF NOT EXISTS idx_embedded_images_email_id ON embedded_images(email_id);
        CREATE INDEX IF NOT EXISTS idx_embedded_images_url ON embedded_images(original_url);

        CREATE TABLE IF NOT EXISTS sync_metadata (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

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

        CREATE TABLE IF NOT EXISTS maintenance_runs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            command TEXT NOT NULL,
            status TEXT,
            started TEXT,
            finished TEXT,
            duration REAL,
            details TEXT
        );
        """
    )
    # author index is created after the column exists (older DBs gain it in migrate_db)
    cols = {r[1] for r in conn.execute("PRAGMA table_info(emails)").fetchall()}
    if "author" in cols:
        cur.execute("CREATE INDEX IF NOT EXISTS idx_emails_author ON emails(author)")

    now = now_iso()
    cur.execute(
        "INSERT OR IGNORE INTO sync_metadata (key, value, updated_at) VALUES (?, ?, ?)",
        ("schema_version", str(config.SCHEMA_VERSION), now),
    )
    cur.execute(
        "INSERT OR IGNORE INTO sync_metadata (key, value, updated_at) VALUES (?, ?, ?)",
        ("last_sync_status", "never", now),
    )
    conn.commit()
    logger.debug("initialized database")


def open_db(path: str | Path | None = None) -> sqlite3.Connection:
    """Open the archive database, creating the data directory and schema if needed."""
    db_path = Path(path) if path else Path(config.DB_PATH)
    if not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Created data directory: %s", db_path.parent)
    is_new = not db_path.exists()
    conn = get_connection(db_path)
    if is_new:
        logger.info("Initializing new database at %s", db_path)
    init_db(conn)
    return conn


def get_database_stats(conn: sqlite3.Connection) -> dict:
    """Return email/attachment totals and the last sync date and status."""
    total_emails = conn.execute("SELECT COUNT(*) FROM emails").fetchone()[0]
    total_attachments = conn.execute("SELECT COUNT(*) FROM attachments").fetchone()[0]
    meta = {
        r[0]: r[1]
        for r in conn.execute(
            "SELECT key, value FROM sync_metadata WHERE key IN ('last_sync_date', 'last_sync_status')"
        ).fetchall()
    }
    return {
        "total_emails": total_emails,
        "total_attachments": total_attachments,
        "last_sync_date": meta.get("last_sync_date"),
        "last_sync_status": meta.get("last_sync_status", "never"),
    }


__all__ = ["init_db", "open_db", "get_database_stats"]
