"""Connection helpers for letterbox.db"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger("letterbox.db.conn")


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_connection(path: str | Path | None = None) -> sqlite3.Connection:
    """Return a SQLite connection with Row results and foreign keys enabled.

    If `path` is provided a connection to that file path is opened; otherwise
    an in-memory connection is returned. Exceptions are propagated after being
    logged.
    """
    try:
        if path:
            logger.debug("Opening SQLite connection to path: %s", path)
            conn = sqlite3.connect(str(path))
        else:
            logger.debug("Opening in-memory SQLite connection")
            conn = sqlite3.connect(":memory:")
    except Exception:
        logger.exception("Failed to open SQLite connection (path=%s)", path)
        raise
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection):
    """Commit the enclosed writes together, or roll them all back on error."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


__all__ = ["get_connection", "transaction", "now_iso"]
