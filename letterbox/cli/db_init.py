import logging
from typing import Any

from letterbox import config

logger = logging.getLogger("letterbox.cli.db_init")


def cmd_db_init(args: Any) -> None:
    """Initialize the database schema.

    Args:
        args: argparse namespace (unused)
    """
    from ..db import open_db

    try:
        conn = open_db(config.DB_PATH)
    except Exception:
        logger.exception("db-init failed")
        raise
    conn.close()
    print(f"Database initialized at {config.DB_PATH}")
