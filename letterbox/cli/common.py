"""Shared helpers for letterbox CLI subcommand modules.

Centralize opening the archive database, building the Buttondown client
and recording maintenance runs.
"""
from __future__ import annotations

import logging
import sqlite3
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import requests

from letterbox import config

logger = logging.getLogger("letterbox.cli.common")


def get_conn() -> sqlite3.Connection:
    """Open the configured archive DB, creating the schema if needed."""
    from ..db import open_db

    return open_db(config.DB_PATH)


def get_session() -> requests.Session:
    """Create and return a new requests.Session for HTTP requests."""
    return requests.Session()


def require_api_key() -> str:
    """Return the Buttondown API key or exit with status 1 when it is missing."""
    api_key = config.get_api_key()
    if not api_key:
        logger.error("%s not found in environment", config.API_KEY_ENV)
        logger.error("Please create a .env file with your API key:")
        logger.error("  %s=your_key_here", config.API_KEY_ENV)
        sys.exit(1)
    return api_key


def get_client():
    from ..buttondown import ButtondownClient

    return ButtondownClient(require_api_key(), session=get_session())


def start_maintenance_run(conn: sqlite3.Connection, name: str, meta: Optional[Dict[str, Any]] = None) -> Tuple[Optional[str], Optional[int]]:
    """Log a maintenance run as started and return (started_iso, run_id).

    Failures are logged and (started, None) returned so callers can proceed.
    """
    from ..db import log_maintenance_run

    started = datetime.now(timezone.utc).isoformat()
    run_id = log_maintenance_run(conn, name, "started", started, None, None, meta or {})
    return started, run_id or None


def finalize_maintenance_run(conn: sqlite3.Connection, name: str, run_id: Optional[int], started: Optional[str], status: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Record the outcome of a maintenance run. Safe to call with a None run_id."""
    from ..db import log_maintenance_run

    if not run_id:
        return
    finished = datetime.now(timezone.utc).isoformat()
    duration = None
    if started:
        duration = (datetime.fromisoformat(finished) - datetime.fromisoformat(started)).total_seconds()
    log_maintenance_run(conn, name, status, started, finished, duration, details or {})
