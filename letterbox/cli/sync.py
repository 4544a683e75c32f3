import logging
from typing import Any

from letterbox import http

from .common import get_client, get_conn

logger = logging.getLogger("letterbox.cli.sync")


def cmd_sync(args: Any) -> None:
    """Pull emails from Buttondown into the archive."""
    from ..sync import SyncEngine

    client = get_client()
    conn = get_conn()
    try:
        engine = SyncEngine(client, conn, image_session=client.session)
        count = engine.sync(
            full=getattr(args, "full", False),
            dry_run=getattr(args, "dry_run", False),
            download_images=getattr(args, "download_images", False),
        )
        if getattr(args, "dry_run", False):
            print(f"dry-run: fetched {count} emails, nothing written")
        else:
            print(f"synced {count} emails")
        logger.debug("HTTP metrics: %s", http.metrics)
    finally:
        conn.close()


def cmd_sync_attachments(args: Any) -> None:
    from ..sync import SyncEngine

    client = get_client()
    conn = get_conn()
    try:
        count = SyncEngine(client, conn).sync_attachments(dry_run=getattr(args, "dry_run", False))
        print(f"synced {count} attachments")
    finally:
        conn.close()


def cmd_download_images(args: Any) -> None:
    """Backfill embedded images for emails already in the archive."""
    from ..sync import SyncEngine

    client = get_client()
    conn = get_conn()
    try:
        summary = SyncEngine(client, conn, image_session=client.session).download_images_for_existing_emails(
            dry_run=getattr(args, "dry_run", False)
        )
        print(
            f"processed {summary['emails_processed']} emails, downloaded {summary['images_downloaded']} images "
            f"({summary['emails_skipped']} skipped, {summary['emails_failed']} failed)"
        )
    finally:
        conn.close()
