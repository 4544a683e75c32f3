"""Sync orchestration: pull emails and attachments from Buttondown into SQLite.

`SyncEngine` wraps a `ButtondownClient` and an open database connection.
Each email is normalized to Markdown, tagged with its guest author and,
when requested, has its embedded images downloaded and its Markdown
pointed at the stored copies. The email row, its images and its
attachment links are written in one transaction.
"""
from __future__ import annotations

import logging
import sqlite3

from . import config
from .authors import extract_author
from .db import (
    count_embedded_images,
    get_all_emails,
    get_attachment,
    get_embedded_images,
    get_emails_without_normalized_markdown,
    get_last_sync_date,
    link_email_attachment,
    now_iso,
    store_embedded_image,
    transaction,
    update_author,
    update_normalized_markdown,
    update_sync_metadata,
    upsert_attachment,
    upsert_email,
)
from .images import build_local_image_map, download_all_images, replace_image_urls
from .normalize import normalize_to_markdown

logger = logging.getLogger("letterbox.sync")


def localize_markdown(conn: sqlite3.Connection, email_id: str, markdown: str) -> str:
    """Rewrite image URLs in `markdown` to the images stored for `email_id`."""
    rows = get_embedded_images(conn, email_id)
    if not rows or not markdown:
        return markdown
    return replace_image_urls(markdown, build_local_image_map(rows))


class SyncEngine:
    def __init__(self, client, conn: sqlite3.Connection, image_session=None):
        self.client = client
        self.conn = conn
        self.image_session = image_session

    def sync(self, full: bool = False, dry_run: bool = False, download_images: bool = False) -> int:
        """Fetch emails and store them; returns how many emails were handled.

        Incremental unless `full` or no previous sync is recorded. On failure
        ``last_sync_status`` is set to ``error`` and the exception re-raised.
        Nothing is written in a dry run.
        """
        started = now_iso()
        try:
            if not dry_run:
                update_sync_metadata(self.conn, "last_sync_status", "in_progress")

            last_sync_date = None if full else get_last_sync_date(self.conn)
            if last_sync_date:
                logger.info("Starting incremental sync (since %s)...", last_sync_date)
            else:
                logger.info("Starting full sync (this may take a while)...")

            count = self._sync_emails(last_sync_date, dry_run, download_images)
            logger.info("Synced %d emails", count)

            if not dry_run:
                update_sync_metadata(self.conn, "last_sync_date", started, commit=False)
                update_sync_metadata(self.conn, "last_sync_status", "success", commit=False)
                update_sync_metadata(self.conn, "total_emails_synced", str(count), commit=False)
                self.conn.commit()
            logger.info("Sync completed successfully")
            return count
        except Exception:
            logger.exception("Sync failed")
            if not dry_run:
                self.conn.rollback()
                update_sync_metadata(self.conn, "last_sync_status", "error")
            raise

    def _sync_emails(self, since: str | None, dry_run: bool, download_images: bool) -> int:
        params = {"status": list(config.SYNC_STATUSES)}
        if since:
            params["modification_date__start"] = since.split("T")[0]

        logger.info("Fetching emails from Buttondown (statuses: %s)...", ", ".join(config.SYNC_STATUSES))
        fetched = 0
        processed = 0
        for email in self.client.iter_emails(params):
            fetched += 1
            if fetched % 10 == 0:
                logger.info("Fetched %d emails...", fetched)
            if not dry_run:
                self.process_email(email, download_images)
                processed += 1
        return fetched if dry_run else processed

    def process_email(self, email: dict, download_images: bool = False) -> bool:
        """Store one API email. Returns False if a newer copy was already stored."""
        email_id = email["id"]
        images = self._download_email_images(email_id, email.get("body") or "") if download_images else {}

        normalized = normalize_to_markdown(email.get("body") or "")
        author = extract_author(email.get("subject"))

        with transaction(self.conn):
            if not upsert_email(self.conn, email, normalized, author):
                return False
            for image in images.values():
                store_embedded_image(self.conn, email_id, image)
            if download_images:
                localized = localize_markdown(self.conn, email_id, normalized)
                if localized != normalized:
                    update_normalized_markdown(self.conn, email_id, localized)
                    logger.debug("Localized image URLs in %r", email.get("subject"))
            for attachment_id in email.get("attachments") or []:
                self._link_attachment(email_id, attachment_id)
        return True

    def _download_email_images(self, email_id: str, body: str) -> dict:
        existing = count_embedded_images(self.conn, email_id)
        if existing > 0:
            logger.debug("Email %s already has %d images, skipping", email_id, existing)
            return {}
        try:
            return download_all_images(body, session=self.image_session)
        except Exception as e:
            logger.warning("Failed to download images for email %s: %s", email_id, e)
            return {}

    def _link_attachment(self, email_id: str, attachment_id: str) -> None:
        try:
            if get_attachment(self.conn, attachment_id) is None:
                logger.debug("Attachment %s not in database, will be synced later", attachment_id)
            link_email_attachment(self.conn, email_id, attachment_id)
        except sqlite3.Error as e:
            logger.warning("Failed to link attachment %s: %s", attachment_id, e)

    def sync_attachments(self, dry_run: bool = False) -> int:
        logger.info("Fetching attachments from Buttondown...")
        count = 0
        with transaction(self.conn):
            for attachment in self.client.iter_attachments():
                count += 1
                if count % 10 == 0:
                    logger.info("Fetched %d attachments...", count)
                if not dry_run:
                    upsert_attachment(self.conn, attachment)
        logger.info("Synced %d attachments", count)
        return count

    def download_images_for_existing_emails(self, dry_run: bool = False) -> dict:
        """Backfill embedded images for stored emails that have none yet."""
        emails = get_all_emails(self.conn)
        logger.info("Found %d emails to process", len(emails))
        summary = {"emails_processed": 0, "emails_skipped": 0, "images_downloaded": 0, "emails_failed": 0}

        for email in emails:
            existing = count_embedded_images(self.conn, email["id"])
            if existing > 0:
                logger.debug("Email %s already has %d images, skipping", email["id"], existing)
                summary["emails_skipped"] += 1
                continue
            summary["emails_processed"] += 1
            logger.info("[%d/%d] Processing: %s", summary["emails_processed"], len(emails), email["subject"])
            if dry_run:
                continue
            try:
                images = download_all_images(email["body"], session=self.image_session)
                if not images:
                    logger.debug("No images found in %r", email["subject"])
                    continue
                with transaction(self.conn):
                    for image in images.values():
                        store_embedded_image(self.conn, email["id"], image)
                    if email.get("normalized_markdown"):
                        localized = localize_markdown(self.conn, email["id"], email["normalized_markdown"])
                        update_normalized_markdown(self.conn, email["id"], localized)
                summary["images_downloaded"] += len(images)
                logger.info("Downloaded %d images for %r", len(images), email["subject"])
            except Exception as e:
                summary["emails_failed"] += 1
                logger.warning("Failed to process %r: %s", email["subject"], e)

        if dry_run:
            logger.info("Would process %d emails (dry run)", summary["emails_processed"])
        else:
            logger.info(
                "Downloaded %d images for %d emails", summary["images_downloaded"], summary["emails_processed"]
            )
        return summary

    def normalize_existing_emails(self, all_emails: bool = False, batch_size: int = 50) -> dict:
        """Fill in missing normalized Markdown, or re-normalize every email.

        Image URLs are re-localized afterwards so rebuilt Markdown keeps
        pointing at stored images.
        """
        emails = get_all_emails(self.conn) if all_emails else get_emails_without_normalized_markdown(self.conn)
        summary = {"total": len(emails), "updated": 0, "errors": 0}
        if not emails:
            logger.info("All emails already have normalized markdown")
            return summary
        logger.info("Normalizing %d emails in batches of %d", len(emails), batch_size)

        for start in range(0, len(emails), batch_size):
            batch = emails[start:start + batch_size]
            with transaction(self.conn):
                for email in batch:
                    try:
                        markdown = normalize_to_markdown(email["body"] or "")
                        markdown = localize_markdown(self.conn, email["id"], markdown)
                        update_normalized_markdown(self.conn, email["id"], markdown)
                        summary["updated"] += 1
                    except sqlite3.Error as e:
                        summary["errors"] += 1
                        logger.warning("Failed to update email %s: %s", email["id"], e)
            logger.info("Progress: %d/%d", min(start + batch_size, len(emails)), len(emails))
        return summary

    def classify_authors(self, dry_run: bool = False) -> dict:
        """Re-derive every email's author from its subject line."""
        emails = get_all_emails(self.conn)
        summary = {"total": len(emails), "changed": 0, "guest": 0, "changes": []}
        with transaction(self.conn):
            for email in emails:
                author = extract_author(email["subject"])
                if author:
                    summary["guest"] += 1
                if author == email.get("author"):
                    continue
                summary["changed"] += 1
                summary["changes"].append({"id": email["id"], "subject": email["subject"], "from": email.get("author"), "to": author})
                if not dry_run:
                    update_author(self.conn, email["id"], author)
        logger.info(
            "%s %d of %d authors (%d guest letters)",
            "Would change" if dry_run else "Changed",
            summary["changed"],
            summary["total"],
            summary["guest"],
        )
        return summary


__all__ = ["SyncEngine", "localize_markdown"]
