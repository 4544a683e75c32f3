#!/usr/bin/env python3
"""Package-level CLI entrypoint for letterbox.

This module wires subcommands implemented in separate modules under
`letterbox.cli` into a single `run()` function so the top-level
`main.py` can remain a thin wrapper.
"""
import argparse
import logging

from .sync import cmd_sync, cmd_sync_attachments, cmd_download_images
from .status import cmd_status, cmd_info, cmd_image_stats
from .build import cmd_build
from .db_init import cmd_db_init
from .export import cmd_export_email
from .tags import cmd_tags_add, cmd_tags_list, cmd_tags_remove, cmd_tags_stats
from .authors import cmd_authors
from .manage_db import (
    cmd_manage_db_analyze,
    cmd_manage_db_migrate,
    cmd_manage_db_normalize_markdown,
    cmd_manage_db_vacuum,
)
from .serve import cmd_serve
from .reader import cmd_reader

logger = logging.getLogger("letterbox.cli")


def run(argv=None) -> None:
    """Entrypoint for the letterbox CLI.

    Parses command-line arguments and dispatches to the appropriate
    `cmd_*` handler functions implemented in submodules.
    """
    parser = argparse.ArgumentParser(prog="letterbox", description="Archive a Buttondown newsletter locally")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd")

    p_sync = sub.add_parser("sync", help="Sync emails from Buttondown (incremental by default)")
    p_sync.add_argument("--full", action="store_true", help="Ignore the last sync date and fetch every email")
    p_sync.add_argument("--dry-run", action="store_true", help="Fetch and count emails without writing anything")
    p_sync.add_argument("--download-images", action="store_true", help="Download embedded images and store them in the DB")
    p_sync.set_defaults(func=cmd_sync)

    p_att = sub.add_parser("sync-attachments", help="Sync attachment records from Buttondown")
    p_att.add_argument("--dry-run", action="store_true", help="Fetch and count attachments without writing anything")
    p_att.set_defaults(func=cmd_sync_attachments)

    p_images = sub.add_parser("download-images", help="Download embedded images for emails already in the DB")
    p_images.add_argument("--dry-run", action="store_true", help="Only report which emails would be processed")
    p_images.set_defaults(func=cmd_download_images)

    p_image_stats = sub.add_parser("image-stats", help="Show embedded image statistics")
    p_image_stats.set_defaults(func=cmd_image_stats)

    p_status = sub.add_parser("status", help="Show sync status")
    p_status.set_defaults(func=cmd_status)

    p_info = sub.add_parser("info", help="Show database information")
    p_info.set_defaults(func=cmd_info)

    p_dbinit = sub.add_parser("db-init", help="Create DB schema (safe to re-run)")
    p_dbinit.set_defaults(func=cmd_db_init)

    p_build = sub.add_parser("build", help="Render static site into build/")
    p_build.add_argument("--out-dir", help="Output directory")
    p_build.set_defaults(func=cmd_build)

    p_serve = sub.add_parser("serve", help="Serve the built static site from the build directory")
    p_serve.add_argument("--host", help="Host to bind to (default: 127.0.0.1)")
    p_serve.add_argument("--port", type=int, help="Port to listen on (default: 8000)")
    p_serve.add_argument("--directory", help="Directory to serve (default: build)")
    p_serve.set_defaults(func=cmd_serve)

    p_reader = sub.add_parser("reader", help="Run the JSON reader API")
    p_reader.add_argument("--host", help="Host to bind to (default: 0.0.0.0)")
    p_reader.add_argument("--port", type=int, help="Port to listen on (default: 3000)")
    p_reader.add_argument("--static-dir", help="Front-end directory served for non-API paths")
    p_reader.set_defaults(func=cmd_reader)

    p_export = sub.add_parser("export-email", help="Export one email as standalone HTML with inline images")
    p_export.add_argument("email_id", help="Buttondown email id")
    p_export.add_argument("--out", help="Output file (default: email-<id>.html)")
    p_export.set_defaults(func=cmd_export_email)

    p_tags = sub.add_parser("tags", help="Manage email tags")
    tags_sub = p_tags.add_subparsers(dest="tags_cmd")
    p_tags.set_defaults(func=lambda args: p_tags.print_help())

    p_tags_list = tags_sub.add_parser("list", help="List tags with email counts, or one email's tags")
    p_tags_list.add_argument("--email-id", help="Only list the tags of this email")
    p_tags_list.set_defaults(func=lambda args: cmd_tags_list(args))

    p_tags_add = tags_sub.add_parser("add", help="Add tags to an email")
    p_tags_add.add_argument("email_id")
    p_tags_add.add_argument("tags", nargs="+")
    p_tags_add.set_defaults(func=lambda args: cmd_tags_add(args))

    p_tags_remove = tags_sub.add_parser("remove", help="Remove tags from an email")
    p_tags_remove.add_argument("email_id")
    p_tags_remove.add_argument("tags", nargs="+")
    p_tags_remove.set_defaults(func=lambda args: cmd_tags_remove(args))

    p_tags_stats = tags_sub.add_parser("stats", help="Show tag statistics")
    p_tags_stats.set_defaults(func=lambda args: cmd_tags_stats(args))

    p_authors = sub.add_parser("authors", help="Classify guest authors from subject lines")
    p_authors.add_argument("--dry-run", action="store_true", help="Report changes without writing them")
    p_authors.set_defaults(func=cmd_authors)

    p_manage = sub.add_parser("manage-db", help="Database maintenance commands")
    manage_sub = p_manage.add_subparsers(dest="manage_cmd")
    p_manage.set_defaults(func=lambda args: p_manage.print_help())

    p_vacuum = manage_sub.add_parser("vacuum", help="Run VACUUM and report reclaimed space")
    p_vacuum.set_defaults(func=lambda args: cmd_manage_db_vacuum(args))

    p_migrate = manage_sub.add_parser("migrate", help="Bring an older database up to the current schema")
    p_migrate.set_defaults(func=lambda args: cmd_manage_db_migrate(args))

    p_norm = manage_sub.add_parser("normalize-markdown", help="Backfill normalized markdown for stored emails")
    p_norm.add_argument("--all", action="store_true", help="Re-normalize every email, not only those missing markdown")
    p_norm.add_argument("--batch-size", type=int, default=50)
    p_norm.set_defaults(func=lambda args: cmd_manage_db_normalize_markdown(args))

    p_analyze = manage_sub.add_parser("analyze", help="Report where database space is used")
    p_analyze.set_defaults(func=lambda args: cmd_manage_db_analyze(args))

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
    if not args.cmd:
        parser.print_help()
        return
    args.func(args)


__all__ = ["run"]
