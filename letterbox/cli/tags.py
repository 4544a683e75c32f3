import logging
import sys
from typing import Any

from .common import get_conn

logger = logging.getLogger("letterbox.cli.tags")


def cmd_tags_list(args: Any) -> None:
    from ..db import get_all_tags_with_counts, get_email_tags

    conn = get_conn()
    try:
        if getattr(args, "email_id", None):
            tags = get_email_tags(conn, args.email_id)
            for t in tags:
                print(f"{t['name']} ({t['normalized_name']})")
            return
        tags = get_all_tags_with_counts(conn)
    finally:
        conn.close()
    if not tags:
        print("No tags yet.")
        return
    for t in tags:
        print(f"{t['email_count']:5d}  {t['name']} ({t['normalized_name']})")


def cmd_tags_add(args: Any) -> None:
    """Attach one or more tags to an email."""
    from ..db import add_tags_to_email, email_exists, transaction

    conn = get_conn()
    try:
        if not email_exists(conn, args.email_id):
            logger.error("Email %s not found", args.email_id)
            sys.exit(1)
        with transaction(conn):
            add_tags_to_email(conn, args.email_id, args.tags)
        print(f"tagged {args.email_id}: {', '.join(args.tags)}")
    finally:
        conn.close()


def cmd_tags_remove(args: Any) -> None:
    from ..db import remove_tag_from_email, transaction

    conn = get_conn()
    try:
        removed = []
        with transaction(conn):
            for tag in args.tags:
                if remove_tag_from_email(conn, args.email_id, tag):
                    removed.append(tag)
        print(f"removed {len(removed)} tag(s) from {args.email_id}")
    finally:
        conn.close()


def cmd_tags_stats(args: Any) -> None:
    from ..db import get_tag_stats

    conn = get_conn()
    try:
        stats = get_tag_stats(conn)
    finally:
        conn.close()
    print(f"Total tags:            {stats['totalTags']}")
    print(f"Email/tag links:       {stats['totalEmailTags']}")
    print(f"Avg tags per email:    {stats['avgTagsPerEmail']:.2f}")
    print(f"Max tags on an email:  {stats['maxTagsPerEmail']}")
