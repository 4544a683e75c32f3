from typing import Any

from letterbox import config

from .common import get_conn


def cmd_status(args: Any) -> None:
    from ..db import get_database_stats

    conn = get_conn()
    try:
        stats = get_database_stats(conn)
    finally:
        conn.close()
    print("Sync Status")
    print(f"  Total emails:      {stats['total_emails']}")
    print(f"  Total attachments: {stats['total_attachments']}")
    print(f"  Last sync:         {stats['last_sync_date'] or 'never'}")
    print(f"  Status:            {stats['last_sync_status']}")


def cmd_info(args: Any) -> None:
    from ..db import get_database_stats, get_metadata

    conn = get_conn()
    try:
        stats = get_database_stats(conn)
        schema_version = get_metadata(conn, "schema_version")
    finally:
        conn.close()
    print("Database Information")
    print(f"  Database path:     {config.DB_PATH}")
    print(f"  Schema version:    {schema_version}")
    print(f"  Total emails:      {stats['total_emails']}")
    print(f"  Total attachments: {stats['total_attachments']}")


def cmd_image_stats(args: Any) -> None:
    """Print per-email embedded image counts and sizes plus the largest images."""
    from ..db import get_emails_with_image_stats, get_large_images
    from ..images import format_bytes

    conn = get_conn()
    try:
        stats = get_emails_with_image_stats(conn)
        large = get_large_images(conn, config.LARGE_IMAGE_BYTES)
    finally:
        conn.close()

    print("Embedded Image Statistics")
    if not stats:
        print("  No embedded images found.")
        print('  Run "download-images" to download images for your emails.')
        return

    total_images = 0
    total_size = 0
    for i, row in enumerate(stats, start=1):
        total_images += row["image_count"]
        total_size += row["total_size"]
        subject = row["subject"] or ""
        short = subject[:50] + ("..." if len(subject) > 50 else "")
        print(f"  {i}. {short}")
        print(f"     {row['image_count']} images, {format_bytes(row['total_size'])}")

    print("  Summary:")
    print(f"    Total emails with images: {len(stats)}")
    print(f"    Total images: {total_images}")
    print(f"    Total size: {format_bytes(total_size)}")
    if large:
        print(f"  Images over {format_bytes(config.LARGE_IMAGE_BYTES)}:")
        for img in large:
            print(f"    #{img['id']} {img['mime_type']} {format_bytes(img['file_size'])} in {img['email_subject']}")
