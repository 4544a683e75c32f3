"""SQLite storage for the newsletter archive.

Connection and schema helpers live in ``conn`` and ``schema``; the query
modules (``emails``, ``images``, ``attachments``, ``metadata``, ``tags``)
are plain functions taking a connection. Import paths such as
``from letterbox.db import upsert_email`` re-export them here.
"""

from .conn import get_connection, now_iso, transaction
from .schema import get_database_stats, init_db, open_db
from .emails import (
    count_emails_without_normalized_markdown,
    email_exists,
    get_all_authors,
    get_all_emails,
    get_email,
    get_email_with_local_images,
    get_emails_by_author,
    get_emails_without_normalized_markdown,
    get_navigation,
    get_published_emails_full,
    get_random_published_email,
    list_published_emails,
    search_published_emails,
    update_author,
    update_normalized_markdown,
    upsert_email,
)
from .images import (
    count_embedded_images,
    delete_embedded_image,
    get_all_embedded_images,
    get_embedded_image_by_id,
    get_embedded_images,
    get_embedded_images_size,
    get_emails_with_image_stats,
    get_images_by_type,
    get_large_images,
    get_total_image_storage,
    store_embedded_image,
)
from .attachments import (
    get_all_attachments,
    get_attachment,
    get_email_attachments,
    link_email_attachment,
    upsert_attachment,
)
from .metadata import get_last_sync_date, get_metadata, update_sync_metadata
from .tags import (
    add_tag_to_email,
    add_tags_to_email,
    clear_email_tags,
    delete_tag,
    get_all_tags,
    get_all_tags_with_counts,
    get_email_tags,
    get_emails_by_tag,
    get_or_create_tag,
    get_tag_stats,
    merge_tags,
    normalize_tag_name,
    remove_tag_from_email,
    search_tags,
    set_email_tags,
)
from .maintenance import analyze_space, log_maintenance_run, page_stats, vacuum_db
from .migrations import migrate_db
