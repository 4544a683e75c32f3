import logging

from .common import finalize_maintenance_run, get_conn, start_maintenance_run

logger = logging.getLogger("letterbox.cli.manage_db")


def cmd_manage_db_vacuum(args):
    from ..db import vacuum_db
    from ..images import format_bytes

    conn = get_conn()
    started, run_id = start_maintenance_run(conn, "vacuum", {"args": vars(args)})
    status = "failed"
    details = {}
    try:
        result = vacuum_db(conn)
        before, after = result["before"], result["after"]
        print(f"pages: {before['page_count']} ({before['free_pages']} free, page size {before['page_size']})")
        print(f"before: {format_bytes(before['size_bytes'])}  after: {format_bytes(after['size_bytes'])}")
        print(f"saved: {format_bytes(result['saved_bytes'])}")
        status = "ok" if result["ok"] else "failed"
        details = result
    except Exception as e:
        details = {"error": str(e)}
        raise
    finally:
        finalize_maintenance_run(conn, "vacuum", run_id, started, status, details)
        conn.close()


def cmd_manage_db_migrate(args):
    from ..db import migrate_db

    conn = get_conn()
    started, run_id = start_maintenance_run(conn, "migrate", {"args": vars(args)})
    status = "failed"
    details = {}
    try:
        details = migrate_db(conn)
        added = ", ".join(details["added_columns"]) or "none"
        created = ", ".join(details["created_tables"]) or "none"
        print(f"schema version {details['schema_version']} (added columns: {added}; created tables: {created})")
        status = "ok"
    except Exception as e:
        details = {"error": str(e)}
        raise
    finally:
        finalize_maintenance_run(conn, "migrate", run_id, started, status, details)
        conn.close()


def cmd_manage_db_normalize_markdown(args):
    """Backfill normalized markdown; with --all re-normalize every email."""
    from ..sync import SyncEngine

    conn = get_conn()
    started, run_id = start_maintenance_run(conn, "normalize-markdown", {"args": vars(args)})
    status = "failed"
    details = {}
    try:
        details = SyncEngine(None, conn).normalize_existing_emails(
            all_emails=getattr(args, "all", False),
            batch_size=getattr(args, "batch_size", 50),
        )
        print(f"normalized {details['updated']} of {details['total']} emails ({details['errors']} errors)")
        status = "ok" if not details["errors"] else "partial"
    except Exception as e:
        details = {"error": str(e)}
        raise
    finally:
        finalize_maintenance_run(conn, "normalize-markdown", run_id, started, status, details)
        conn.close()


def cmd_manage_db_analyze(args):
    from ..db import analyze_space
    from ..images import format_bytes

    conn = get_conn()
    try:
        report = analyze_space(conn)
    finally:
        conn.close()
    pages = report["pages"]
    print(f"Database size: {format_bytes(pages['size_bytes'])} ({pages['page_count']} pages, {format_bytes(pages['wasted_bytes'])} free)")
    print("Rows per table:")
    for table, count in report["tables"].items():
        print(f"  {table}: {count}")
    print(f"Email bodies: {format_bytes(report['body_bytes'])}, normalized markdown: {format_bytes(report['markdown_bytes'])}")
    print(f"Embedded images: {report['image_count']} ({format_bytes(report['image_bytes'])})")
    for row in report["images_by_type"]:
        print(f"  {row['mime_type']}: {row['count']} ({format_bytes(row['bytes'] or 0)})")
