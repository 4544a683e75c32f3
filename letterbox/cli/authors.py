from typing import Any

from .common import get_conn


def cmd_authors(args: Any) -> None:
    """Classify every email's author from its subject and print the breakdown."""
    from ..db import get_all_authors
    from ..sync import SyncEngine

    dry_run = getattr(args, "dry_run", False)
    conn = get_conn()
    try:
        summary = SyncEngine(None, conn).classify_authors(dry_run=dry_run)
        for change in summary["changes"]:
            print(f"  {change['subject']!r}: {change['from'] or 'primary'} -> {change['to'] or 'primary'}")
        verb = "would change" if dry_run else "changed"
        print(f"{verb} {summary['changed']} of {summary['total']} emails ({summary['guest']} guest letters)")
        if not dry_run:
            for row in get_all_authors(conn):
                print(f"{row['count']:5d}  {row['author'] or 'primary'}")
    finally:
        conn.close()
