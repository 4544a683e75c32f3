"""Static site build for the newsletter archive.

Renders the published letters into a directory that can be hosted as-is:
an index page, a contributors page, one page per letter, an RSS feed, a
static JSON API the reader front-end can use offline, the embedded images
as plain files and Parquet exports of the main tables.
"""

import json
import logging
import re
import shutil
import sqlite3
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path

import duckdb
import markdown
from jinja2 import Environment, FileSystemLoader, select_autoescape

from . import config
from .db import (
    get_all_authors,
    get_connection,
    get_email_tags,
    get_emails_by_author,
    get_navigation,
    get_published_emails_full,
    now_iso,
)
from .images import extension_for_mime

# Build output directory
BUILD_DIR = Path("build")
# Package-relative template/static dirs
PKG_DIR = Path(__file__).parent
TEMPLATES_DIR = PKG_DIR / "templates"
STATIC_DIR = PKG_DIR / "static"

MD_EXTENSIONS = ["extra", "sane_lists"]
PARQUET_TABLES = ["emails", "tags", "email_tags"]

_LOCAL_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(/api/images/(\d+)\)")

logger = logging.getLogger("letterbox.build")


def create_slug(text: str, email_id: str) -> str:
    """Lowercase `text` with runs of non-alphanumerics as ``-``; falls back to the id."""
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug or email_id


def email_slug(email: dict) -> str:
    return email.get("slug") or create_slug(email.get("subject") or "", email["id"])


def format_date(value: str | None) -> str:
    """Render an ISO date as e.g. ``March 4, 2024``; unparseable input is returned unchanged."""
    if not value:
        return ""
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return f"{dt:%B} {dt.day}, {dt.year}"


def rfc822_date(value: str | None) -> str:
    if not value:
        return ""
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return format_datetime(dt)


def rewrite_local_images(text: str, ext_map: dict, base_path: str = config.SITE_BASE_PATH) -> str:
    """Point ``/api/images/<id>`` references at the exported ``images/<id>.<ext>`` files."""

    def _sub(m):
        image_id = int(m.group(2))
        ext = ext_map.get(image_id, "png")
        return f"![{m.group(1)}]({base_path}/images/{image_id}.{ext})"

    return _LOCAL_IMAGE_RE.sub(_sub, text or "")


def render_markdown(text: str) -> str:
    return markdown.Markdown(extensions=MD_EXTENSIONS).convert(text or "")


def export_images(conn: sqlite3.Connection, out_dir: Path) -> dict:
    """Write every embedded image to ``out_dir/images/<id>.<ext>``; returns ``{id: ext}``."""
    images_dir = out_dir / "images"
    images_dir.mkdir(parents=True, exist_ok=True)
    ext_map = {}
    rows = conn.execute("SELECT id, image_data, mime_type FROM embedded_images").fetchall()
    logger.info("Found %d images to export", len(rows))
    for row in rows:
        ext = extension_for_mime(row["mime_type"])
        try:
            (images_dir / f"{row['id']}.{ext}").write_bytes(row["image_data"])
        except OSError as e:
            logger.warning("Failed to export image %s: %s", row["id"], e)
            continue
        ext_map[row["id"]] = ext
    logger.info("Exported %d images", len(ext_map))
    return ext_map


def _tag_summary(tags: list) -> list:
    return [{"id": t["id"], "name": t["name"], "normalized_name": t["normalized_name"]} for t in tags]


def export_json_api(out_dir: Path, letters: list) -> None:
    """Write ``api/emails.json``, ``api/emails-full.json`` and ``api/emails/<id>.json``."""
    api_dir = out_dir / "api"
    emails_dir = api_dir / "emails"
    emails_dir.mkdir(parents=True, exist_ok=True)

    index = [
        {
            "id": e["id"],
            "subject": e["subject"],
            "description": e["description"],
            "publish_date": e["publish_date"],
            "slug": e["slug"],
            "secondary_id": e["secondary_id"],
        }
        for e in letters
    ]
    (api_dir / "emails.json").write_text(json.dumps(index, indent=2), encoding="utf-8")

    full = [
        {
            "id": e["id"],
            "subject": e["subject"],
            "body": e["markdown"],
            "normalized_markdown": e["markdown"],
            "publish_date": e["publish_date"],
            "description": e["description"],
            "slug": e["slug"],
            "secondary_id": e["secondary_id"],
            "tags": _tag_summary(e["tags"]),
        }
        for e in letters
    ]
    bulk = {"version": 1, "generated_at": now_iso(), "count": len(full), "emails": full}
    (api_dir / "emails-full.json").write_text(json.dumps(bulk, indent=2), encoding="utf-8")
    for item in full:
        (emails_dir / f"{item['id']}.json").write_text(json.dumps(item, indent=2), encoding="utf-8")
    logger.info("Exported %d emails as JSON", len(full))


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml", "jinja2"]),
    )
    env.filters["format_date"] = format_date
    env.filters["rfc822"] = rfc822_date
    return env


def render_templates(context: dict, out_dir: Path, letters: list) -> None:
    """Render the index, contributors page, letter pages and RSS feed into ``out_dir``."""
    env = _environment()
    out_dir.mkdir(parents=True, exist_ok=True)

    (out_dir / "index.html").write_text(env.get_template("index.html.jinja2").render(context), encoding="utf-8")
    logger.info("wrote %s", out_dir / "index.html")

    (out_dir / "feed.xml").write_text(env.get_template("feed.xml.jinja2").render(context), encoding="utf-8")
    logger.info("wrote %s", out_dir / "feed.xml")

    (out_dir / "contributors.html").write_text(
        env.get_template("contributors.html.jinja2").render(context), encoding="utf-8"
    )
    logger.info("wrote %s", out_dir / "contributors.html")

    letters_dir = out_dir / "letters"
    letters_dir.mkdir(parents=True, exist_ok=True)
    tpl = env.get_template("letter.html.jinja2")
    for letter in letters:
        path = letters_dir / f"{letter['page_slug']}.html"
        path.write_text(tpl.render(context, letter=letter), encoding="utf-8")
    logger.info("wrote %d letter pages to %s", len(letters), letters_dir)


def copy_static(out_dir: Path):
    """Copy the package ``static/`` directory into the build output, replacing any old copy."""
    dest = out_dir / "static"
    if dest.exists():
        shutil.rmtree(dest)
    if STATIC_DIR.exists():
        shutil.copytree(STATIC_DIR, dest)
        logger.info("copied static -> %s", dest)


def export_db_parquet(out_dir: Path, db_path: Path, tables: list | None = None):
    """Export tables from the SQLite archive to ``out_dir/db/<table>.parquet`` with DuckDB.

    Best effort: failures are logged as warnings and never fail the build.
    """
    if tables is None:
        tables = PARQUET_TABLES
    db_path = Path(db_path)
    if not db_path.exists():
        logger.debug("DB file %s does not exist; skipping parquet export", db_path)
        return

    db_out = out_dir / "db"
    db_out.mkdir(parents=True, exist_ok=True)
    con = None
    try:
        con = duckdb.connect(database=":memory:")
        try:
            con.execute("INSTALL sqlite")
            con.execute("LOAD sqlite")
        except Exception as e:
            logger.debug("sqlite extension not loaded: %s", e)
        for table in tables:
            dest = db_out / f"{table}.parquet"
            try:
                con.execute(
                    f"COPY (SELECT * FROM sqlite_scan('{db_path}', '{table}')) TO '{dest}' (FORMAT PARQUET)"
                )
                logger.info("exported table %s -> %s", table, dest)
            except Exception as e:
                logger.warning("failed to export table %s: %s", table, e)
    except Exception as e:
        logger.warning("duckdb export failed: %s", e)
    finally:
        if con is not None:
            con.close()


def load_letters(conn: sqlite3.Connection, ext_map: dict) -> list:
    """Published emails, newest first, with rendered HTML, tags and prev/next links.

    When two letters share a slug the older one gets ``<slug>-<id>`` so no
    page overwrites another.
    """
    letters = []
    seen_slugs = set()
    for email in get_published_emails_full(conn):
        page_slug = email_slug(email)
        if page_slug in seen_slugs:
            fallback = f"{create_slug(email.get('subject') or '', email['id'])}-{email['id']}"
            logger.warning("slug %r already used; writing %s as %s", page_slug, email["id"], fallback)
            page_slug = fallback
        seen_slugs.add(page_slug)
        text = rewrite_local_images(email.get("normalized_markdown") or email.get("body") or "", ext_map)
        letters.append(
            {
                **email,
                "page_slug": page_slug,
                "markdown": text,
                "html": render_markdown(text),
                "tags": get_email_tags(conn, email["id"]),
            }
        )
    by_id = {letter["id"]: letter for letter in letters}
    for letter in letters:
        nav = get_navigation(conn, letter["id"]) or {}
        letter["prev"] = by_id.get((nav.get("prev") or {}).get("id"))
        letter["next"] = by_id.get((nav.get("next") or {}).get("id"))
    return letters


def group_by_author(conn: sqlite3.Connection, letters: list) -> list:
    """Group published `letters` by author: the primary author first, then guests alphabetically."""
    by_id = {letter["id"]: letter for letter in letters}
    authors = [row["author"] for row in get_all_authors(conn)]
    authors.sort(key=lambda a: (a is not None, (a or "").lower(), a or ""))
    groups = []
    for author in authors:
        items = [by_id[e["id"]] for e in get_emails_by_author(conn, author) if e["id"] in by_id]
        if items:
            groups.append({"author": author, "primary": author is None, "letters": items})
    return groups


def build(out_dir: Path = BUILD_DIR, db_path: Path | None = None) -> dict:
    """Build the static site into `out_dir` from the archive at `db_path`.

    Returns a small summary (letter and image counts).
    """
    out_dir = Path(out_dir)
    db_path = Path(db_path) if db_path else Path(config.DB_PATH)
    logger.info("building static site into %s", out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    conn = get_connection(db_path)
    try:
        ext_map = export_images(conn, out_dir)
        letters = load_letters(conn, ext_map)
        contributors = group_by_author(conn, letters)
    finally:
        conn.close()
    logger.info("Found %d published letters", len(letters))

    context = {
        "title": config.SITE_TITLE,
        "description": config.SITE_DESCRIPTION,
        "base_path": config.SITE_BASE_PATH,
        "link": config.SITE_LINK,
        "letters": letters,
        "contributors": contributors,
        "build_date": rfc822_date(now_iso()),
    }
    render_templates(context, out_dir, letters)
    export_json_api(out_dir, letters)
    copy_static(out_dir)
    export_db_parquet(out_dir, db_path)
    logger.info("build complete: %d letters, %d images", len(letters), len(ext_map))
    return {"letters": len(letters), "images": len(ext_map)}


__all__ = [
    "build",
    "create_slug",
    "email_slug",
    "format_date",
    "rewrite_local_images",
    "render_markdown",
    "group_by_author",
    "export_images",
    "export_json_api",
    "render_templates",
    "copy_static",
    "export_db_parquet",
]
