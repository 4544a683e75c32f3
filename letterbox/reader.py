"""JSON web reader for the archive (Flask).

Serves the published letters, search, navigation, tags and the stored
embedded images over a small read-only JSON API. Non-API paths are served
from an optional static front-end directory with a single-page-app
fallback to its ``index.html``.
"""

import logging
import re
import time
from pathlib import Path

from flask import Flask, abort, g, jsonify, request, send_from_directory
from werkzeug.exceptions import HTTPException

from . import config
from .db import (
    get_all_tags_with_counts,
    get_connection,
    get_email_tags,
    get_email_with_local_images,
    get_embedded_image_by_id,
    get_emails_by_tag,
    get_navigation,
    get_random_published_email,
    get_tag_stats,
    list_published_emails,
    now_iso,
    search_published_emails,
)
from .db.emails import SUMMARY_COLUMNS

logger = logging.getLogger("letterbox.reader")

SNIPPET_LENGTH = 150
MATCH_OPEN = "<<MATCH>>"
MATCH_CLOSE = "<</MATCH>>"
SUMMARY_FIELDS = [c.strip() for c in SUMMARY_COLUMNS.split(",")]


def search_snippet(email: dict, query: str, length: int = SNIPPET_LENGTH) -> str:
    """Return text around the first match of `query`, with the match marked.

    Subject, description and body are tried in that order. Whitespace is
    collapsed and ``...`` marks text cut off on either side.
    """
    pattern = re.compile(re.escape(query), re.IGNORECASE)
    for text in (email.get("subject"), email.get("description"), email.get("normalized_markdown") or email.get("body")):
        if not text:
            continue
        m = pattern.search(text)
        if m is None:
            continue
        start = max(0, m.start() - length // 2)
        end = min(len(text), m.end() + length // 2)
        snippet = text[start:end]
        if start > 0:
            snippet = "..." + snippet
        if end < len(text):
            snippet = snippet + "..."
        snippet = re.sub(r"\s+", " ", snippet).strip()
        snippet = pattern.sub(lambda hit: MATCH_OPEN + hit.group(0) + MATCH_CLOSE, snippet, count=1)
        return snippet
    if email.get("description"):
        return email["description"]
    body = email.get("body") or ""
    return body[:length] + "..." if body else ""


def _summary(email: dict) -> dict:
    return {k: email.get(k) for k in SUMMARY_FIELDS}


def _tag_summary(tags: list) -> list:
    return [{"id": t["id"], "name": t["name"], "normalized_name": t["normalized_name"]} for t in tags]


def create_app(db_path=None, static_dir=None) -> Flask:
    """Build the reader application for the archive at `db_path`."""
    app = Flask(__name__, static_folder=None)
    app.config["DB_PATH"] = str(db_path or config.DB_PATH)
    app.config["STATIC_DIR"] = Path(static_dir) if static_dir else None
    app.config["STARTED_AT"] = time.time()

    def get_db():
        if "db" not in g:
            g.db = get_connection(app.config["DB_PATH"])
        return g.db

    @app.teardown_appcontext
    def close_db(exc):
        conn = g.pop("db", None)
        if conn is not None:
            conn.close()

    @app.before_request
    def start_timer():
        g.request_started = time.time()

    @app.after_request
    def log_request(response):
        duration_ms = (time.time() - g.get("request_started", time.time())) * 1000
        message = "%s %s %s %dms"
        args = (request.method, request.path, response.status_code, duration_ms)
        if response.status_code >= 400:
            logger.warning(message, *args)
        else:
            logger.debug(message, *args)
        return response

    @app.route("/health")
    def health():
        return jsonify(
            {
                "status": "ok",
                "timestamp": now_iso(),
                "uptime": time.time() - app.config["STARTED_AT"],
            }
        )

    @app.route("/api/emails")
    def list_emails():
        try:
            return jsonify(list_published_emails(get_db()))
        except Exception:
            logger.exception("Error fetching emails")
            return jsonify({"error": "Failed to fetch emails"}), 500

    @app.route("/api/emails/search")
    def search_emails():
        query = (request.args.get("q") or "").strip()
        if not query:
            return jsonify([])
        try:
            rows = search_published_emails(get_db(), query)
        except Exception:
            logger.exception("Error searching emails")
            return jsonify({"error": "Failed to search emails"}), 500
        return jsonify([{**_summary(r), "searchSnippet": search_snippet(r, query)} for r in rows])

    @app.route("/api/emails/random")
    def random_email():
        try:
            email = get_random_published_email(get_db())
        except Exception:
            logger.exception("Error fetching random email")
            return jsonify({"error": "Failed to fetch random email"}), 500
        if not email:
            return jsonify({"error": "No emails found"}), 404
        return jsonify(email)

    @app.route("/api/emails/<email_id>")
    def get_email(email_id):
        try:
            conn = get_db()
            result = get_email_with_local_images(conn, email_id)
            if not result:
                return jsonify({"error": "Email not found"}), 404
            tags = get_email_tags(conn, email_id)
        except Exception:
            logger.exception("Error fetching email")
            return jsonify({"error": "Failed to fetch email"}), 500
        logger.debug("Opened letter %s: %s", email_id, result["email"]["subject"])
        return jsonify({**result["email"], "body": result["body"], "tags": _tag_summary(tags)})

    @app.route("/api/emails/<email_id>/navigation")
    def email_navigation(email_id):
        try:
            nav = get_navigation(get_db(), email_id)
        except Exception:
            logger.exception("Error fetching navigation")
            return jsonify({"error": "Failed to fetch navigation"}), 500
        if nav is None:
            return jsonify({"error": "Email not found"}), 404
        return jsonify(nav)

    @app.route("/api/images/<image_id>")
    def get_image(image_id):
        try:
            iid = int(image_id)
        except ValueError:
            return jsonify({"error": "Invalid image ID"}), 400
        try:
            image = get_embedded_image_by_id(get_db(), iid)
        except Exception:
            logger.exception("Error fetching image")
            return jsonify({"error": "Failed to fetch image"}), 500
        if not image:
            return jsonify({"error": "Image not found"}), 404
        data = bytes(image["image_data"])
        response = app.response_class(data, mimetype=image["mime_type"])
        response.headers["Content-Length"] = str(len(data))
        response.headers["Cache-Control"] = "public, max-age=31536000, immutable"
        return response

    @app.route("/api/tags")
    def list_tags():
        try:
            return jsonify(get_all_tags_with_counts(get_db()))
        except Exception:
            logger.exception("Error fetching tags")
            return jsonify({"error": "Failed to fetch tags"}), 500

    @app.route("/api/tags/stats")
    def tag_stats():
        try:
            return jsonify(get_tag_stats(get_db()))
        except Exception:
            logger.exception("Error fetching tag stats")
            return jsonify({"error": "Failed to fetch tag stats"}), 500

    @app.route("/api/tags/<tag_name>/emails")
    def emails_by_tag(tag_name):
        try:
            emails = get_emails_by_tag(get_db(), tag_name)
        except Exception:
            logger.exception("Error fetching emails by tag")
            return jsonify({"error": "Failed to fetch emails by tag"}), 500
        return jsonify([_summary(e) for e in emails])

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def front_end(path):
        if path.startswith("api/"):
            abort(404)
        static_dir = app.config["STATIC_DIR"]
        if static_dir is None or not static_dir.exists():
            abort(404)
        if path and (static_dir / path).is_file():
            return send_from_directory(static_dir, path)
        if (static_dir / "index.html").is_file():
            return send_from_directory(static_dir, "index.html")
        abort(404)

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found", "message": f"Cannot {request.method} {request.path}"}), 404

    @app.errorhandler(Exception)
    def unhandled(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500

    return app


def run(host: str = config.READER_HOST, port: int = config.READER_PORT, db_path=None, static_dir=None, debug: bool = False):
    app = create_app(db_path=db_path, static_dir=static_dir)
    logger.info("Reader listening on http://%s:%s (db=%s)", host, port, app.config["DB_PATH"])
    app.run(host=host, port=port, debug=debug)


__all__ = ["create_app", "run", "search_snippet"]
