import logging
import re
import sys
from pathlib import Path
from typing import Any

from .common import get_conn

logger = logging.getLogger("letterbox.cli.export")

_LOCAL_IMAGE_URL_RE = re.compile(r"/api/images/(\d+)")


def export_email_html(conn, email_id: str) -> str | None:
    """Render one stored email as a self-contained HTML page.

    Locally stored images are inlined as data URIs. Returns None when the
    email does not exist.
    """
    from ..build import _environment, render_markdown
    from ..db import get_email_with_local_images, get_embedded_image_by_id
    from ..images import image_to_data_uri

    result = get_email_with_local_images(conn, email_id)
    if not result:
        return None

    def _inline(m):
        image = get_embedded_image_by_id(conn, int(m.group(1)))
        if not image:
            logger.warning("Image %s referenced by %s is missing", m.group(1), email_id)
            return m.group(0)
        return image_to_data_uri(bytes(image["image_data"]), image["mime_type"])

    body_html = _LOCAL_IMAGE_URL_RE.sub(_inline, render_markdown(result["body"]))
    tpl = _environment().get_template("export.html.jinja2")
    return tpl.render(email=result["email"], body_html=body_html)


def cmd_export_email(args: Any) -> None:
    """Write an email as standalone HTML (images embedded as data URIs)."""
    from ..db import count_embedded_images, get_embedded_images_size

    out_path = Path(args.out) if getattr(args, "out", None) else Path(f"email-{args.email_id}.html")
    conn = get_conn()
    try:
        logger.info("Exporting email %s...", args.email_id)
        html = export_email_html(conn, args.email_id)
        if html is None:
            logger.error("Email %s not found", args.email_id)
            sys.exit(1)
        out_path.write_text(html, encoding="utf-8")
        logger.info("Images: %d", count_embedded_images(conn, args.email_id))
        logger.info("Size: %.2f KB", get_embedded_images_size(conn, args.email_id) / 1024)
    finally:
        conn.close()
    print(f"Exported to {out_path}")
