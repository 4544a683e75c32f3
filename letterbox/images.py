"""Embedded image handling: find image URLs in email bodies, download them
and point the bodies at the stored copies.

URLs are looked for in four places: Markdown images, ``<img src>``
attributes, ``background-image: url(...)`` and the ``background:``
shorthand. Only remote ``http(s)`` URLs are collected.
"""
from __future__ import annotations

import base64
import html
import logging
import re
import struct
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from . import config
from .errors import ImageDownloadError
from .http import get_bytes

logger = logging.getLogger("letterbox.images")

LOCAL_IMAGE_PREFIX = "/api/images/"

_MARKDOWN_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_IMG_TAG_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
_BG_IMAGE_RE = re.compile(r"background-image:\s*url\([\"']?([^\"')]+)[\"']?\)", re.IGNORECASE)
_BG_SHORTHAND_RE = re.compile(r"background:\s*[^;]*url\([\"']?([^\"')]+)[\"']?\)", re.IGNORECASE)

_MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/png": "png",
}


@dataclass
class EmbeddedImage:
    url: str
    data: bytes
    mime_type: str
    file_size: int
    width: int | None = None
    height: int | None = None


def _is_remote(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def extract_image_urls(text: str) -> list[str]:
    """Return remote image URLs found in `text`, deduplicated in first-seen order."""
    if not text:
        return []
    found = [m.group(2) for m in _MARKDOWN_IMAGE_RE.finditer(text)]
    for regex in (_IMG_TAG_RE, _BG_IMAGE_RE, _BG_SHORTHAND_RE):
        found.extend(m.group(1) for m in regex.finditer(text))
    urls = []
    seen = set()
    for url in found:
        if _is_remote(url) and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


def get_image_dimensions(data: bytes, mime_type: str):
    """Read (width, height) from PNG, JPEG or GIF headers; None if unknown."""
    try:
        if mime_type == "image/png":
            if len(data) < 24:
                return None
            return struct.unpack(">II", data[16:24])
        if mime_type in ("image/jpeg", "image/jpg"):
            offset = 2
            while offset < len(data) - 9:
                if data[offset] != 0xFF:
                    break
                marker = data[offset + 1]
                if 0xC0 <= marker <= 0xCF and marker not in (0xC4, 0xC8, 0xCC):
                    height, width = struct.unpack(">HH", data[offset + 5:offset + 9])
                    return width, height
                (segment_length,) = struct.unpack(">H", data[offset + 2:offset + 4])
                offset += segment_length + 2
            return None
        if mime_type == "image/gif":
            if len(data) < 10:
                return None
            return struct.unpack("<HH", data[6:10])
    except struct.error as e:
        logger.debug("Could not extract dimensions from %s: %s", mime_type, e)
    return None


def download_image(url: str, session=None) -> EmbeddedImage:
    """Fetch one image. Raises ImageDownloadError for HTTP errors or non-images."""
    logger.debug("Downloading image: %s", url)
    try:
        resp = get_bytes(url, headers={"User-Agent": config.USER_AGENT}, timeout=config.IMAGE_TIMEOUT, session=session)
    except Exception as e:
        raise ImageDownloadError(f"{url}: {e}") from e
    if not 200 <= resp.status_code < 300:
        raise ImageDownloadError(f"HTTP {resp.status_code}: {getattr(resp, 'reason', '')}")
    content_type = (resp.headers.get("content-type") or "image/jpeg").split(";")[0].strip().lower()
    if not content_type.startswith("image/"):
        raise ImageDownloadError(f"Not an image: {content_type}")
    data = resp.content
    dims = get_image_dimensions(data, content_type)
    return EmbeddedImage(
        url=url,
        data=data,
        mime_type=content_type,
        file_size=len(data),
        width=dims[0] if dims else None,
        height=dims[1] if dims else None,
    )


def download_all_images(text: str, concurrency: int = config.IMAGE_CONCURRENCY, session=None) -> dict[str, EmbeddedImage]:
    """Download every image referenced in `text` with bounded concurrency.

    Failed downloads are logged and left out of the returned mapping.
    """
    urls = extract_image_urls(text)
    if not urls:
        logger.debug("No images found in content")
        return {}
    logger.info("Found %d images to download", len(urls))

    results: dict[str, EmbeddedImage] = {}
    failed = []
    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as ex:
        futures = {ex.submit(download_image, url, session): url for url in urls}
        for fut in as_completed(futures):
            url = futures[fut]
            try:
                image = fut.result()
            except Exception as e:
                failed.append(url)
                logger.warning("Failed to download image %s: %s", url, e)
                continue
            results[url] = image
            logger.debug("Downloaded %s (%s)", url, format_bytes(image.file_size))

    if failed:
        logger.warning("Failed to download %d/%d images", len(failed), len(urls))
    else:
        logger.info("Downloaded all %d images", len(urls))
    # keep the order the URLs appear in the content
    return {url: results[url] for url in urls if url in results}


def replace_image_urls(text: str, mapping: dict[str, str]) -> str:
    """Point image references at new URLs.

    Only image contexts are rewritten; the same URL used as a plain link
    stays as it is. Matching is case-insensitive.
    """
    result = text
    for original, replacement in mapping.items():
        escaped = re.escape(original)
        # a function replacement keeps backslashes in `replacement` literal
        sub = lambda m, r=replacement: f"{m.group(1)}{r}{m.group(2)}"
        patterns = (
            rf"(!\[[^\]]*\]\(){escaped}(\))",
            rf"(<img[^>]+src=[\"']){escaped}([\"'])",
            rf"(background-image:\s*url\([\"']?){escaped}([\"']?\))",
            rf"(background:[^;]*url\([\"']?){escaped}([\"']?\))",
        )
        for pattern in patterns:
            result = re.sub(pattern, sub, result, flags=re.IGNORECASE)
    return result


def build_local_image_map(rows, prefix: str = LOCAL_IMAGE_PREFIX) -> dict[str, str]:
    """Map each stored image's original URL to its local ``/api/images/<id>`` path.

    Bodies converted from HTML may carry the entity-decoded form of a URL
    (``&amp;`` becomes ``&``), so that variant is mapped too.
    """
    mapping = {}
    for row in rows:
        local = f"{prefix}{row['id']}"
        original = row["original_url"]
        mapping[original] = local
        decoded = html.unescape(original)
        if decoded != original:
            mapping[decoded] = local
    return mapping


def image_to_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def format_bytes(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.2f} KB"
    return f"{n / 1024 / 1024:.2f} MB"


def extension_for_mime(mime_type: str | None) -> str:
    return _MIME_EXTENSIONS.get((mime_type or "").lower(), "png")


__all__ = [
    "EmbeddedImage",
    "extract_image_urls",
    "get_image_dimensions",
    "download_image",
    "download_all_images",
    "replace_image_urls",
    "build_local_image_map",
    "image_to_data_uri",
    "format_bytes",
    "extension_for_mime",
]
