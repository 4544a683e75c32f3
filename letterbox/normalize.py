"""Convert Buttondown email bodies (HTML or plain Markdown) to clean Markdown.

Only formatting that renders well as Markdown survives: links, images,
headings, lists, emphasis and code. Layout containers are unwrapped,
embedded media and form controls are dropped and attributes are reduced to
``href``/``src``/``alt``/``title``.

Bodies written in Buttondown's plaintext editor carry a
``buttondown-editor-mode: plaintext`` comment; when such a body really has
no markup it only gets comment and blank-line cleanup so the author's
whitespace is kept.
"""

import logging
import re

from bs4 import BeautifulSoup, Comment, NavigableString
from markdownify import MarkdownConverter, chomp

logger = logging.getLogger("letterbox.normalize")

PLAINTEXT_MARKER = "buttondown-editor-mode: plaintext"
PARAGRAPH_PLACEHOLDER = "LBXPARAGRAPHBREAKLBX"

REMOVED_TAGS = [
    "style",
    "script",
    "noscript",
    "iframe",
    "object",
    "embed",
    "video",
    "audio",
    "canvas",
    "svg",
    "math",
    "form",
    "input",
    "textarea",
    "button",
    "select",
    "option",
]
UNWRAPPED_TAGS = [
    "span",
    "section",
    "article",
    "header",
    "footer",
    "nav",
    "aside",
    "main",
    "figure",
    "figcaption",
]
TABLE_TAGS = ["table", "thead", "tbody", "tfoot", "caption", "colgroup"]
ALLOWED_ATTRS = {"href", "src", "alt", "title"}

_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
_TAG_RE = re.compile(r"<[^>]+>")


class _Converter(MarkdownConverter):
    """markdownify converter using ``_`` for emphasis and ``**`` for strong."""

    def convert_em(self, el, text, *args, **kwargs):
        prefix, suffix, text = chomp(text)
        if not text:
            return ""
        return f"{prefix}_{text}_{suffix}"

    convert_i = convert_em


def remove_html_comments(content: str) -> str:
    return _COMMENT_RE.sub("", content)


def is_likely_html(content: str) -> bool:
    """More than five tags means the content is treated as HTML."""
    return len(_TAG_RE.findall(content)) > 5


def _clean_soup(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(REMOVED_TAGS):
        if not tag.decomposed:
            tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(True):
        tag.attrs = {k: v for k, v in tag.attrs.items() if k in ALLOWED_ATTRS}
    for tag in soup.find_all(UNWRAPPED_TAGS):
        tag.unwrap()

    for tag in soup.find_all("col"):
        tag.decompose()
    for cell in soup.find_all(["td", "th"]):
        cell.append(" ")
        cell.unwrap()
    for row in soup.find_all("tr"):
        row.name = "div"
    for tag in soup.find_all(TABLE_TAGS):
        tag.unwrap()

    for div in soup.find_all("div"):
        if not div.get_text(strip=True) and div.find("img") is None:
            div.replace_with(NavigableString(PARAGRAPH_PLACEHOLDER))
        else:
            div.name = "p"


def _cleanup_whitespace(markdown: str) -> str:
    markdown = re.sub(r"[ \t]+$", "", markdown, flags=re.MULTILINE)
    markdown = markdown.replace("\r\n", "\n")
    return re.sub(r"\s+([.,!?;:])", r"\1", markdown)


def _normalize_plaintext(content: str) -> str:
    text = content.replace("\r\n", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _normalize_html(content: str) -> str:
    content = re.sub(r"\r?\n\r?\n", PARAGRAPH_PLACEHOLDER, content)
    soup = BeautifulSoup(content, "html.parser")
    _clean_soup(soup)
    markdown = _Converter(
        heading_style="ATX",
        bullets="-",
        escape_underscores=False,
        escape_asterisks=False,
        escape_misc=False,
    ).convert_soup(soup)
    markdown = markdown.replace(PARAGRAPH_PLACEHOLDER, "\n\n")
    markdown = _cleanup_whitespace(markdown)
    markdown = remove_html_comments(markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def normalize_to_markdown(content: str) -> str:
    """Normalize an email body to Markdown.

    Never raises: if conversion fails the original content is returned and
    a warning is logged.
    """
    if not content:
        return ""
    try:
        without_comments = remove_html_comments(content)
        if PLAINTEXT_MARKER in content and not is_likely_html(without_comments):
            return _normalize_plaintext(without_comments)
        return _normalize_html(content)
    except Exception as e:
        logger.warning("Failed to normalize markdown: %s", e)
        return content


def _truncate(text: str, limit: int = 500) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def preview_normalization(content: str) -> dict:
    normalized = normalize_to_markdown(content)
    return {
        "original": _truncate(content),
        "normalized": _truncate(normalized),
        "is_html": is_likely_html(content),
        "length_before": len(content),
        "length_after": len(normalized),
    }


__all__ = [
    "normalize_to_markdown",
    "is_likely_html",
    "remove_html_comments",
    "preview_normalization",
]
