"""Guest author detection from subject lines.

Guest letters are marked with a name or initials in parentheses, e.g.
``thank you notes (L)``, ``thank you notes (Scarlett)(2)`` or
``tyn ((Dr)L)(4)``. Subjects without a marker belong to the primary
author, represented as ``None``.
"""

import re
from typing import Dict, Iterable, Optional

_DR_L_PATTERNS = [
    re.compile(r"\(\(Dr\)\s*L\)", re.IGNORECASE),
    re.compile(r"\(Dr\)\s*L", re.IGNORECASE),
]

# tried in order; the first match that is not descriptive wins
_AUTHOR_PATTERNS = [
    re.compile(r"\(([A-Z][a-z]*(?:\s+[A-Z][a-z]*)*)\)(?:\(\d+\))?"),
    re.compile(r"\(([a-z]{2,})\)(?:\(\d+\))?"),
    re.compile(r"\(([A-Z])\)(?:\(\d+\))?"),
    re.compile(r"\(([a-z])\)(?:\(\d+\))?"),
]

_DESCRIPTIVE = re.compile(
    r"^(butt|stuff|content|warning|nsfw|explicit|updated|repost|remix|etc$)",
    re.IGNORECASE,
)


def _is_descriptive(text: str) -> bool:
    return bool(_DESCRIPTIVE.match(text))


def _normalize_author(author: str) -> str:
    if re.match(r"^dr\.?\s*l$", author, re.IGNORECASE):
        return "L"
    if len(author) == 1:
        return author.upper()
    if re.match(r"^[a-z]+$", author) and len(author) <= 4:
        return author.lower()
    return author


def extract_author(subject: Optional[str]) -> Optional[str]:
    """Return the guest author marked in `subject`, or None for the primary author.

    >>> extract_author("thank you notes (L)")
    'L'
    >>> extract_author("tyn ((Dr)L)(4)")
    'L'
    >>> extract_author("something (butt stuff)") is None
    True
    """
    if not subject:
        return None
    for pattern in _DR_L_PATTERNS:
        if pattern.search(subject):
            return "L"
    for pattern in _AUTHOR_PATTERNS:
        m = pattern.search(subject)
        if not m:
            continue
        author = m.group(1).strip()
        if author and not _is_descriptive(author):
            return _normalize_author(author)
    return None


def extract_authors(subjects: Iterable[str]) -> Dict[str, Optional[str]]:
    return {subject: extract_author(subject) for subject in subjects}


__all__ = ["extract_author", "extract_authors"]
