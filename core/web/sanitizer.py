"""HTML to plain text for enrichment context."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment

_SPACE_RE = re.compile(r"\s+")
_DROP_TAGS = ("script", "style", "noscript", "template")

DEFAULT_MAX_BYTES = 4000


def truncate_bytes(text: str, max_bytes: int) -> str:
    """Cut text to at most ``max_bytes`` UTF-8 bytes without splitting a character."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def sanitize_html(raw: str, max_bytes: int = DEFAULT_MAX_BYTES) -> str:
    """Visible text of an HTML page: no scripts, styles, comments or attributes; whitespace collapsed; truncated."""
    if not raw:
        return ""
    soup = BeautifulSoup(raw, "html.parser")
    for tag in soup(_DROP_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    # &nbsp; arrives as \xa0, which \s also collapses
    text = _SPACE_RE.sub(" ", soup.get_text(" ", strip=True)).strip()
    return truncate_bytes(text, max_bytes)
