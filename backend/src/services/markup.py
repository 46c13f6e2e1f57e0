"""Helpers for wiki-link syntax and title derivation in note content."""

from __future__ import annotations

import html
import re
from typing import Dict, List, Optional

WIKILINK_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")
TAG_PATTERN = re.compile(r"<[^>]+>")
BLOCK_TAG_PATTERN = re.compile(r"</?(p|h[1-6]|div|li|br|blockquote)[^>]*>", re.IGNORECASE)
HEADING_PREFIX = re.compile(r"^\s*#{1,6}\s+")
MAX_TITLE_LENGTH = 100
UNTITLED = "Untitled"


def normalize_title(title: str | None) -> str:
    """Case-folded, whitespace-trimmed title used for comparisons."""
    if not title:
        return ""
    return " ".join(title.split()).casefold()


def extract_wikilinks(content: str | None) -> List[str]:
    """Extract [[link]] targets in order of first appearance, without duplicates."""
    seen: Dict[str, None] = {}
    for match in WIKILINK_PATTERN.finditer(content or ""):
        link_text = html.unescape(match.group(1)).strip()
        if link_text and link_text not in seen:
            seen[link_text] = None
    return list(seen.keys())


def references_title(content: str | None, title: str) -> bool:
    """True if ``content`` holds a [[link]] whose text matches ``title`` case-insensitively."""
    wanted = normalize_title(title)
    if not wanted:
        return False
    return any(normalize_title(link) == wanted for link in extract_wikilinks(content))


def to_plain_text(content: str | None) -> str:
    """Strip editor HTML down to newline-separated text."""
    if not content:
        return ""
    text = BLOCK_TAG_PATTERN.sub("\n", content)
    text = TAG_PATTERN.sub("", text)
    return html.unescape(text)


def derive_title(content: str | None, explicit: Optional[str] = None) -> str:
    """Explicit title if set, else the first non-empty line of content."""
    if explicit and explicit.strip():
        return explicit.strip()
    for line in to_plain_text(content).splitlines():
        cleaned = HEADING_PREFIX.sub("", line).strip()
        if cleaned:
            return cleaned[:MAX_TITLE_LENGTH]
    return UNTITLED


def heading_for(title: str) -> str:
    """Content for a freshly created note that carries ``title`` as its heading."""
    return f"# {title.strip()}"


__all__ = [
    "WIKILINK_PATTERN",
    "normalize_title",
    "extract_wikilinks",
    "references_title",
    "to_plain_text",
    "derive_title",
    "heading_for",
]
