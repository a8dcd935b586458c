"""Text utilities shared by markup extraction and storage.

Markup is handled with plain pattern scanning rather than a DOM: chapter files
in real-world EPUBs are too often malformed for a strict parser, and the
reading pane only needs readable text.
"""

import re
from typing import Optional

_TAG_RE = re.compile(r"<[^>]+>")
_ENTITY_RE = re.compile(r"&[a-zA-Z#0-9]+;")
_WHITESPACE_RE = re.compile(r"\s+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")

# Fixed table; anything not listed is left as written
ENTITY_TABLE = {
    "&nbsp;": " ",
    "&#160;": " ",
    "&#xa0;": " ",
    "&amp;": "&",
    "&#38;": "&",
    "&lt;": "<",
    "&#60;": "<",
    "&gt;": ">",
    "&#62;": ">",
    "&quot;": '"',
    "&#34;": '"',
    "&#39;": "'",
    "&#x27;": "'",
    "&apos;": "'",
}


def strip_tags(text: str) -> str:
    """Remove every tag, keeping the text between them."""
    return _TAG_RE.sub("", text)


def decode_entities(text: str) -> str:
    """Decode the character references in ENTITY_TABLE in a single pass.

    "&amp;lt;" therefore becomes "&lt;", not "<".
    """
    return _ENTITY_RE.sub(lambda m: ENTITY_TABLE.get(m.group(0).lower(), m.group(0)), text)


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def collapse_blank_lines(text: str) -> str:
    """Limit runs of newlines to one blank line."""
    return _BLANK_LINES_RE.sub("\n\n", text)


def safe_truncate(text: Optional[str], max_chars: int, suffix: str = "...") -> Optional[str]:
    """Truncate text to fit a column, preferring a word boundary.

    Args:
        text: Text to truncate (None passes through)
        max_chars: Maximum length of the result, suffix included
        suffix: Suffix to append if truncated (default "...")

    Returns:
        Text of at most max_chars characters
    """
    if not text or len(text) <= max_chars:
        return text

    limit = max(max_chars - len(suffix), 0)
    truncated = text[:limit]

    # Look back up to 20 characters for a cleaner break point
    cut = truncated.rfind(" ", max(limit - 20, 0))
    if cut > 0:
        truncated = truncated[:cut]

    return truncated.rstrip() + suffix
