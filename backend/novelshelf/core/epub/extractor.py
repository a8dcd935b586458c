"""Chapter markup to plain text.

Works on the raw markup with pattern scanning, so chapter files that no XML
parser would accept still produce text for the reading pane.
"""

import re
from dataclasses import dataclass
from typing import Optional

from novelshelf.utils.text import (
    collapse_blank_lines,
    collapse_whitespace,
    decode_entities,
    strip_tags,
)

from .archive import Archive

_LINE_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_BLOCK_CLOSE_RE = re.compile(
    r"</(p|div|h[1-6]|li|section|article|blockquote)\s*>", re.IGNORECASE
)

# Tags to use for title extraction (in priority order)
TITLE_TAGS = ("h1", "h2", "h3", "title")
_TITLE_RES = [
    re.compile(rf"<{tag}\b[^>]*>(.*?)</{tag}\s*>", re.IGNORECASE | re.DOTALL)
    for tag in TITLE_TAGS
]


@dataclass
class ChapterCandidate:
    """Extracted, not yet filtered chapter."""

    source_id: str
    resolved_path: str
    title: Optional[str]
    body_text: str


def normalize_line_breaks(markup: str) -> str:
    """Turn <br> elements into newlines and drop carriage returns."""
    return _LINE_BREAK_RE.sub("\n", markup).replace("\r", "")


def extract_title(markup: str) -> Optional[str]:
    """First non-empty h1, then h2, then h3, then <title> text.

    Returns:
        Tag-stripped, entity-decoded title, or None if no candidate exists
    """
    for pattern in _TITLE_RES:
        match = pattern.search(markup)
        if match is None:
            continue
        title = collapse_whitespace(decode_entities(strip_tags(match.group(1))))
        if title:
            return title
    return None


def extract_body_text(markup: str) -> str:
    """Readable plain text for the whole document.

    Closing tags of block elements become a blank line so paragraphs survive
    tag removal; script and style blocks are dropped with their contents.
    """
    text = _SCRIPT_STYLE_RE.sub("", markup)
    text = _BLOCK_CLOSE_RE.sub(lambda m: m.group(0) + "\n\n", text)
    text = strip_tags(text)
    text = decode_entities(text)
    text = collapse_blank_lines(text)
    return text.strip()


def extract_markup(markup: str, source_id: str = "", resolved_path: str = "") -> ChapterCandidate:
    """Build a candidate from markup already in memory."""
    markup = normalize_line_breaks(markup)
    return ChapterCandidate(
        source_id=source_id,
        resolved_path=resolved_path,
        title=extract_title(markup),
        body_text=extract_body_text(markup),
    )


def extract(archive: Archive, resolved_path: str, source_id: str = "") -> Optional[ChapterCandidate]:
    """Load one archive entry and extract its title and body.

    Returns:
        ChapterCandidate, or None if the entry cannot be read
    """
    markup = archive.read_text(resolved_path)
    if markup is None:
        return None
    return extract_markup(markup, source_id=source_id or resolved_path, resolved_path=resolved_path)
