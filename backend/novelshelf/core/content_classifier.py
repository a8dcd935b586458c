"""Chapter filter for imported EPUB content.

Decides whether a resolved item is a real chapter or front-matter noise
(covers, title pages, tables of contents, copyright pages, stubs). The check
runs in two stages: a cheap structural one on the manifest entry before any
markup is read, then a content one on the extracted title and body.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from novelshelf.utils.text import collapse_whitespace

if TYPE_CHECKING:
    from novelshelf.core.epub.package import ManifestItem


@dataclass
class ImportConfig:
    """Configuration options for chapter filtering.

    The defaults are tuned on real-world novel EPUBs; change them only with
    a concrete book that needs it.
    """

    # Bodies shorter than this (whitespace collapsed) are stubs, not chapters
    min_body_chars: int = 60

    # Substrings of a lower-cased title that mark front matter
    excluded_title_keywords: tuple[str, ...] = (
        "table of contents",
        "contents",
        "toc",
        "copyright",
        "title page",
    )

    # Whole titles (trimmed, lower-cased) that mark front matter
    excluded_exact_titles: frozenset[str] = field(
        default_factory=lambda: frozenset({"information"})
    )

    # Manifest ids/hrefs that are covers or title pages
    structural_pattern: str = r"cover|title[-_ ]?page"


# Default configuration - matches the behaviour of every client
DEFAULT_CONFIG = ImportConfig()


class ExclusionReason(str, Enum):
    """Why an item was left out of the import."""

    COVER_OR_TITLE_PAGE = "cover_or_title_page"  # id/href pattern
    FRONT_MATTER_TITLE = "front_matter_title"    # TOC, copyright, ...
    INFORMATION_PAGE = "information_page"        # title is exactly "information"
    TOO_SHORT = "too_short"                      # body below min_body_chars


class ContentClassifier:
    """Classify resolved EPUB items as chapters or noise."""

    def __init__(self, config: ImportConfig = DEFAULT_CONFIG):
        self.config = config
        self._structural_re = re.compile(config.structural_pattern, re.IGNORECASE)

    def structural_exclusion(self, item: "ManifestItem") -> Optional[ExclusionReason]:
        """Check the manifest entry before its markup is loaded.

        Args:
            item: Manifest item (declared or synthesized)

        Returns:
            ExclusionReason, or None if the item may be a chapter
        """
        if self._structural_re.search(item.id) or self._structural_re.search(item.href):
            return ExclusionReason.COVER_OR_TITLE_PAGE
        return None

    def content_exclusion(
        self,
        title: Optional[str],
        body_text: str,
    ) -> Optional[ExclusionReason]:
        """Check extracted text.

        Args:
            title: Extracted title (None when the document had none)
            body_text: Normalized body text

        Returns:
            ExclusionReason, or None if the candidate is a chapter
        """
        if title:
            title_lower = title.lower()
            for keyword in self.config.excluded_title_keywords:
                if keyword in title_lower:
                    return ExclusionReason.FRONT_MATTER_TITLE

            if title_lower.strip() in self.config.excluded_exact_titles:
                return ExclusionReason.INFORMATION_PAGE

        if len(collapse_whitespace(body_text)) < self.config.min_body_chars:
            return ExclusionReason.TOO_SHORT

        return None
