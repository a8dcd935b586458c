"""Reading-order resolution for EPUB content.

Three strategies are tried in order and the first one that yields anything
wins:

1. Spine: the package document's declared reading order.
2. NCX: the legacy navigation control file, consulted only when the spine
   has no usable content.
3. Archive scan: every HTML-family file under the package directory, in
   natural filename order.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from enum import Enum

from lxml import etree

from .archive import Archive
from .errors import NoReadableContentError
from .package import (
    XHTML_MEDIA_TYPE,
    ManifestItem,
    PackageDocument,
    has_html_extension,
    local_name,
    parse_xml,
    resolve_href,
)

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"(\d+)", re.ASCII)


class NavigationStrategy(str, Enum):
    """Which strategy produced the reading order."""

    SPINE = "spine"
    NCX = "ncx"
    ARCHIVE_SCAN = "archive_scan"


@dataclass(frozen=True)
class ContentItem:
    """A manifest item (declared or synthesized) and its archive path."""

    item: ManifestItem
    path: str


@dataclass
class NavigationResult:
    """Ordered readable content and the strategy that found it."""

    items: list[ContentItem]
    strategy: NavigationStrategy


def natural_sort_key(value: str) -> list[tuple[int, int, str]]:
    """Sort key that orders embedded numbers numerically.

    "chapter2.xhtml" sorts before "chapter10.xhtml".
    """
    key = []
    for index, part in enumerate(_DIGITS_RE.split(value)):
        if index % 2:
            key.append((0, int(part), ""))
        elif part:
            key.append((1, 0, part.lower()))
    return key


def is_content_item(item: ManifestItem) -> bool:
    """HTML-family item that is not a navigation document or NCX."""
    return item.is_html and not item.is_nav and not item.is_ncx


class NavigationResolver:
    """Produce the ordered list of readable items for one archive."""

    def __init__(self, archive: Archive, package: PackageDocument):
        self.archive = archive
        self.package = package

    def resolve(self) -> NavigationResult:
        """Run the strategies in order.

        Raises:
            NoReadableContentError: If all three strategies come up empty
        """
        strategies = (
            (NavigationStrategy.SPINE, self.from_spine),
            (NavigationStrategy.NCX, self.from_ncx),
            (NavigationStrategy.ARCHIVE_SCAN, self.from_archive_scan),
        )
        for strategy, method in strategies:
            items = method()
            if items:
                logger.info(
                    "Resolved %d content items using %s strategy", len(items), strategy.value
                )
                return NavigationResult(items=items, strategy=strategy)
            logger.debug("Navigation strategy %s produced no items", strategy.value)

        raise NoReadableContentError()

    def from_spine(self) -> list[ContentItem]:
        """Spine order, restricted to HTML-family content items."""
        items = []
        for idref in self.package.spine:
            item = self.package.manifest.get(idref)
            if item is None or not is_content_item(item):
                continue
            items.append(ContentItem(item=item, path=self.package.resolve(item.href)))
        return items

    def from_ncx(self) -> list[ContentItem]:
        """Order of content references in the legacy NCX file.

        References are deduplicated case-insensitively with the fragment
        stripped, keeping the first occurrence. Each is mapped back to its
        manifest item when one exists at the same path.
        """
        ncx_item = self.package.find_ncx()
        if ncx_item is None:
            return []

        ncx_path = self.package.resolve(ncx_item.href)
        content = self.archive.read_text(ncx_path)
        if content is None:
            logger.warning("NCX file %s is declared but missing", ncx_path)
            return []

        root = parse_xml(content)
        if root is None:
            logger.warning("NCX file %s could not be parsed; skipping", ncx_path)
            return []

        # NCX src attributes are relative to the NCX file itself
        ncx_dir = posixpath.dirname(ncx_path)
        by_path: dict[str, ManifestItem] = {}
        for item in self.package.manifest.values():
            by_path.setdefault(self.package.resolve(item.href).lower(), item)

        seen: set[str] = set()
        items = []
        for elem in root.iter(etree.Element):
            if local_name(elem) != "content":
                continue
            src = (elem.get("src") or "").split("#", 1)[0].strip()
            if not src:
                continue
            path = resolve_href(ncx_dir, src)
            key = path.lower()
            if key in seen:
                continue
            seen.add(key)

            item = by_path.get(key)
            if item is None:
                item = ManifestItem(id=src, href=src)
            else:
                # archive lookups are case-sensitive; trust the manifest spelling
                path = self.package.resolve(item.href)
            if not is_content_item(item):
                continue
            items.append(ContentItem(item=item, path=path))

        return items

    def from_archive_scan(self) -> list[ContentItem]:
        """Every HTML-family entry under the package directory."""
        base = f"{self.package.base_dir}/" if self.package.base_dir else ""
        nav_paths = {
            self.package.resolve(item.href).lower()
            for item in self.package.manifest.values()
            if item.is_nav
        }

        candidates = [
            path
            for path in self.archive.paths()
            if path.lower().startswith(base.lower())
            and has_html_extension(path)
            and path.lower() not in nav_paths
        ]
        candidates.sort(key=lambda path: (natural_sort_key(path), path))

        return [
            ContentItem(
                item=ManifestItem(id=path, href=path[len(base):], media_type=XHTML_MEDIA_TYPE),
                path=path,
            )
            for path in candidates
        ]
