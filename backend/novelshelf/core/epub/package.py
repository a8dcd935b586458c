"""Container and package document (OPF) parsing.

The container descriptor is scanned for a single attribute; the package
document is parsed with lxml in recover mode so that the malformed OPF files
common in the wild still yield whatever manifest and spine entries they have.
Elements are matched by local name, so documents with missing or unusual
namespace declarations parse the same way as conforming ones.
"""

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import unquote

from lxml import etree

from novelshelf.utils.text import collapse_whitespace, decode_entities

from .archive import Archive, normalize_entry_path
from .errors import InvalidContainerError

logger = logging.getLogger(__name__)


# =============================================================================
# Standard locations and media types (fixed by the EPUB standard)
# =============================================================================

CONTAINER_PATH = "META-INF/container.xml"

NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
XHTML_MEDIA_TYPE = "application/xhtml+xml"

_FULL_PATH_RE = re.compile(r"""\bfull-path\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
_XML_DECLARATION_RE = re.compile(r"^[^<]*<\?xml[^>]*\?>")
_LEADING_JUNK_RE = re.compile(r"^[^<]+")
_HTML_MEDIA_TYPE_RE = re.compile(r"x?html", re.IGNORECASE)
_HTML_EXTENSION_RE = re.compile(r"\.x?html?$", re.IGNORECASE)


@dataclass(frozen=True)
class ManifestItem:
    """A file declared in the package manifest.

    ``href`` is kept exactly as declared; resolve it with ``resolve_href``
    against the package document's directory at the point of use.
    """

    id: str
    href: str
    media_type: str = ""
    properties: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_nav(self) -> bool:
        return "nav" in self.properties

    @property
    def is_ncx(self) -> bool:
        return NCX_MEDIA_TYPE in self.media_type.lower()

    @property
    def is_html(self) -> bool:
        return is_html_media_type(self.media_type) or has_html_extension(self.href)


@dataclass
class PackageMetadata:
    """Best-effort Dublin Core fields from the <metadata> block."""

    title: Optional[str] = None
    creator: Optional[str] = None
    language: Optional[str] = None


@dataclass
class PackageDocument:
    """Parsed package document."""

    manifest: dict[str, ManifestItem]
    spine: list[str]
    base_dir: str
    metadata: PackageMetadata = field(default_factory=PackageMetadata)

    def resolve(self, href: str) -> str:
        """Resolve a manifest href to an archive path."""
        return resolve_href(self.base_dir, href)

    def find_ncx(self) -> Optional[ManifestItem]:
        """First manifest item with the NCX media type, if any."""
        for item in self.manifest.values():
            if item.is_ncx:
                return item
        return None


def is_html_media_type(media_type: str) -> bool:
    return bool(_HTML_MEDIA_TYPE_RE.search(media_type or ""))


def has_html_extension(path: str) -> bool:
    return bool(_HTML_EXTENSION_RE.search(path))


def resolve_href(base_dir: str, href: str) -> str:
    """Resolve an href against a directory inside the archive.

    The href is percent-decoded, then its segments are applied to a stack
    seeded with ``base_dir``: "." and empty segments are skipped and ".."
    pops one segment (popping an empty stack does nothing). An href that
    starts with "/" is taken from the archive root and ignores ``base_dir``.

    Examples:
        resolve_href("OEBPS", "../images/x.png")      -> "images/x.png"
        resolve_href("OEBPS/text", "./ch1.xhtml")     -> "OEBPS/text/ch1.xhtml"
        resolve_href("OEBPS", "/Text/ch1.xhtml")      -> "Text/ch1.xhtml"

    Returns:
        Archive-relative path without a leading slash
    """
    href = unquote(href)
    if href.startswith("/"):
        stack: list[str] = []
    else:
        stack = [segment for segment in base_dir.split("/") if segment]

    for segment in href.split("/"):
        if not segment or segment == ".":
            continue
        if segment == "..":
            if stack:
                stack.pop()
            continue
        stack.append(segment)

    return "/".join(stack)


def resolve_rootfile(archive: Archive) -> str:
    """Read the container descriptor and return the package document path.

    Raises:
        InvalidContainerError: If the descriptor is absent or names no path
    """
    container = archive.read_text(CONTAINER_PATH)
    if container is None:
        raise InvalidContainerError()

    match = _FULL_PATH_RE.search(container)
    rootfile = normalize_entry_path(decode_entities(match.group(2)).strip()) if match else ""
    if not rootfile:
        raise InvalidContainerError("Invalid EPUB: missing rootfile path.")
    return rootfile


def load_package(archive: Archive) -> PackageDocument:
    """Resolve the rootfile and parse the package document it names.

    Raises:
        InvalidContainerError: If the container is broken or the package
            document it points to does not exist
    """
    rootfile = resolve_rootfile(archive)
    data = archive.read_text(rootfile)
    if data is None:
        raise InvalidContainerError(f"Invalid EPUB: package document {rootfile} not found.")
    return parse_package(data, rootfile)


def parse_package(content: bytes | str, rootfile_path: str) -> PackageDocument:
    """Parse a package document into manifest, spine and metadata.

    Manifest items without an id or href are dropped, as are spine entries
    that do not name a manifest item. Neither is an error.

    Args:
        content: Raw package document
        rootfile_path: Archive path of the document; its directory becomes
            the resolution root for every manifest href

    Returns:
        PackageDocument (possibly with an empty manifest/spine)
    """
    base_dir = posixpath.dirname(normalize_entry_path(rootfile_path))
    root = parse_xml(content)
    if root is None:
        logger.warning("Package document %s could not be parsed", rootfile_path)
        return PackageDocument(manifest={}, spine=[], base_dir=base_dir)

    manifest: dict[str, ManifestItem] = {}
    spine: list[str] = []
    metadata = PackageMetadata()

    for elem in root.iter(etree.Element):
        tag = local_name(elem)

        if tag == "item":
            item_id = (elem.get("id") or "").strip()
            href = (elem.get("href") or "").strip()
            if not item_id or not href:
                continue
            if item_id in manifest:
                logger.debug("Duplicate manifest id %s ignored", item_id)
                continue
            manifest[item_id] = ManifestItem(
                id=item_id,
                href=href,
                media_type=(elem.get("media-type") or "").strip(),
                properties=frozenset((elem.get("properties") or "").split()),
            )

        elif tag == "itemref":
            idref = (elem.get("idref") or "").strip()
            if idref:
                spine.append(idref)

        elif tag == "metadata":
            metadata = _parse_metadata(elem)

    resolved_spine = [idref for idref in spine if idref in manifest]
    if len(resolved_spine) != len(spine):
        logger.warning(
            "Dropped %d spine entries with no manifest item",
            len(spine) - len(resolved_spine),
        )

    return PackageDocument(
        manifest=manifest,
        spine=resolved_spine,
        base_dir=base_dir,
        metadata=metadata,
    )


def _parse_metadata(metadata_elem: etree._Element) -> PackageMetadata:
    """Take the first title, creator and language element."""
    found: dict[str, str] = {}
    for elem in metadata_elem.iter(etree.Element):
        tag = local_name(elem)
        if tag in ("title", "creator", "language") and tag not in found:
            text = collapse_whitespace("".join(elem.itertext()))
            if text:
                found[tag] = text

    return PackageMetadata(
        title=found.get("title"),
        creator=found.get("creator"),
        language=found.get("language"),
    )


def parse_xml(content: bytes | str) -> Optional[etree._Element]:
    """Parse XML leniently, returning None when nothing can be recovered."""
    if isinstance(content, str):
        # lxml refuses str input that carries an encoding declaration
        content = _XML_DECLARATION_RE.sub("", content, count=1)
        content = _LEADING_JUNK_RE.sub("", content, count=1)

    # Use recover=True to handle malformed XML gracefully
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        return etree.fromstring(content, parser)
    except (etree.XMLSyntaxError, ValueError):
        return None


def local_name(elem: etree._Element) -> str:
    """Tag name without namespace or prefix."""
    tag = elem.tag
    if "}" in tag:
        tag = tag.split("}", 1)[1]
    # recover mode keeps undeclared prefixes such as "dc:title" in the name
    return tag.rsplit(":", 1)[-1]
