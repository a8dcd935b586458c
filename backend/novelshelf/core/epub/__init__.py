"""EPUB import package."""

from .archive import Archive, open_archive
from .errors import (
    ArchiveFormatError,
    EpubImportError,
    ImportCancelledError,
    InvalidContainerError,
    NoImportableChaptersError,
    NoReadableContentError,
    PersistenceError,
)
from .extractor import ChapterCandidate, extract
from .importer import EpubImporter, ImportedChapter, ImportResult, ImportSummary
from .navigation import ContentItem, NavigationResolver, NavigationStrategy
from .package import (
    ManifestItem,
    PackageDocument,
    load_package,
    parse_package,
    resolve_href,
    resolve_rootfile,
)

__all__ = [
    # Pipeline
    "EpubImporter",
    "ImportResult",
    "ImportSummary",
    "ImportedChapter",
    "Archive",
    "open_archive",
    "ManifestItem",
    "PackageDocument",
    "load_package",
    "parse_package",
    "resolve_href",
    "resolve_rootfile",
    "ContentItem",
    "NavigationResolver",
    "NavigationStrategy",
    "ChapterCandidate",
    "extract",
    # Errors
    "EpubImportError",
    "ArchiveFormatError",
    "InvalidContainerError",
    "NoReadableContentError",
    "NoImportableChaptersError",
    "ImportCancelledError",
    "PersistenceError",
]
