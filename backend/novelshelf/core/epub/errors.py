"""Errors raised by the EPUB import pipeline.

Only these exceptions leave the pipeline. Every other anomaly (a manifest
item without an href, an unreadable entry, a broken NCX file) is logged and
skipped where it happens.
"""

from typing import Optional


class EpubImportError(Exception):
    """Base class for import failures that end the whole import."""

    default_message = "EPUB import failed."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class ArchiveFormatError(EpubImportError):
    """The uploaded blob is not a readable zip container."""

    default_message = "Invalid EPUB: the file is not a zip archive."


class InvalidContainerError(EpubImportError):
    """META-INF/container.xml is missing or names no package document."""

    default_message = "Invalid EPUB: missing META-INF/container.xml."


class NoReadableContentError(EpubImportError):
    """Spine, NCX and archive scan found nothing but covers, or nothing at all."""

    default_message = "No readable chapters found in EPUB."


class NoImportableChaptersError(EpubImportError):
    """Content was found, but every entry was filtered out."""

    default_message = (
        "The EPUB has content, but every entry looked like a cover, "
        "table of contents or other front matter."
    )


class ImportCancelledError(EpubImportError):
    """The caller cancelled the import between two items."""

    default_message = "EPUB import was cancelled."


class PersistenceError(EpubImportError):
    """The chapter store failed part-way through an import.

    Attributes:
        persisted_count: Chapters written before the failure
        cause: The exception raised by the store
    """

    def __init__(self, persisted_count: int, cause: BaseException):
        self.persisted_count = persisted_count
        self.cause = cause
        super().__init__(
            f"Saving chapters failed after {persisted_count} chapter(s): {cause}"
        )
