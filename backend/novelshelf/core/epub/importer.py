"""EPUB import coordinator.

Runs the pipeline for one uploaded archive:

    archive -> container -> package -> navigation -> extract -> filter

and then hands the surviving chapters to a ``ChapterStore``, numbering them
after the novel's current last chapter. Extraction is pure and can be used
on its own (e.g. for a preview); persistence is a separate step so that the
caller decides which novel receives the chapters.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

from novelshelf.config import settings
from novelshelf.core.chapter_store import ChapterStore, NewChapter, NewChapterVariant
from novelshelf.core.content_classifier import (
    DEFAULT_CONFIG,
    ContentClassifier,
    ExclusionReason,
    ImportConfig,
)
from novelshelf.models.database.enums import VariantType

from .archive import Archive, open_archive
from .errors import (
    ImportCancelledError,
    NoImportableChaptersError,
    NoReadableContentError,
    PersistenceError,
)
from .extractor import extract
from .navigation import ContentItem, NavigationResolver, NavigationStrategy
from .package import load_package

logger = logging.getLogger(__name__)

# Attribution stored on every variant created by this importer
SOURCE_ATTRIBUTION = "epub"

ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


@dataclass
class ImportedChapter:
    """A chapter that survived filtering."""

    title: str
    text: str
    # False when the title is a "Chapter N" placeholder
    has_source_title: bool = True


@dataclass
class ImportResult:
    """Everything extracted from one archive."""

    novel_title_guess: Optional[str]
    author_guess: Optional[str]
    chapters: list[ImportedChapter]
    language_guess: Optional[str] = None
    strategy: Optional[NavigationStrategy] = None
    excluded: dict[str, ExclusionReason] = field(default_factory=dict)  # path -> reason


@dataclass
class ImportSummary:
    """What was written to the store."""

    novel_id: int
    chapter_ids: list[int] = field(default_factory=list)
    sequences: list[int] = field(default_factory=list)

    @property
    def imported_chapters(self) -> int:
        return len(self.chapter_ids)


def placeholder_title(number: int) -> str:
    return f"Chapter {number}"


async def _report(on_progress: Optional[ProgressCallback], processed: int, total: int) -> None:
    if on_progress is None:
        return
    outcome = on_progress(processed, total)
    if inspect.isawaitable(outcome):
        await outcome


def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ImportCancelledError()


class EpubImporter:
    """Import chapters from an EPUB archive.

    Usage:
        importer = EpubImporter()
        result = await importer.extract(data)
        summary = await importer.persist(result, store, novel_id, language="en")

        # Or both steps at once
        summary = await importer.import_into(data, store, novel_id)
    """

    def __init__(
        self,
        config: ImportConfig = DEFAULT_CONFIG,
        classifier: Optional[ContentClassifier] = None,
    ):
        self.config = config
        self.classifier = classifier or ContentClassifier(config)

    async def extract(
        self,
        data: bytes,
        *,
        title_fallback: Optional[str] = None,
        author_fallback: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ImportResult:
        """Extract and filter every readable item of an archive.

        Args:
            data: Raw EPUB bytes
            title_fallback: Novel title to use when the package has none
            author_fallback: Author to use when the package has none
            on_progress: Called with (processed, total) after each candidate,
                kept or excluded; may be a coroutine function
            cancel_event: Checked before each item

        Returns:
            ImportResult with chapters in reading order

        Raises:
            ArchiveFormatError, InvalidContainerError, NoReadableContentError,
            NoImportableChaptersError, ImportCancelledError
        """
        logger.info("Importing EPUB (%d bytes)", len(data))

        with open_archive(data) as archive:
            package = load_package(archive)
            navigation = NavigationResolver(archive, package).resolve()

            excluded: dict[str, ExclusionReason] = {}
            candidates = self._structural_filter(navigation.items, excluded)
            if not candidates:
                # Covers and title pages only: nothing readable to offer
                raise NoReadableContentError()

            chapters: list[ImportedChapter] = []
            total = len(candidates)

            for processed, content in enumerate(candidates, start=1):
                _check_cancelled(cancel_event)
                await asyncio.sleep(0)  # let the host interleave UI updates

                chapter = self._process_item(archive, content, len(chapters) + 1, excluded)
                if chapter is not None:
                    chapters.append(chapter)

                await _report(on_progress, processed, total)

        logger.info(
            "Extracted %d chapters from %d items (%d excluded) using %s strategy",
            len(chapters),
            len(navigation.items),
            len(excluded),
            navigation.strategy.value,
        )

        if not chapters:
            raise NoImportableChaptersError()

        return ImportResult(
            novel_title_guess=package.metadata.title or title_fallback,
            author_guess=package.metadata.creator or author_fallback,
            chapters=chapters,
            language_guess=package.metadata.language,
            strategy=navigation.strategy,
            excluded=excluded,
        )

    def _structural_filter(
        self,
        items: list[ContentItem],
        excluded: dict[str, ExclusionReason],
    ) -> list[ContentItem]:
        """Drop covers and title pages before any markup is read."""
        kept = []
        for content in items:
            reason = self.classifier.structural_exclusion(content.item)
            if reason is None:
                kept.append(content)
                continue
            logger.debug("Excluded %s before extraction: %s", content.path, reason.value)
            excluded[content.path] = reason
        return kept

    def _process_item(
        self,
        archive: Archive,
        content: ContentItem,
        number: int,
        excluded: dict[str, ExclusionReason],
    ) -> Optional[ImportedChapter]:
        """Extract one candidate and apply the content checks; None means skipped."""
        candidate = extract(archive, content.path, source_id=content.item.id)
        if candidate is None:
            logger.warning("Skipping %s: entry missing or unreadable", content.path)
            return None

        reason = self.classifier.content_exclusion(candidate.title, candidate.body_text)
        if reason is not None:
            logger.debug(
                "Excluded %s (title=%r): %s", content.path, candidate.title, reason.value
            )
            excluded[content.path] = reason
            return None

        return ImportedChapter(
            title=candidate.title or placeholder_title(number),
            text=candidate.body_text,
            has_source_title=candidate.title is not None,
        )

    async def persist(
        self,
        result: ImportResult,
        store: ChapterStore,
        novel_id: int,
        *,
        language: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ImportSummary:
        """Write chapters in order, one sequence number per chapter.

        The store's writes are not rolled back here. On PersistenceError or
        ImportCancelledError the caller must discard its transaction to keep
        the novel free of half an import.

        Raises:
            PersistenceError: If the store fails; reports chapters already written
            ImportCancelledError: If cancel_event is set between chapters
        """
        summary = ImportSummary(novel_id=novel_id)
        total = len(result.chapters)

        for chapter in result.chapters:
            _check_cancelled(cancel_event)

            try:
                seq = await store.next_sequence(novel_id)
                title = chapter.title if chapter.has_source_title else placeholder_title(seq)
                chapter_id = await store.add_chapter(
                    NewChapter(novel_id=novel_id, seq=seq, display_title=title)
                )
                await store.add_variant(
                    NewChapterVariant(
                        chapter_id=chapter_id,
                        variant_type=VariantType.RAW,
                        lang=language,
                        title=title,
                        content=chapter.text,
                        provider=SOURCE_ATTRIBUTION,
                        is_primary=False,
                    )
                )
            except Exception as e:
                logger.error(
                    "Persisting chapter %d/%d for novel %s failed: %s",
                    summary.imported_chapters + 1,
                    total,
                    novel_id,
                    e,
                )
                raise PersistenceError(summary.imported_chapters, e) from e

            summary.chapter_ids.append(chapter_id)
            summary.sequences.append(seq)
            await _report(on_progress, summary.imported_chapters, total)

        logger.info(
            "Stored %d chapters for novel %s (seq %s-%s)",
            summary.imported_chapters,
            novel_id,
            summary.sequences[0] if summary.sequences else "-",
            summary.sequences[-1] if summary.sequences else "-",
        )
        return summary

    async def import_into(
        self,
        data: bytes,
        store: ChapterStore,
        novel_id: int,
        *,
        language: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ImportSummary:
        """Extract an archive and append its chapters to an existing novel."""
        result = await self.extract(
            data, on_progress=on_progress, cancel_event=cancel_event
        )
        return await self.persist(
            result,
            store,
            novel_id,
            language=language or result.language_guess or settings.default_language,
            cancel_event=cancel_event,
        )
