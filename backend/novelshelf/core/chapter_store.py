"""Chapter persistence used by the import pipeline.

The importer only talks to the ``ChapterStore`` protocol, so it can be driven
against the SQLAlchemy implementation below or any test double. Stores add
rows to the caller's transaction and never commit; whoever owns the session
decides whether a finished (or failed) import becomes visible.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from novelshelf.models.database.chapter import Chapter
from novelshelf.models.database.chapter_variant import ChapterVariant
from novelshelf.models.database.enums import VariantType
from novelshelf.models.database.novel import Novel
from novelshelf.utils.text import safe_truncate

# Column widths in the models
MAX_TITLE_LENGTH = 500
MAX_AUTHOR_LENGTH = 255


@dataclass
class NewChapter:
    novel_id: int
    seq: int
    display_title: Optional[str]
    volume: Optional[int] = None


@dataclass
class NewChapterVariant:
    chapter_id: int
    lang: str
    title: Optional[str]
    content: str
    variant_type: VariantType = VariantType.RAW
    provider: Optional[str] = None  # source attribution, e.g. "epub"
    source_url: Optional[str] = None
    model_name: Optional[str] = None
    is_primary: bool = False


class ChapterStore(Protocol):
    """What the importer needs from the catalog."""

    async def next_sequence(self, novel_id: int) -> int:
        """Next unused chapter sequence number for a novel."""
        ...

    async def add_chapter(self, chapter: NewChapter) -> int:
        """Insert a chapter and return its id."""
        ...

    async def add_variant(self, variant: NewChapterVariant) -> int:
        """Insert a chapter variant and return its id."""
        ...


class SqlAlchemyChapterStore:
    """ChapterStore backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_sequence(self, novel_id: int) -> int:
        # The (novel_id, seq) unique constraint rejects a number handed out twice
        result = await self.db.execute(
            select(func.coalesce(func.max(Chapter.seq), 0)).where(Chapter.novel_id == novel_id)
        )
        return int(result.scalar_one()) + 1

    async def add_chapter(self, chapter: NewChapter) -> int:
        row = Chapter(
            novel_id=chapter.novel_id,
            seq=chapter.seq,
            volume=chapter.volume,
            display_title=safe_truncate(chapter.display_title, MAX_TITLE_LENGTH),
        )
        self.db.add(row)
        await self.db.flush()  # Get row.id
        return row.id

    async def add_variant(self, variant: NewChapterVariant) -> int:
        row = ChapterVariant(
            chapter_id=variant.chapter_id,
            variant_type=variant.variant_type.value,
            lang=variant.lang,
            title=safe_truncate(variant.title, MAX_TITLE_LENGTH),
            content=variant.content,
            source_url=variant.source_url,
            provider=variant.provider,
            model_name=variant.model_name,
            is_primary=variant.is_primary,
        )
        self.db.add(row)
        await self.db.flush()
        return row.id

    async def get_novel(self, novel_id: int) -> Optional[Novel]:
        result = await self.db.execute(select(Novel).where(Novel.id == novel_id))
        return result.scalar_one_or_none()

    async def create_novel(
        self,
        title: str,
        author: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Novel:
        """Insert a catalog entry for an imported book."""
        novel = Novel(
            title=safe_truncate(title, MAX_TITLE_LENGTH),
            author=safe_truncate(author, MAX_AUTHOR_LENGTH),
            lang_original=language,
        )
        self.db.add(novel)
        await self.db.flush()  # Get novel.id
        return novel
