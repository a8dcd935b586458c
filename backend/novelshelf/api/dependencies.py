"""API dependencies for catalog lookups."""

from typing import Annotated

from fastapi import Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from novelshelf.core.chapter_store import SqlAlchemyChapterStore
from novelshelf.models.database.base import get_db
from novelshelf.models.database.novel import Novel


async def get_chapter_store(db: AsyncSession = Depends(get_db)) -> SqlAlchemyChapterStore:
    """Chapter store bound to the request's session."""
    return SqlAlchemyChapterStore(db)


async def get_validated_novel(
    novel_id: Annotated[int, Path(description="Novel ID")],
    store: SqlAlchemyChapterStore = Depends(get_chapter_store),
) -> Novel:
    """Get a novel or fail with 404.

    Raises:
        HTTPException: 404 if the novel does not exist
    """
    novel = await store.get_novel(novel_id)
    if novel is None:
        raise HTTPException(status_code=404, detail="Novel not found")
    return novel


# Type aliases for cleaner dependency injection
ChapterStoreDep = Annotated[SqlAlchemyChapterStore, Depends(get_chapter_store)]
ValidatedNovel = Annotated[Novel, Depends(get_validated_novel)]
