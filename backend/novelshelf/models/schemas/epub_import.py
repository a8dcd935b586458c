"""EPUB import response schemas."""

from typing import Optional

from pydantic import BaseModel


class EpubImportResponse(BaseModel):
    """Outcome of a completed EPUB import."""

    novel_id: int
    title: str
    author: Optional[str] = None
    imported_chapters: int
    first_sequence: int
    last_sequence: int
    excluded_items: int = 0
