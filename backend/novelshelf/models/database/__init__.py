"""Database models package."""

from novelshelf.models.database.base import Base, get_db, init_db
from novelshelf.models.database.novel import Novel
from novelshelf.models.database.chapter import Chapter
from novelshelf.models.database.chapter_variant import ChapterVariant
# Centralized enums
from novelshelf.models.database.enums import VariantType

__all__ = [
    # Base
    "Base",
    "get_db",
    "init_db",
    # Models
    "Novel",
    "Chapter",
    "ChapterVariant",
    # Enums
    "VariantType",
]
