"""Chapter database model."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from novelshelf.models.database.base import Base
from novelshelf.models.database.mixins import TimestampMixin

if TYPE_CHECKING:
    from novelshelf.models.database.novel import Novel
    from novelshelf.models.database.chapter_variant import ChapterVariant


class Chapter(TimestampMixin, Base):
    """Chapter slot within a novel.

    The text itself lives in one or more ChapterVariant rows; ``seq`` is the
    reading order and is never reused within a novel.
    """

    __tablename__ = "chapters"
    __table_args__ = (UniqueConstraint("novel_id", "seq"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    novel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("novels.id", ondelete="CASCADE"), nullable=False
    )

    # Chapter info
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    volume: Mapped[Optional[int]] = mapped_column(Integer)
    display_title: Mapped[Optional[str]] = mapped_column(String(500))

    # Relationships
    novel: Mapped["Novel"] = relationship("Novel", back_populates="chapters")
    variants: Mapped[list["ChapterVariant"]] = relationship(
        "ChapterVariant", back_populates="chapter", cascade="all, delete-orphan"
    )
