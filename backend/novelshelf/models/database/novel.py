"""Novel database model."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from novelshelf.models.database.base import Base
from novelshelf.models.database.mixins import TimestampMixin

if TYPE_CHECKING:
    from novelshelf.models.database.chapter import Chapter


class Novel(TimestampMixin, Base):
    """A novel in the library catalog."""

    __tablename__ = "novels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    cover_path: Mapped[Optional[str]] = mapped_column(String(500))
    lang_original: Mapped[Optional[str]] = mapped_column(String(20))
    status: Mapped[Optional[str]] = mapped_column(String(20))
    slug: Mapped[Optional[str]] = mapped_column(String(255))

    # Relationships
    chapters: Mapped[list["Chapter"]] = relationship(
        "Chapter", back_populates="novel", cascade="all, delete-orphan"
    )
