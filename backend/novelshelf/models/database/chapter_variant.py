"""Chapter variant database model."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from novelshelf.models.database.base import Base
from novelshelf.models.database.enums import VariantType
from novelshelf.models.database.mixins import TimestampMixin

if TYPE_CHECKING:
    from novelshelf.models.database.chapter import Chapter


class ChapterVariant(TimestampMixin, Base):
    """One rendition (raw, translated, ...) of a chapter's text."""

    __tablename__ = "chapter_variants"
    __table_args__ = (UniqueConstraint("chapter_id", "variant_type", "lang"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    chapter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False
    )

    variant_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VariantType.RAW.value
    )
    lang: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(500))
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Attribution
    source_url: Mapped[Optional[str]] = mapped_column(String(1000))
    provider: Mapped[Optional[str]] = mapped_column(String(50))  # 'epub', 'deepl', ...
    model_name: Mapped[Optional[str]] = mapped_column(String(100))

    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    chapter: Mapped["Chapter"] = relationship("Chapter", back_populates="variants")
