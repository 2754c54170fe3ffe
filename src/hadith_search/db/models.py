"""
SQLAlchemy Models

Defines the database schema for:
- Hadith records with their embeddings (vector storage with pgvector)
- Per-user search history
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Integer,
    Text,
    DateTime,
    Index,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from ..config import settings
from ..embeddings.models import HadithRecord


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ---------------------------------------------------------------------
# Hadith Model
# ---------------------------------------------------------------------

class Hadith(Base):
    """
    A hadith record and its ``text_en`` embedding.

    ``id`` is the secondary ranking key for similarity search, which keeps
    the ordering total when two rows are equally similar to a query.
    """
    __tablename__ = "hadiths"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hadith_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="")
    chapter_no: Mapped[int] = mapped_column(Integer, nullable=False)
    hadith_no: Mapped[int] = mapped_column(Integer, nullable=False)
    chapter: Mapped[str] = mapped_column(Text, nullable=False, default="")
    chain_indx: Mapped[str] = mapped_column(Text, nullable=False, default="")
    text_ar: Mapped[str] = mapped_column(Text, nullable=False, default="")
    text_en: Mapped[str] = mapped_column(Text, nullable=False, default="")

    embedding = Column(Vector(settings.embedding_dim), nullable=False)

    __table_args__ = (
        Index("idx_hadiths_source_no", "source", "hadith_no"),
    )

    @classmethod
    def from_record(cls, record: HadithRecord, embedding: list[float]) -> "Hadith":
        return cls(**record.model_dump(), embedding=embedding)

    def to_record(self) -> HadithRecord:
        return HadithRecord(
            hadith_id=self.hadith_id,
            source=self.source,
            chapter_no=self.chapter_no,
            hadith_no=self.hadith_no,
            chapter=self.chapter,
            chain_indx=self.chain_indx,
            text_ar=self.text_ar,
            text_en=self.text_en,
        )


# ---------------------------------------------------------------------
# Search History Model
# ---------------------------------------------------------------------

class SearchHistory(Base):
    """
    One saved search query for a user. Append-only.
    """
    __tablename__ = "search_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    query_text: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_history_user_time", "user_id", "timestamp"),
    )
