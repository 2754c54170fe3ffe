"""
Hadith Data Models

This module defines the canonical in-memory representation of a single
hadith record as read from the source file and as returned by the vector
store.

Each instance corresponds to ONE row of the ``hadiths`` table. The
embedding vector itself travels separately (see ``VectorStore.bulk_insert``)
so records stay cheap to log and compare.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ConfigDict


class HadithRecord(BaseModel):
    """
    A single hadith, immutable once created.

    This model is the authoritative schema for:
    - Rows parsed from the ingestion CSV
    - Rows written to the ``hadiths`` table
    - Search result mapping
    """

    hadith_id: str = Field(
        ...,
        description="External identifier. Not guaranteed unique across sources.",
    )

    source: str = Field(
        default="",
        description="Name of the originating collection or book.",
    )

    chapter_no: int = Field(..., description="Chapter number within the source.")

    hadith_no: int = Field(..., description="Hadith number within the source.")

    chapter: str = Field(default="", description="Human-readable chapter title.")

    chain_indx: str = Field(default="", description="Narration chain reference.")

    text_ar: str = Field(default="", description="Arabic original.")

    text_en: str = Field(
        default="",
        description="English translation. The only field that is embedded.",
    )

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        arbitrary_types_allowed=False,
    )


class SearchHit(BaseModel):
    """
    One ranked similarity-search match.
    """

    id: int = Field(..., description="Row id; the secondary ranking key.")
    record: HadithRecord
    similarity: float

    model_config = ConfigDict(extra="forbid", frozen=True)

    def as_row(self) -> dict:
        """Flatten into the JSON shape returned by ``POST /search``."""
        return {"id": self.id, **self.record.model_dump(), "similarity": self.similarity}
