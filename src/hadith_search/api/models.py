"""
API Models

This module defines the Pydantic models used for request/response
validation across the search and history endpoints.

Request fields that carry user input are deliberately loose (``Any``):
their validation lives in the search and history services so that every
malformed value produces the same ``{"error": ...}`` message whether it
arrives over HTTP or from Python.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field, ConfigDict


# ---------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------

class SearchRequest(BaseModel):
    """
    Semantic search request.
    """
    query: Any = Field(default=None, description="Free-text query.")
    page: Any = Field(default=1, description="1-based page number.")

    model_config = ConfigDict(extra="forbid")


class SearchResult(BaseModel):
    """
    Individual search match: the stored hadith plus its similarity score.
    """
    id: int
    hadith_id: str
    source: str
    chapter_no: int
    hadith_no: int
    chapter: str
    chain_indx: str
    text_ar: str
    text_en: str
    similarity: float

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# History Models
# ---------------------------------------------------------------------

class HistorySaveRequest(BaseModel):
    """
    Request to append a query to the caller's search history.
    """
    query_text: Any = Field(default=None, alias="queryText")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class HistoryItem(BaseModel):
    """
    One saved search.
    """
    id: int
    query_text: str
    timestamp: datetime

    model_config = ConfigDict(extra="forbid", from_attributes=True)


class MessageResponse(BaseModel):
    """
    Plain acknowledgement payload.
    """
    message: str

    model_config = ConfigDict(extra="forbid")
