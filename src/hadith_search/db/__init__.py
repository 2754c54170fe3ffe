"""
Database Package

Provides SQLAlchemy async session management and model definitions
for PostgreSQL with pgvector.
"""

from .session import (
    build_engine,
    build_sessionmaker,
    get_async_session,
    get_sessionmaker,
    init_models,
)
from .models import Base, Hadith, SearchHistory
from .vector_store import VectorStore
from .history_store import HistoryStore

__all__ = [
    "build_engine",
    "build_sessionmaker",
    "get_async_session",
    "get_sessionmaker",
    "init_models",
    "Base",
    "Hadith",
    "SearchHistory",
    "VectorStore",
    "HistoryStore",
]
