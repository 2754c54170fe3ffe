"""
History Store

PostgreSQL-backed, append-only log of search queries per user.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import SearchHistory
from ..core.errors import StoreError


class HistoryStore:
    """
    Read and append search history rows for a user.

    Rows are never updated or deleted by this class.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def recent(self, user_id: str, limit: int = 50) -> List[SearchHistory]:
        """
        Return up to ``limit`` entries for ``user_id``, newest first.
        """
        stmt = (
            select(SearchHistory)
            .where(SearchHistory.user_id == user_id)
            .order_by(SearchHistory.timestamp.desc(), SearchHistory.id.desc())
            .limit(limit)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"History lookup failed: {type(exc).__name__}") from exc
        return list(result.scalars().all())

    async def latest_query_text(self, user_id: str) -> Optional[str]:
        """
        Return the query text of the user's most recent entry, if any.
        """
        stmt = (
            select(SearchHistory.query_text)
            .where(SearchHistory.user_id == user_id)
            .order_by(SearchHistory.timestamp.desc(), SearchHistory.id.desc())
            .limit(1)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"History lookup failed: {type(exc).__name__}") from exc
        return result.scalar_one_or_none()

    async def append(self, user_id: str, query_text: str) -> None:
        """
        Insert a new entry and commit it.
        """
        self._session.add(SearchHistory(user_id=user_id, query_text=query_text))
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise StoreError(f"History insert failed: {type(exc).__name__}") from exc
