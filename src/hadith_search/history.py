"""
Search History

Saving a query for a user, with suppression of immediate repeats, and the
best-effort variant used after a successful search.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db.history_store import HistoryStore

logger = logging.getLogger("hadith.history")


class HistoryLog(Protocol):
    async def latest_query_text(self, user_id: str) -> str | None: ...

    async def append(self, user_id: str, query_text: str) -> None: ...


async def save_query(store: HistoryLog, user_id: str, query_text: str) -> bool:
    """
    Append ``query_text`` to the user's history unless it repeats the
    user's most recent entry.

    Returns
    -------
    bool
        True if a row was inserted.
    """
    if await store.latest_query_text(user_id) == query_text:
        return False

    await store.append(user_id, query_text)
    return True


async def save_query_best_effort(
    sessionmaker: async_sessionmaker[AsyncSession],
    user_id: str,
    query_text: str,
) -> None:
    """
    Background-task form of ``save_query``.

    Runs in its own session after the search response is prepared. Any
    failure is logged and dropped; it never reaches the search caller.
    """
    try:
        async with sessionmaker() as session:
            saved = await save_query(HistoryStore(session), user_id, query_text)
    except Exception:
        logger.exception("Failed to save search history for user %s", user_id)
        return

    if saved:
        logger.debug("Saved search history for user %s", user_id)
