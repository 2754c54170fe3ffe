from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import VectorStore, HistoryStore, get_async_session
from ..embeddings.embedder import Embedder


def get_embedder(request: Request) -> Embedder:
    return request.app.state.embedder


async def get_vector_store(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[VectorStore, None]:
    yield VectorStore(session)


async def get_history_store(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[HistoryStore, None]:
    yield HistoryStore(session)
