"""
Search Routes

This module defines the semantic search endpoint backed by the pgvector
hadith store.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from typing import List, Annotated, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import SearchRequest, SearchResult
from .dependencies import get_embedder, get_vector_store
from ..auth.models import UserContext
from ..auth.security import lenient_user
from ..config import settings
from ..db import VectorStore, get_sessionmaker
from ..embeddings.embedder import Embedder
from ..history import save_query_best_effort
from ..search.query import search_hadiths

router = APIRouter(tags=["search"])


@router.post(
    "/search",
    response_model=List[SearchResult],
    summary="Semantic hadith search",
    status_code=status.HTTP_200_OK,
)
async def search(
    req: SearchRequest,
    background_tasks: BackgroundTasks,
    user: Annotated[Optional[UserContext], Depends(lenient_user)],
    embedder: Annotated[Embedder, Depends(get_embedder)],
    vector_store: Annotated[VectorStore, Depends(get_vector_store)],
    sessionmaker: Annotated[async_sessionmaker[AsyncSession], Depends(get_sessionmaker)],
) -> List[SearchResult]:
    """
    Return one page of hadiths ranked by similarity to the query.

    Parameters
    ----------
    req : SearchRequest
        Contains:
        - query: Search query string
        - page: 1-based page number (default 1)

    user : Optional[UserContext]
        Present when the caller sent a valid bearer token. The query is then
        saved to the user's history after the response is sent. An invalid
        token is served as anonymous.

    Returns
    -------
    List[SearchResult]
        At most one page of ranked matches.
    """
    # InvalidArgument and RetrievalError are mapped to 400/500 by the
    # handlers registered in main.create_app.
    hits = await search_hadiths(
        query=req.query,
        page=req.page,
        embedder=embedder,
        vector_store=vector_store,
        page_size=settings.search_page_size,
        timeout=settings.search_timeout_seconds,
    )

    if user is not None:
        background_tasks.add_task(
            save_query_best_effort,
            sessionmaker,
            user.user_id,
            req.query.strip(),
        )

    return [SearchResult(**hit.as_row()) for hit in hits]
