"""
Semantic Hadith Search

Responsibilities
----------------
- Validate the query string and page number
- Embed the trimmed query
- Translate the page number into a row offset
- Run the ranked similarity search

Every call re-embeds the query. Results come back exactly as the store
ranked them; nothing is filtered or re-ranked here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Tuple

from ..core.errors import InvalidArgument, ProviderError, RetrievalError, StoreError
from ..db.vector_store import VectorStore
from ..embeddings.embedder import Embedder
from ..embeddings.models import SearchHit

logger = logging.getLogger("hadith.search")

DEFAULT_PAGE_SIZE = 5


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------

def validate_search_input(query: Any, page: Any) -> Tuple[str, int]:
    """
    Return the trimmed query and the page number, or raise.

    Raises
    ------
    InvalidArgument
        If the query is not a non-blank string, or the page is not a
        positive integer. Booleans and floats (even ``2.0``) are rejected.
    """
    if not isinstance(query, str) or not query.strip():
        raise InvalidArgument("query required")

    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise InvalidArgument("page must be a positive integer")

    return query.strip(), page


def page_offset(page: int, page_size: int) -> int:
    return (page - 1) * page_size


# ---------------------------------------------------------------------
# Main Search
# ---------------------------------------------------------------------

async def search_hadiths(
    query: Any,
    page: Any,
    embedder: Embedder,
    vector_store: VectorStore,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout: float = 8.0,
) -> List[SearchHit]:
    """
    Return one page of hadiths ranked by similarity to ``query``.

    Parameters
    ----------
    query : Any
        Free-text query. Surrounding whitespace is ignored.

    page : Any
        1-based page number.

    embedder : Embedder
        Produces the query vector.

    vector_store : VectorStore
        Store holding the embedded hadiths.

    page_size : int
        Rows per page.

    timeout : float
        Seconds allowed for each of the embedding call and the store call.

    Returns
    -------
    List[SearchHit]
        At most ``page_size`` ranked matches.

    Raises
    ------
    InvalidArgument
        For malformed input. Nothing external is called in that case.

    RetrievalError
        If the embedding provider or the store fails or times out.
    """
    text, page = validate_search_input(query, page)
    offset = page_offset(page, page_size)

    try:
        vector = await asyncio.wait_for(embedder.embed_one(text), timeout)
    except asyncio.TimeoutError as exc:
        raise RetrievalError("Embedding the query timed out.") from exc
    except ProviderError as exc:
        raise RetrievalError(f"Embedding the query failed: {exc}") from exc

    try:
        hits = await asyncio.wait_for(
            vector_store.similarity_search(vector, limit=page_size, offset=offset),
            timeout,
        )
    except asyncio.TimeoutError as exc:
        raise RetrievalError("Similarity search timed out.") from exc
    except StoreError as exc:
        raise RetrievalError(f"Similarity search failed: {exc}") from exc

    logger.debug("Query %r page %d returned %d rows", text, page, len(hits))
    return hits
