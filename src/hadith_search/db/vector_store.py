"""
Vector Store

PostgreSQL + pgvector based storage and similarity search for hadiths.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Set, Tuple

from sqlalchemy import Select, select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Hadith
from ..core.errors import InvalidArgument, StoreError
from ..embeddings.models import HadithRecord, SearchHit


def batch_range(records: Sequence[HadithRecord]) -> str:
    """
    Identify a batch by its first and last ``hadith_no`` for log messages.
    """
    if not records:
        return "empty batch"
    return f"hadith_no {records[0].hadith_no}-{records[-1].hadith_no}"


class VectorStore:
    """
    PostgreSQL-backed vector store using pgvector for similarity search.

    Writes are flushed but not committed; the caller decides when a batch
    is complete and calls ``commit()`` or ``rollback()``.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize with an async database session.

        Parameters
        ----------
        session : AsyncSession
            SQLAlchemy async session for database operations.
        """
        self._session = session

    async def commit(self) -> None:
        """
        Commit the current transaction.
        """
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Commit failed: {type(exc).__name__}") from exc

    async def rollback(self) -> None:
        """
        Discard everything flushed since the last commit.
        """
        try:
            await self._session.rollback()
        except SQLAlchemyError as exc:
            raise StoreError(f"Rollback failed: {type(exc).__name__}") from exc

    async def bulk_insert(
        self,
        rows: Sequence[Tuple[HadithRecord, List[float]]],
    ) -> int:
        """
        Add hadith records with their embeddings.

        Parameters
        ----------
        rows : Sequence[Tuple[HadithRecord, List[float]]]
            Records paired with the embedding of their ``text_en``.

        Returns
        -------
        int
            Number of rows added.

        Raises
        ------
        StoreError
            If the flush fails. The message names the batch range.
        """
        if not rows:
            return 0

        self._session.add_all(
            [Hadith.from_record(record, embedding) for record, embedding in rows]
        )

        try:
            await self._session.flush()
        except SQLAlchemyError as exc:
            records = [record for record, _ in rows]
            raise StoreError(
                f"Insert failed for {batch_range(records)}: {type(exc).__name__}"
            ) from exc

        return len(rows)

    @staticmethod
    def similarity_query(
        query_embedding: List[float],
        limit: int,
        offset: int,
    ) -> Select:
        """
        Build the ranked similarity statement.

        Rows are ordered by cosine distance, then by ``id`` so that equal
        scores always come back in the same order and pages never overlap.
        """
        cosine_distance = Hadith.embedding.cosine_distance(query_embedding)

        return (
            select(Hadith, (1 - cosine_distance).label("similarity"))
            .order_by(cosine_distance, Hadith.id)
            .limit(limit)
            .offset(offset)
        )

    async def similarity_search(
        self,
        query_embedding: List[float],
        limit: int,
        offset: int = 0,
    ) -> List[SearchHit]:
        """
        Return up to ``limit`` rows by descending cosine similarity,
        skipping the first ``offset`` rows of that ordering.

        Parameters
        ----------
        query_embedding : List[float]
            Query vector.
        limit : int
            Maximum number of rows to return (at least 1).
        offset : int
            Number of ranked rows to skip (at least 0).

        Returns
        -------
        List[SearchHit]
            Ranked matches with their similarity score.
        """
        if limit < 1:
            raise InvalidArgument("limit must be a positive integer")
        if offset < 0:
            raise InvalidArgument("offset must not be negative")

        stmt = self.similarity_query(query_embedding, limit, offset)

        try:
            result = await self._session.execute(stmt)
            rows = result.all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Similarity search failed: {type(exc).__name__}") from exc

        return [
            SearchHit(id=row.Hadith.id, record=row.Hadith.to_record(), similarity=float(row.similarity))
            for row in rows
        ]

    async def existing_hadith_ids(self, hadith_ids: Iterable[str]) -> Set[str]:
        """
        Return the subset of ``hadith_ids`` already present in the store.
        """
        wanted = set(hadith_ids)
        if not wanted:
            return set()

        stmt = select(Hadith.hadith_id).where(Hadith.hadith_id.in_(wanted)).distinct()

        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"Existence check failed: {type(exc).__name__}") from exc

        return {row[0] for row in result.all()}

    async def count(self) -> int:
        """
        Return the total number of stored hadiths.
        """
        stmt = select(func.count()).select_from(Hadith)
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"Count failed: {type(exc).__name__}") from exc
        return result.scalar() or 0
