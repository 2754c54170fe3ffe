"""
Database Layer Tests

Model mapping and statement construction, plus error translation in the
stores. No database connection is needed.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError

from hadith_search.config import settings
from hadith_search.core.errors import InvalidArgument, StoreError
from hadith_search.db.models import Hadith, SearchHistory
from hadith_search.db.vector_store import VectorStore, batch_range

from conftest import make_record


class TestHadithModel:
    """Tests for the Hadith model."""

    def test_from_record_keeps_fields_and_embedding(self):
        record = make_record(7, chapter_no=3)
        vector = [0.5] * settings.embedding_dim

        row = Hadith.from_record(record, vector)

        assert row.hadith_id == "H7"
        assert row.chapter_no == 3
        assert row.hadith_no == 7
        assert row.embedding == vector
        assert row.to_record() == record

    def test_embedding_column_dimension(self):
        assert Hadith.__table__.c.embedding.type.dim == settings.embedding_dim

    def test_table_names(self):
        assert Hadith.__tablename__ == "hadiths"
        assert SearchHistory.__tablename__ == "search_history"


class TestSimilarityQuery:
    """The ranked statement must be a total order with offset paging."""

    def _sql(self, limit=5, offset=10):
        stmt = VectorStore.similarity_query([0.1] * settings.embedding_dim, limit, offset)
        return str(stmt.compile(dialect=postgresql.dialect()))

    def test_orders_by_distance_then_id(self):
        sql = self._sql()
        order_by = sql[sql.index("ORDER BY"):]

        assert "<=>" in order_by
        assert order_by.index("<=>") < order_by.index("hadiths.id")

    def test_has_limit_and_offset(self):
        sql = self._sql()

        assert "LIMIT" in sql
        assert "OFFSET" in sql

    def test_selects_similarity_score(self):
        assert "AS similarity" in self._sql()


class TestVectorStoreErrors:

    @pytest.mark.asyncio
    async def test_bulk_insert_failure_names_batch_range(self):
        session = MagicMock()
        session.flush = AsyncMock(side_effect=IntegrityError("insert", {}, Exception("dup")))
        rows = [(make_record(n), [0.0] * settings.embedding_dim) for n in (51, 52, 100)]

        with pytest.raises(StoreError, match="hadith_no 51-100"):
            await VectorStore(session).bulk_insert(rows)

        session.add_all.assert_called_once()

    @pytest.mark.asyncio
    async def test_bulk_insert_nothing(self):
        session = MagicMock()
        assert await VectorStore(session).bulk_insert([]) == 0
        session.add_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_search_failure_raises_store_error(self):
        session = MagicMock()
        session.execute = AsyncMock(side_effect=OperationalError("select", {}, Exception("down")))

        with pytest.raises(StoreError):
            await VectorStore(session).similarity_search([0.0] * 3, limit=5, offset=0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit, offset", [(0, 0), (5, -1)])
    async def test_search_rejects_bad_bounds(self, limit, offset):
        with pytest.raises(InvalidArgument):
            await VectorStore(MagicMock()).similarity_search([0.0], limit=limit, offset=offset)

    @pytest.mark.asyncio
    async def test_existing_ids_with_empty_input_skips_query(self):
        session = MagicMock()
        session.execute = AsyncMock()

        assert await VectorStore(session).existing_hadith_ids([]) == set()
        session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_rollback_failure_raises_store_error(self):
        session = MagicMock()
        session.rollback = AsyncMock(side_effect=OperationalError("rollback", {}, Exception("gone")))

        with pytest.raises(StoreError, match="Rollback failed"):
            await VectorStore(session).rollback()


def test_batch_range():
    assert batch_range([make_record(1), make_record(50)]) == "hadith_no 1-50"
    assert batch_range([]) == "empty batch"
