import math
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

# Settings are read at import time; give them test values first.
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("JWT_SECRET", "test-secret-for-user-tokens-must-be-long-enough")

import jwt
import pytest

from hadith_search.config import settings
from hadith_search.core.errors import StoreError
from hadith_search.embeddings.models import HadithRecord, SearchHit
from hadith_search.ingestion.reader import SourceRow


# ---------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------

def create_user_token(
    sub="user-123",
    audience=None,
    expired=False,
    secret=None,
    **extra,
):
    now = int(time.time())
    iat = now - 3600 if expired else now
    exp = iat - 10 if expired else now + 300

    payload = {
        "sub": sub,
        "aud": audience or settings.jwt_audience,
        "iat": iat,
        "exp": exp,
        **extra,
    }
    if sub is None:
        payload.pop("sub")
    return jwt.encode(
        payload,
        secret or settings.jwt_secret.get_secret_value(),
        algorithm="HS256",
    )


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeEmbedder:
    """
    Deterministic embedder. Each text maps to a small vector derived from its
    characters. Calls listed in ``fail_on_calls`` (1-based) raise ``error``.
    """

    def __init__(self, fail_on_calls=(), error=None, vectors=None):
        self.calls: List[List[str]] = []
        self.fail_on_calls = set(fail_on_calls)
        self.error = error
        self.vectors = vectors or {}

    def vector_for(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        total = sum(ord(c) for c in text) or 1
        return [float(len(text) or 1), float(total % 97), 1.0]

    async def embed(self, texts):
        self.calls.append(list(texts))
        if len(self.calls) in self.fail_on_calls:
            from hadith_search.core.errors import ProviderError
            raise self.error or ProviderError("rate limited")
        return [self.vector_for(t) for t in texts]

    async def embed_one(self, text):
        return (await self.embed([text]))[0]


def _cosine(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


@dataclass
class StoredRow:
    id: int
    record: HadithRecord
    embedding: List[float]


class InMemoryVectorStore:
    """
    VectorStore stand-in with the same transaction shape: rows added by
    ``bulk_insert`` become visible on ``commit`` and vanish on ``rollback``.
    Ranking is cosine similarity, ties broken by id.
    """

    def __init__(self, fail_insert_on_calls=()):
        self.rows: List[StoredRow] = []
        self.pending: List[Tuple[HadithRecord, List[float]]] = []
        self.insert_calls: List[List[Tuple[HadithRecord, List[float]]]] = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_insert_on_calls = set(fail_insert_on_calls)

    async def bulk_insert(self, rows):
        self.insert_calls.append(list(rows))
        if len(self.insert_calls) in self.fail_insert_on_calls:
            raise StoreError("connection reset")
        self.pending.extend(rows)
        return len(rows)

    async def commit(self):
        for record, embedding in self.pending:
            self.rows.append(StoredRow(len(self.rows) + 1, record, list(embedding)))
        self.pending = []
        self.commits += 1

    async def rollback(self):
        self.pending = []
        self.rollbacks += 1

    async def existing_hadith_ids(self, hadith_ids):
        stored = {row.record.hadith_id for row in self.rows}
        return {h for h in hadith_ids if h in stored}

    async def count(self):
        return len(self.rows)

    async def similarity_search(self, query_embedding, limit, offset=0):
        ranked = sorted(
            self.rows,
            key=lambda row: (-_cosine(query_embedding, row.embedding), row.id),
        )
        return [
            SearchHit(
                id=row.id,
                record=row.record,
                similarity=_cosine(query_embedding, row.embedding),
            )
            for row in ranked[offset : offset + limit]
        ]

    def scope(self):
        """Store factory for IngestionPipeline: every batch shares this store."""

        @asynccontextmanager
        async def _scope():
            yield self

        return _scope


@dataclass
class HistoryRow:
    id: int
    user_id: str
    query_text: str
    timestamp: datetime


@dataclass
class InMemoryHistoryStore:
    rows: List[HistoryRow] = field(default_factory=list)
    fail: bool = False

    async def recent(self, user_id: str, limit: int = 50):
        if self.fail:
            raise StoreError("history unavailable")
        mine = [r for r in self.rows if r.user_id == user_id]
        return sorted(mine, key=lambda r: (r.timestamp, r.id), reverse=True)[:limit]

    async def latest_query_text(self, user_id: str) -> Optional[str]:
        latest = await self.recent(user_id, limit=1)
        return latest[0].query_text if latest else None

    async def append(self, user_id: str, query_text: str) -> None:
        if self.fail:
            raise StoreError("history unavailable")
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.rows.append(
            HistoryRow(
                id=len(self.rows) + 1,
                user_id=user_id,
                query_text=query_text,
                timestamp=base + timedelta(seconds=len(self.rows)),
            )
        )


# ---------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------

def make_record(n: int, **overrides) -> HadithRecord:
    fields: Dict[str, object] = {
        "hadith_id": f"H{n}",
        "source": "Sahih al-Bukhari",
        "chapter_no": 1 + n // 10,
        "hadith_no": n,
        "chapter": "Revelation",
        "chain_indx": f"{n}",
        "text_ar": "حديث",
        "text_en": f"text {n}",
    }
    fields.update(overrides)
    return HadithRecord(**fields)


def make_source_rows(
    count: int,
    overrides: Optional[Dict[int, Dict[str, str]]] = None,
) -> List[SourceRow]:
    overrides = overrides or {}
    rows = []
    for n in range(1, count + 1):
        fields = {
            "id": str(n),
            "hadith_id": f"H{n}",
            "source": "Sahih al-Bukhari",
            "chapter_no": str(1 + n // 10),
            "hadith_no": str(n),
            "chapter": "Revelation",
            "chain_indx": str(n),
            "text_ar": "حديث",
            "text_en": f"text {n}",
        }
        fields.update(overrides.get(n, {}))
        rows.append(SourceRow(line_no=n, fields=fields))
    return rows


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def history_store():
    return InMemoryHistoryStore()
