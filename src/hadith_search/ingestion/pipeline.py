"""
Ingestion Pipeline

Turns the ordered stream of source rows into embedded rows in the vector
store.

Processing is strictly sequential: batch ``n + 1`` is not read into the
embedder until batch ``n`` has either been committed or logged as failed.
A failed batch is rolled back and skipped; it is never retried. The log
line names the batch by its first and last ``hadith_no`` so an operator can
re-run ingestion from the right ``start_line``.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import (
    AsyncContextManager,
    Callable,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
)

from .reader import SourceRow, accepted_rows, parse_row
from ..core.errors import ParseError, ProviderError
from ..db.vector_store import VectorStore, batch_range
from ..embeddings.embedder import Embedder
from ..embeddings.models import HadithRecord

logger = logging.getLogger("hadith.ingest")


class Quarantine(Protocol):
    def record(self, row: SourceRow, error: Exception) -> None: ...


StoreFactory = Callable[[], AsyncContextManager[VectorStore]]


class IngestionState(str, enum.Enum):
    NOT_STARTED = "not_started"
    STREAMING = "streaming"
    BATCHING = "batching"
    EMBEDDING = "embedding"
    WRITING = "writing"
    DONE = "done"


@dataclass(frozen=True)
class FailedBatch:
    """A batch that was rolled back."""

    first_hadith_no: int
    last_hadith_no: int
    size: int
    error: str


@dataclass
class IngestionResult:
    """Summary output for an ingestion run."""

    rows_considered: int = 0
    last_line: int = 0
    batches_attempted: int = 0
    rows_inserted: int = 0
    rows_skipped_existing: int = 0
    rows_quarantined: int = 0
    failed_batches: List[FailedBatch] = field(default_factory=list)

    @property
    def rows_failed(self) -> int:
        return sum(batch.size for batch in self.failed_batches)


class IngestionPipeline:
    """
    Embed hadith records in fixed-size batches and write them to the store.

    Parameters
    ----------
    embedder : Embedder
        Called exactly once per batch with the ``text_en`` of every record.
    store_factory : StoreFactory
        Returns an async context manager yielding a ``VectorStore``. One
        store (one database session) is opened per batch.
    batch_size : int
        Number of records per embedding call and insert.
    start_line : int
        1-based data line to resume from; earlier rows are discarded
        without being parsed.
    skip_existing : bool
        Drop records whose ``hadith_id`` is already stored before embedding.
        When off, re-runs insert duplicate rows.
    quarantine : Optional[Quarantine]
        Receives rows that fail to parse. Such rows are always logged and
        counted, and never inserted.
    """

    def __init__(
        self,
        embedder: Embedder,
        store_factory: StoreFactory,
        *,
        batch_size: int = 50,
        start_line: int = 1,
        skip_existing: bool = False,
        quarantine: Optional[Quarantine] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive; got {batch_size}")
        if start_line < 1:
            raise ValueError(f"start_line must be at least 1; got {start_line}")

        self._embedder = embedder
        self._store_factory = store_factory
        self.batch_size = batch_size
        self.start_line = start_line
        self.skip_existing = skip_existing
        self._quarantine = quarantine
        self.state = IngestionState.NOT_STARTED

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, rows: Iterable[SourceRow]) -> IngestionResult:
        """
        Consume ``rows`` to the end and return a summary.

        Batch failures are isolated. Errors outside a batch (for example
        an unreadable source file) propagate to the caller.
        """
        result = IngestionResult()
        batch: List[HadithRecord] = []

        logger.info(
            "Starting ingestion: start_line=%d batch_size=%d skip_existing=%s",
            self.start_line,
            self.batch_size,
            self.skip_existing,
        )
        self.state = IngestionState.STREAMING

        for row in accepted_rows(rows, self.start_line):
            result.rows_considered += 1
            result.last_line = row.line_no

            try:
                record = parse_row(row)
            except ParseError as exc:
                self._quarantine_row(row, exc)
                result.rows_quarantined += 1
                continue

            self.state = IngestionState.BATCHING
            batch.append(record)
            if len(batch) >= self.batch_size:
                await self._process_batch(batch, result)
                batch = []

        if batch:
            await self._process_batch(batch, result)

        self.state = IngestionState.DONE
        logger.info(
            "Ingestion done: considered=%d inserted=%d skipped_existing=%d "
            "quarantined=%d failed_batches=%d last_line=%d",
            result.rows_considered,
            result.rows_inserted,
            result.rows_skipped_existing,
            result.rows_quarantined,
            len(result.failed_batches),
            result.last_line,
        )
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _quarantine_row(self, row: SourceRow, exc: ParseError) -> None:
        logger.warning("Quarantined source row: %s", exc)
        if self._quarantine is None:
            return
        try:
            self._quarantine.record(row, exc)
        except OSError as write_exc:
            logger.error(
                "Could not write line %d to the quarantine file: %s",
                row.line_no,
                write_exc,
            )

    @staticmethod
    async def _rollback(store: VectorStore, label: str) -> None:
        # The session may already be unusable (dropped connection); the
        # batch is failed either way.
        try:
            await store.rollback()
        except Exception as exc:
            logger.error("Rollback of batch %s failed (%s): %s", label, type(exc).__name__, exc)

    async def _process_batch(
        self,
        batch: Sequence[HadithRecord],
        result: IngestionResult,
    ) -> None:
        result.batches_attempted += 1
        label = batch_range(batch)

        pending = list(batch)
        async with self._store_factory() as store:
            try:
                if self.skip_existing:
                    pending = await self._drop_existing(store, pending)
                    result.rows_skipped_existing += len(batch) - len(pending)
                    if not pending:
                        logger.info("Batch %s already stored, skipped.", label)
                        self.state = IngestionState.STREAMING
                        return

                self.state = IngestionState.EMBEDDING
                vectors = await self._embedder.embed([r.text_en for r in pending])
                if len(vectors) != len(pending):
                    raise ProviderError(
                        f"Got {len(vectors)} embeddings for {len(pending)} records."
                    )

                self.state = IngestionState.WRITING
                inserted = await store.bulk_insert(list(zip(pending, vectors)))
                await store.commit()

            except Exception as exc:
                await self._rollback(store, label)
                logger.error("Batch %s failed (%s): %s", label, type(exc).__name__, exc)
                result.failed_batches.append(
                    FailedBatch(
                        first_hadith_no=batch[0].hadith_no,
                        last_hadith_no=batch[-1].hadith_no,
                        size=len(pending),
                        error=f"{type(exc).__name__}: {exc}",
                    )
                )
                self.state = IngestionState.STREAMING
                return

        result.rows_inserted += inserted
        self.state = IngestionState.STREAMING
        logger.info("Batch %s stored (%d rows).", label, inserted)

    @staticmethod
    async def _drop_existing(
        store: VectorStore,
        batch: List[HadithRecord],
    ) -> List[HadithRecord]:
        existing = await store.existing_hadith_ids(r.hadith_id for r in batch)
        return [r for r in batch if r.hadith_id not in existing]
