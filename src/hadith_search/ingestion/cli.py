"""
Ingestion command line entry point.

Usage:
    python -m hadith_search.ingestion.cli --csv data/hadiths.csv --start-line 51

Every option defaults to the matching ``ingest_*`` setting, so a re-run
after an interruption only needs ``--start-line``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .pipeline import IngestionPipeline, IngestionResult
from .reader import iter_source_file, open_quarantine
from ..config import Settings, settings as default_settings
from ..db import VectorStore, build_engine, build_sessionmaker, init_models
from ..embeddings.embedder import Embedder

logger = logging.getLogger("hadith.ingest")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hadith-ingest",
        description="Embed the hadith CSV export and load it into the vector store.",
    )
    parser.add_argument("--csv", default=settings.ingest_csv_path, help="Source CSV path.")
    parser.add_argument(
        "--start-line",
        type=int,
        default=settings.ingest_start_line,
        help="1-based data line to resume from (header excluded).",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.ingest_batch_size,
        help="Records per embedding call and insert.",
    )
    parser.add_argument(
        "--skip-existing",
        action=argparse.BooleanOptionalAction,
        default=settings.ingest_skip_existing,
        help="Skip records whose hadith_id is already stored.",
    )
    parser.add_argument(
        "--quarantine",
        default=settings.ingest_quarantine_path,
        help="CSV file collecting rows with non-numeric chapter_no/hadith_no.",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the pgvector extension and tables before ingesting.",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


def session_store_factory(sessionmaker: async_sessionmaker[AsyncSession]):
    """
    Build the per-batch store factory the pipeline expects.
    """

    @asynccontextmanager
    async def _scope() -> AsyncIterator[VectorStore]:
        async with sessionmaker() as session:
            yield VectorStore(session)

    return _scope


async def run_ingestion(args: argparse.Namespace, settings: Settings) -> IngestionResult:
    engine = build_engine(settings.database_url)
    try:
        if args.init_db:
            await init_models(engine)

        embedder = Embedder(
            api_key=settings.openai_api_key.get_secret_value(),
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            base_url=settings.embedding_api_url,
            timeout=settings.embedding_timeout,
        )
        pipeline = IngestionPipeline(
            embedder,
            session_store_factory(build_sessionmaker(engine)),
            batch_size=args.batch_size,
            start_line=args.start_line,
            skip_existing=args.skip_existing,
            quarantine=open_quarantine(args.quarantine),
        )
        return await pipeline.run(iter_source_file(args.csv))
    finally:
        await engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser(default_settings).parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    result = asyncio.run(run_ingestion(args, default_settings))

    for failed in result.failed_batches:
        logger.warning(
            "Not stored: hadith_no %d-%d (%d rows): %s",
            failed.first_hadith_no,
            failed.last_hadith_no,
            failed.size,
            failed.error,
        )
    return 1 if result.failed_batches else 0


if __name__ == "__main__":
    sys.exit(main())
