"""
Record Source Reader

Streams the hadith CSV export row by row, in file order, and parses rows
into ``HadithRecord`` instances. Rows that cannot be parsed go to a
quarantine file instead of the store.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, TextIO

from ..core.errors import ParseError
from ..embeddings.models import HadithRecord

logger = logging.getLogger("hadith.ingest")

COLUMNS = (
    "id",
    "hadith_id",
    "source",
    "chapter_no",
    "hadith_no",
    "chapter",
    "chain_indx",
    "text_ar",
    "text_en",
)


@dataclass(frozen=True)
class SourceRow:
    """A raw CSV row and its 1-based data line number (header excluded)."""

    line_no: int
    fields: Dict[str, str]


def read_source_rows(stream: TextIO) -> Iterator[SourceRow]:
    """
    Yield data rows from an open CSV stream.

    The header row must contain every column in ``COLUMNS``; extra columns
    are ignored.
    """
    reader = csv.DictReader(stream)
    header = reader.fieldnames or []
    missing = [c for c in COLUMNS if c not in header]
    if missing:
        raise ParseError(0, f"missing column(s): {', '.join(missing)}")

    for line_no, raw in enumerate(reader, start=1):
        yield SourceRow(
            line_no=line_no,
            fields={c: (raw.get(c) or "") for c in COLUMNS},
        )


def iter_source_file(path: str | Path) -> Iterator[SourceRow]:
    """
    Open ``path`` and stream its rows. The file is closed when the
    iterator is exhausted or garbage collected.
    """
    with open(path, newline="", encoding="utf-8") as fh:
        yield from read_source_rows(fh)


def _parse_int(row: SourceRow, column: str) -> int:
    value = row.fields.get(column, "").strip()
    try:
        return int(value)
    except ValueError:
        raise ParseError(row.line_no, f"{column} is not an integer: {value!r}") from None


def parse_row(row: SourceRow) -> HadithRecord:
    """
    Convert a raw row into a ``HadithRecord``.

    Raises
    ------
    ParseError
        If ``chapter_no`` or ``hadith_no`` is not an integer.
    """
    f = row.fields
    return HadithRecord(
        hadith_id=f["hadith_id"].strip(),
        source=f["source"],
        chapter_no=_parse_int(row, "chapter_no"),
        hadith_no=_parse_int(row, "hadith_no"),
        chapter=f["chapter"],
        chain_indx=f["chain_indx"],
        text_ar=f["text_ar"],
        text_en=f["text_en"],
    )


class CsvQuarantine:
    """
    Append rejected rows to a side CSV, with the line number and reason.

    The file gets a header the first time it is created.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def record(self, row: SourceRow, error: Exception) -> None:
        new_file = not self.path.exists() or self.path.stat().st_size == 0
        with open(self.path, "a", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            if new_file:
                writer.writerow(("line_no", *COLUMNS, "error"))
            writer.writerow((row.line_no, *(row.fields[c] for c in COLUMNS), str(error)))


def accepted_rows(
    rows: Iterable[SourceRow],
    start_line: int,
) -> Iterator[SourceRow]:
    """
    Drop rows whose line number is below ``start_line``.
    """
    for row in rows:
        if row.line_no < start_line:
            continue
        yield row


def open_quarantine(path: Optional[str]) -> Optional[CsvQuarantine]:
    """
    Build the quarantine sink for ``path``, creating its directory up front
    so a bad location fails before any row is streamed.
    """
    if not path:
        return None
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    logger.info("Quarantining unparseable rows to %s", path)
    return CsvQuarantine(path)
