import csv
import io

import pytest

from hadith_search.core.errors import ParseError
from hadith_search.ingestion.reader import (
    COLUMNS,
    CsvQuarantine,
    accepted_rows,
    iter_source_file,
    open_quarantine,
    parse_row,
    read_source_rows,
)

HEADER = ",".join(COLUMNS)


def test_rows_are_numbered_from_one_after_the_header():
    text = HEADER + "\n1,A1,Muslim,2,10,Faith,c,ع,First\n2,A2,Muslim,2,11,Faith,c,ع,Second\n"

    rows = list(read_source_rows(io.StringIO(text)))

    assert [r.line_no for r in rows] == [1, 2]
    assert rows[1].fields["text_en"] == "Second"


def test_quoted_fields_with_commas_and_newlines():
    text = HEADER + '\n1,A1,Muslim,2,10,"Faith, part 1",c,ع,"Line one\nline two"\n'

    row = next(read_source_rows(io.StringIO(text)))

    assert row.fields["chapter"] == "Faith, part 1"
    assert row.fields["text_en"] == "Line one\nline two"


def test_missing_columns_rejected():
    with pytest.raises(ParseError, match="text_en"):
        list(read_source_rows(io.StringIO("id,hadith_id,source\n1,A,B\n")))


def test_parse_row_converts_numbers():
    row = next(read_source_rows(io.StringIO(HEADER + "\n1, A1 ,Muslim, 2 ,10,Faith,c,ع,First\n")))

    record = parse_row(row)

    assert record.chapter_no == 2
    assert record.hadith_no == 10
    assert record.hadith_id == "A1"


@pytest.mark.parametrize("chapter_no, hadith_no", [("abc", "1"), ("1", "2.5"), ("1", "")])
def test_parse_row_rejects_non_integers(chapter_no, hadith_no):
    line = f"1,A1,Muslim,{chapter_no},{hadith_no},Faith,c,ع,First"
    row = next(read_source_rows(io.StringIO(HEADER + "\n" + line + "\n")))

    with pytest.raises(ParseError) as excinfo:
        parse_row(row)

    assert excinfo.value.line_no == 1


def test_accepted_rows_starts_at_the_resume_line():
    text = HEADER + "".join(f"\n{n},A{n},S,1,{n},C,c,ع,T{n}" for n in range(1, 6)) + "\n"

    kept = list(accepted_rows(read_source_rows(io.StringIO(text)), start_line=4))

    assert [r.line_no for r in kept] == [4, 5]


def test_iter_source_file(tmp_path):
    path = tmp_path / "hadiths.csv"
    path.write_text(HEADER + "\n1,A1,Muslim,2,10,Faith,c,ع,First\n", encoding="utf-8")

    rows = list(iter_source_file(path))

    assert len(rows) == 1
    assert rows[0].fields["text_ar"] == "ع"


def test_quarantine_appends_rows_with_reason(tmp_path):
    path = tmp_path / "rejected.csv"
    row = next(read_source_rows(io.StringIO(HEADER + "\n1,A1,Muslim,x,10,Faith,c,ع,First\n")))
    quarantine = CsvQuarantine(path)

    quarantine.record(row, ParseError(1, "chapter_no is not an integer: 'x'"))
    quarantine.record(row, ParseError(1, "again"))

    with open(path, newline="", encoding="utf-8") as fh:
        written = list(csv.reader(fh))

    assert written[0] == ["line_no", *COLUMNS, "error"]
    assert len(written) == 3
    assert written[1][0] == "1"
    assert "chapter_no" in written[1][-1]


def test_open_quarantine_is_optional(tmp_path):
    assert open_quarantine(None) is None
    assert isinstance(open_quarantine(str(tmp_path / "q.csv")), CsvQuarantine)


def test_open_quarantine_creates_missing_directory(tmp_path):
    path = tmp_path / "reports" / "2024" / "rejected.csv"
    row = next(read_source_rows(io.StringIO(HEADER + "\n1,A1,Muslim,x,10,Faith,c,ع,First\n")))

    open_quarantine(str(path)).record(row, ParseError(1, "chapter_no is not an integer: 'x'"))

    assert path.exists()
