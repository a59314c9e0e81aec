"""Tests for row parsing and the streaming parser."""

import threading
from datetime import datetime

import pytest

from ingestkit.domain.entities import ColumnMapping
from ingestkit.domain.errors import RowParseError
from ingestkit.domain.parsing import Parser, RowParser, clean_description
from ingestkit.domain.streaming import StreamingParser, parse_batched

MAPPING = ColumnMapping(date_col=0, desc_col=1, amount_col=2, category_col=3, delimiter=",", date_format="YYYY-MM-DD")

CSV_WITH_ERRORS = (
    "Date,Description,Amount,Category\n"
    "2024-01-15,Coffee   shop,-2.50,Food\n"
    "not-a-date,Broken,1.00,\n"
    ",Pending row,3.00,\n"
    "2024-01-16,,4.00,\n"
    "2024-01-17,Refund,abc,\n"
    "2024-01-18,Salary,1000.00,Income\n"
)


def test_clean_description_collapses_whitespace():
    """Test whitespace normalization of descriptions."""
    assert clean_description("  Coffee \t  shop  ") == "Coffee shop"


def test_process_record_single_amount():
    """Test parsing one record with an amount column."""
    txn = RowParser(MAPPING).process_record(["2024-01-15", "Coffee", "-2.50", "Food"], 2)
    assert txn.date == datetime(2024, 1, 15)
    assert txn.amount_minor == -250
    assert txn.category == "Food"
    assert txn.raw_row == 2


def test_process_record_double_entry():
    """Test parsing one record with debit and credit columns."""
    mapping = ColumnMapping(date_col=0, desc_col=1, debit_col=2, credit_col=3, is_double_entry=True, is_european_format=True)
    parser = RowParser(mapping)
    assert parser.process_record(["15/01/2024", "Shop", "12,30", ""], 2).amount_minor == -1230
    assert parser.process_record(["16/01/2024", "Refund", "", "5,00"], 3).amount_minor == 500


def test_process_record_skips_rows_without_date():
    """Test that rows without a date are skipped."""
    assert RowParser(MAPPING).process_record(["", "Pending", "1.00", ""], 4) is None


def test_process_record_errors_name_the_column():
    """Test that row errors carry line and column."""
    parser = RowParser(MAPPING)
    with pytest.raises(RowParseError) as exc_info:
        parser.process_record(["2024-01-15", "Coffee", "", ""], 7)
    assert exc_info.value.parse_error.row == 7
    assert exc_info.value.parse_error.column == "amount"
    assert str(exc_info.value) == "row 7, column amount: missing amount"


def test_parser_collects_errors_and_counts():
    """Test sequential parsing with mixed rows."""
    result = Parser(MAPPING).parse(CSV_WITH_ERRORS)
    assert result.total_rows == 6
    assert result.parsed_rows == 2
    assert result.skipped_rows == 1
    assert [e.row for e in result.errors] == [3, 5, 6]
    assert [t.description for t in result.transactions] == ["Coffee shop", "Salary"]


def test_parser_skip_lines():
    """Test that preamble lines are skipped before the header."""
    mapping = ColumnMapping(date_col=0, desc_col=1, amount_col=2, delimiter=";", skip_lines=2, is_european_format=True)
    text = "Bank\n\nDate;Description;Amount\n15/01/2024;Shop;-1.234,56\n"
    result = Parser(mapping).parse(text.encode())
    assert result.transactions[0].amount_minor == -123456
    assert result.transactions[0].raw_row == 4


def test_parser_empty_source():
    """Test that a source without a header reports one error."""
    result = Parser(MAPPING).parse("")
    assert len(result.errors) == 1
    assert result.errors[0].row == 1


def test_streaming_parser_matches_sequential_parser():
    """Test that concurrent parsing yields the same rows as sequential parsing."""
    stream = StreamingParser(MAPPING, workers=3).parse_stream(CSV_WITH_ERRORS)
    results = sorted(stream, key=lambda r: r.row_num)

    parsed = [r.transaction.description for r in results if r.transaction is not None]
    failed = [r.error.row for r in results if r.error is not None]
    skipped = [r.row_num for r in results if r.skipped]

    assert parsed == ["Coffee shop", "Salary"]
    assert failed == [3, 5, 6]
    assert skipped == [4]
    assert stream.stats.total_rows == 6
    assert stream.stats.parsed_rows == 2
    assert stream.stats.error_rows == 3
    assert stream.stats.skipped_rows == 1


def test_streaming_parser_large_input():
    """Test that every row comes back exactly once."""
    lines = ["Date,Description,Amount,Category"]
    lines += [f"2024-01-{(i % 28) + 1:02d},Row {i},{i}.00," for i in range(2000)]
    stream = StreamingParser(MAPPING, workers=4).parse_stream("\n".join(lines))
    rows = sorted(r.row_num for r in stream if r.transaction is not None)
    assert rows == list(range(2, 2002))


def test_streaming_parser_cancel_stops_results():
    """Test that closing the stream early cancels the parse."""
    lines = ["Date,Description,Amount,Category"]
    lines += [f"2024-01-01,Row {i},1.00," for i in range(5000)]
    cancel = threading.Event()
    stream = StreamingParser(MAPPING, workers=2).parse_stream("\n".join(lines), cancel)

    seen = 0
    for _ in stream:
        seen += 1
        if seen == 10:
            break
    stream.close()

    assert cancel.is_set()
    assert seen == 10


def test_parse_batched_yields_batches():
    """Test sequential batched parsing."""
    batches = parse_batched(MAPPING, CSV_WITH_ERRORS, batch_size=1)
    sizes = [len(batch) for batch in batches]
    assert sizes == [1, 1]
    assert [e.row for e in batches.errors] == [3, 5, 6]
