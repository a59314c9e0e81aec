"""Tests for file dialect detection."""

import pytest

from ingestkit.domain.entities import DetectOptions
from ingestkit.domain.errors import EmptyFileError, InvalidDelimiterError, NoHeadersFoundError
from ingestkit.domain.sniffer import (
    analyze_amount_format,
    analyze_date_format,
    detect_config,
    detect_delimiter,
    find_header_row,
    generate_fingerprint,
    normalize_bytes,
    probe_dialect,
    suggest_columns,
)

from conftest import EUROPEAN_CSV, SIMPLE_CSV


def test_normalize_strips_bom_and_falls_back_to_latin1():
    """Test decoding with BOM removal and latin-1 fallback."""
    assert normalize_bytes(b"\xef\xbb\xbfDate") == "Date"
    assert normalize_bytes("Descrição".encode("latin-1")) == "Descrição"


def test_detect_delimiter_picks_most_frequent():
    """Test delimiter selection by frequency."""
    assert detect_delimiter("a;b;c,d") == (";", 2)
    assert detect_delimiter("a\tb\tc") == ("\t", 2)
    assert detect_delimiter("nothing here") == ("", 0)


def test_find_header_row_after_preamble():
    """Test that keyword lines win over metadata lines."""
    lines = ["Bank export", "Account: 123", "Date;Description;Amount", "2024-01-01;X;1,00"]
    assert find_header_row(lines) == (";", 2)


def test_find_header_row_falls_back_to_widest_line():
    """Test the fallback when no line has header keywords."""
    lines = ["foo,bar", "a,b,c", "1,2,3"]
    assert find_header_row(lines) == (",", 1)


def test_find_header_row_none():
    """Test that lines without delimiters have no header."""
    with pytest.raises(NoHeadersFoundError):
        find_header_row(["hello", "world"])


def test_detect_config_simple_csv():
    """Test detecting a plain comma separated file."""
    config = detect_config(SIMPLE_CSV.encode())
    assert config.delimiter == ","
    assert config.skip_lines == 0
    assert config.headers == ("Date", "Description", "Amount", "Currency")
    assert len(config.sample_rows) == 3
    assert config.sample_rows[0][1] == "COMPRA NETFLIX.COM 1234"


def test_detect_config_with_metadata_lines():
    """Test detecting a semicolon file with lines above the header."""
    config = detect_config(EUROPEAN_CSV.encode())
    assert config.delimiter == ";"
    assert config.skip_lines == 2
    assert config.headers[0] == "Data Mov."


def test_detect_config_forced_header_row():
    """Test overriding the header row and delimiter."""
    data = b"title line\nA|B|C\n1|2|3\n"
    config = detect_config(data, DetectOptions(header_row_index=1))
    assert config.delimiter == "|"
    assert config.headers == ("A", "B", "C")

    forced = detect_config(b"a;b,c\n1;2,3\n", DetectOptions(header_row_index=0, delimiter=","))
    assert forced.headers == ("a;b", "c")


def test_detect_config_errors():
    """Test error types for unusable files."""
    with pytest.raises(EmptyFileError):
        detect_config(b"")
    with pytest.raises(EmptyFileError):
        detect_config(b"  \n \n")
    with pytest.raises(NoHeadersFoundError):
        detect_config(b"hello\nworld\n")
    with pytest.raises(NoHeadersFoundError):
        detect_config(b"a,b\n", DetectOptions(header_row_index=5))
    with pytest.raises(InvalidDelimiterError):
        detect_config(b"no delimiter here\n", DetectOptions(header_row_index=0))


def test_fingerprint_ignores_case_and_punctuation():
    """Test that cosmetic header differences share a fingerprint."""
    assert generate_fingerprint(["Date", "Description"]) == generate_fingerprint([" date ", "DESCRIPTION!"])
    assert generate_fingerprint(["Date", "Amount"]) != generate_fingerprint(["Date", "Value"])
    assert len(generate_fingerprint(["Date"])) == 64


def test_suggest_columns_english():
    """Test column suggestions for English headers."""
    suggestions = suggest_columns(["Date", "Description", "Amount", "Category"])
    assert (suggestions.date_col, suggestions.desc_col, suggestions.amount_col) == (0, 1, 2)
    assert suggestions.category_col == 3
    assert not suggestions.is_double_entry


def test_suggest_columns_double_entry():
    """Test debit/credit detection in Portuguese headers."""
    suggestions = suggest_columns(["Data Mov.", "Descrição", "Débito", "Crédito", "Saldo"])
    assert suggestions.date_col == 0
    assert suggestions.desc_col == 1
    assert suggestions.debit_col == 2
    assert suggestions.credit_col == 3
    assert suggestions.amount_col == -1
    assert suggestions.is_double_entry


def test_analyze_amount_format():
    """Test per-value number style hints."""
    assert analyze_amount_format("1.234,56") > 0
    assert analyze_amount_format("12,50") > 0
    assert analyze_amount_format("1,234.56") < 0
    assert analyze_amount_format("12.50") < 0
    assert analyze_amount_format("1,234") == 0
    assert analyze_amount_format("100") == 0


def test_analyze_date_format():
    """Test day-first detection."""
    assert analyze_date_format("15/01/2024")
    assert not analyze_date_format("01/15/2024")
    assert not analyze_date_format("2024")


def test_probe_dialect_european():
    """Test inferring a European dialect."""
    rows = [("15/01/2024", "x", "-1.234,56"), ("16/01/2024", "y", "20,00")]
    dialect = probe_dialect(rows, amount_idx=2, date_idx=0)
    assert dialect.is_european_format
    assert dialect.decimal_separator == ","
    assert dialect.thousands_separator == "."
    assert dialect.date_format == "DD/MM/YYYY"
    assert dialect.confidence == 1.0


def test_probe_dialect_us_with_currency_hint():
    """Test inferring a US dialect and dollar hint."""
    rows = [("01/15/2024", "x", "$12.50")]
    dialect = probe_dialect(rows, amount_idx=2, date_idx=0)
    assert not dialect.is_european_format
    assert dialect.currency_hint == "USD"
    assert dialect.date_format == "MM/DD/YYYY"


def test_probe_dialect_no_hints():
    """Test the neutral default without samples."""
    dialect = probe_dialect([], amount_idx=-1, date_idx=-1)
    assert dialect.confidence == 0.5
    assert not dialect.is_european_format
