"""Tests for currency detection."""

from ingestkit.domain.currency import (
    currency_column_index,
    detect_currency_from_file,
    detect_currency_from_line,
    normalize_currency_code,
)
from ingestkit.domain.sniffer import detect_config, normalize_bytes

from conftest import EUROPEAN_CSV, SIMPLE_CSV


def test_normalize_currency_code():
    """Test normalizing account and cell currency values."""
    assert normalize_currency_code(" eur ") == "EUR"
    assert normalize_currency_code('"usd"') == "USD"
    assert normalize_currency_code("Moeda: GBP") == "GBP"
    assert normalize_currency_code("Euro") is None
    assert normalize_currency_code("EUR/USD") is None
    assert normalize_currency_code("") is None


def test_detect_currency_from_line():
    """Test metadata line detection."""
    assert detect_currency_from_line("Total €12") == "EUR"
    assert detect_currency_from_line("Moeda: EUR") == "EUR"
    assert detect_currency_from_line("Conta Ordem - GBP") == "GBP"
    assert detect_currency_from_line("Conta Ordem - GBP", allow_loose=False) is None
    assert detect_currency_from_line("Account statement") is None


def test_currency_column_index():
    """Test finding a currency column by header."""
    assert currency_column_index(["Date", "Amount", "Currency"]) == 2
    assert currency_column_index(["Data", "Moeda"]) == 1
    assert currency_column_index(["Date", "Amount"]) == -1


def test_detect_from_metadata_line():
    """Test currency found above the header row."""
    data = EUROPEAN_CSV.encode()
    assert detect_currency_from_file(normalize_bytes(data), detect_config(data)) == "EUR"


def test_detect_from_currency_column():
    """Test currency found in a dedicated column."""
    data = SIMPLE_CSV.encode()
    assert detect_currency_from_file(normalize_bytes(data), detect_config(data)) == "EUR"


def test_detect_nothing():
    """Test a file that carries no currency."""
    data = b"Date,Description,Amount\n2024-01-01,Coffee,-2.50\n"
    assert detect_currency_from_file(normalize_bytes(data), detect_config(data)) is None
