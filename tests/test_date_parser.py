"""Tests for date parsing and format detection."""

from datetime import datetime

import pytest
from dateutil import tz

from ingestkit.utils.date_parser import detect_date_format, parse_date, resolve_timezone, to_strptime


def test_to_strptime_converts_tokens():
    """Test converting pattern tokens to strptime directives."""
    assert to_strptime("DD/MM/YYYY") == "%d/%m/%Y"
    assert to_strptime("YYYY-MM-DD HH:mm:ss") == "%Y-%m-%d %H:%M:%S"
    assert to_strptime("%d.%m.%Y") == "%d.%m.%Y"
    assert to_strptime("") == ""


def test_parse_with_preferred_format():
    """Test that the configured format decides ambiguous dates."""
    assert parse_date("01/02/2024", "DD/MM/YYYY") == datetime(2024, 2, 1)
    assert parse_date("01/02/2024", "MM/DD/YYYY") == datetime(2024, 1, 2)


def test_parse_falls_back_to_known_formats():
    """Test parsing without a configured format."""
    assert parse_date("2024-01-15") == datetime(2024, 1, 15)
    assert parse_date("15.01.2024") == datetime(2024, 1, 15)
    assert parse_date("2024-01-15 10:30:00") == datetime(2024, 1, 15, 10, 30)


def test_parse_attaches_timezone():
    """Test that naive results get the given timezone."""
    lisbon = resolve_timezone("Europe/Lisbon")
    parsed = parse_date("2024-01-15", tz=lisbon)
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() == tz.gettz("Europe/Lisbon").utcoffset(datetime(2024, 1, 15))


def test_resolve_timezone_empty():
    """Test that an empty name yields no timezone."""
    assert resolve_timezone("") is None


@pytest.mark.parametrize("value", ["", "yesterday", "2024-13-45"])
def test_parse_invalid_date(value):
    """Test that unparseable dates raise ValueError."""
    with pytest.raises(ValueError):
        parse_date(value)


def test_detect_day_first():
    """Test detecting day-first dates."""
    assert detect_date_format(["15/01/2024", "03/02/2024"]) == "DD/MM/YYYY"


def test_detect_month_first():
    """Test detecting month-first dates."""
    assert detect_date_format(["01/15/2024", "02/03/2024"]) == "MM/DD/YYYY"


def test_detect_year_first_keeps_separator():
    """Test that year-first dates keep their separator."""
    assert detect_date_format(["2024.01.15"]) == "YYYY.MM.DD"
    assert detect_date_format(["2024-01-15 00:00:00"]) == "YYYY-MM-DD"


def test_detect_ambiguous_defaults_to_day_first():
    """Test that ambiguous samples default to day-first."""
    assert detect_date_format(["01/02/2024"]) == "DD/MM/YYYY"


def test_detect_without_samples():
    """Test that unusable samples yield an empty format."""
    assert detect_date_format([]) == ""
    assert detect_date_format(["n/a"]) == ""
