"""Utility functions for ingestkit."""

from ingestkit.utils.date_parser import parse_date, detect_date_format
from ingestkit.utils.amount_parser import parse_amount, parse_debit_credit

__all__ = ["parse_date", "detect_date_format", "parse_amount", "parse_debit_credit"]
