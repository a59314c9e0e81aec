"""Currency detection for statement files.

Banks rarely put the currency in the data rows. It usually sits in a
metadata line above the header ("Moeda: EUR", "Account - GBP") or in a
dedicated column.
"""

import re
from typing import Optional, Sequence

from ingestkit.domain.entities import FileConfig

# Order matters: "$" is the most ambiguous and goes last.
CURRENCY_SYMBOLS = (
    ("€", "EUR"),
    ("£", "GBP"),
    ("¥", "JPY"),
    ("￥", "JPY"),
    ("₹", "INR"),
    ("₽", "RUB"),
    ("₩", "KRW"),
    ("₺", "TRY"),
    ("₫", "VND"),
    ("₪", "ILS"),
    ("$", "USD"),
)

CURRENCY_KEYWORDS = ("currency", "moeda", "moneda", "divisa", "devise", "valuta")

_TOKEN_SPLIT = re.compile(r"[;,\t|\-:/()\s]+")


def is_currency_code(value: str) -> bool:
    """Return True for a three-letter uppercase ASCII code."""
    return len(value) == 3 and all("A" <= ch <= "Z" for ch in value)


def extract_currency_tokens(value: str) -> list[str]:
    """Return all ISO-looking tokens in ``value``."""
    tokens = (t.strip("\"'") for t in _TOKEN_SPLIT.split(value.upper()))
    return [t for t in tokens if is_currency_code(t)]


def extract_single_currency_token(value: str) -> Optional[str]:
    """Return the currency code when exactly one appears in ``value``."""
    tokens = extract_currency_tokens(value)
    if len(tokens) != 1:
        return None
    return tokens[0]


def normalize_currency_code(value: str) -> Optional[str]:
    """Normalize a currency cell or account setting to an ISO code."""
    if not value:
        return None
    cleaned = value.strip().strip("\"'").upper()
    if not cleaned:
        return None
    if is_currency_code(cleaned):
        return cleaned
    return extract_single_currency_token(cleaned)


def detect_currency_from_symbols(value: str) -> Optional[str]:
    for symbol, code in CURRENCY_SYMBOLS:
        if symbol in value:
            return code
    return None


def contains_currency_keyword(text: str) -> bool:
    lower = text.lower()
    return any(keyword in lower for keyword in CURRENCY_KEYWORDS)


def detect_currency_from_line(line: str, allow_loose: bool = True) -> Optional[str]:
    """Detect a currency in a free-text metadata line.

    Symbols win. A line mentioning a currency keyword may carry a single
    code anywhere. With ``allow_loose``, a single code on a dashed line such
    as ``"Conta Ordem - EUR"`` is also accepted.
    """
    code = detect_currency_from_symbols(line)
    if code:
        return code

    if contains_currency_keyword(line):
        code = normalize_currency_code(line)
        if code:
            return code

    if allow_loose and "-" in line:
        return extract_single_currency_token(line)

    return None


def currency_column_index(headers: Sequence[str]) -> int:
    """Return the index of the first currency-like header, or -1."""
    for i, header in enumerate(headers):
        h = header.strip().lower()
        if h and contains_currency_keyword(h):
            return i
    return -1


def detect_currency_from_file(text: str, config: FileConfig) -> Optional[str]:
    """Find the file currency in metadata lines or a currency column.

    Args:
        text: Normalized file text
        config: Detected file configuration

    Returns:
        ISO currency code, or None if nothing was found
    """
    lines = text.split("\n")
    for line in lines[: min(config.skip_lines, len(lines))]:
        line = line.rstrip("\r").strip()
        if not line:
            continue
        code = detect_currency_from_line(line)
        if code:
            return code

    idx = currency_column_index(config.headers)
    if idx >= 0:
        for row in config.sample_rows:
            if idx >= len(row):
                continue
            value = row[idx].strip()
            if not value:
                continue
            code = normalize_currency_code(value) or detect_currency_from_symbols(value)
            if code:
                return code

    return None
