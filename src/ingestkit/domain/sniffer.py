"""File dialect detection.

Identifies delimiter, header row, header fingerprint and regional number/date
conventions of bank statement exports.
"""

import csv
import hashlib
import io
from typing import Optional, Sequence

from ingestkit.domain.entities import (
    ColumnSuggestions,
    DetectOptions,
    FileConfig,
    RegionalDialect,
)
from ingestkit.domain.errors import (
    EmptyFileError,
    InvalidDelimiterError,
    NoHeadersFoundError,
)

MAX_HEADER_SCAN_LINES = 20
SAMPLE_ROW_COUNT = 5
DELIMITERS = (";", "\t", ",", "|")

# Common bank statement header keywords (PT / EN / ES)
HEADER_KEYWORDS = (
    "data mov", "descrição", "descricao", "débito", "debito", "crédito", "credito",
    "data valor", "saldo", "categoria",
    "date", "description", "amount", "debit", "credit", "balance", "category", "merchant",
    "fecha", "descripción", "descripcion", "importe", "cargo", "abono",
)


def normalize_bytes(data: bytes) -> str:
    """Decode file bytes, stripping a UTF-8 BOM and falling back to latin-1."""
    if data.startswith(b"\xef\xbb\xbf"):
        data = data[3:]
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _clean_line(line: str) -> str:
    return line.rstrip("\r").lstrip("﻿").strip()


def detect_delimiter(line: str) -> tuple[str, int]:
    """Return the most frequent candidate delimiter and its count."""
    best, best_count = "", 0
    for delimiter in DELIMITERS:
        count = line.count(delimiter)
        if count > best_count:
            best, best_count = delimiter, count
    return best, best_count


def count_header_keywords(text: str) -> int:
    """Count header keywords contained in ``text`` (case-insensitive)."""
    lower = text.lower()
    return sum(1 for kw in HEADER_KEYWORDS if kw in lower)


def find_header_row(lines: Sequence[str]) -> tuple[str, int]:
    """Locate the header row and its delimiter.

    Lines with at least two header keywords compete on
    ``columns * 10 + keyword_matches``. Otherwise the line with the most
    delimiter-separated fields (at least two) wins.

    Raises:
        NoHeadersFoundError: If no line qualifies
    """
    keyword_best: Optional[tuple[int, str, int]] = None  # (score, delimiter, index)
    fallback_best: Optional[tuple[int, str, int]] = None  # (columns, delimiter, index)

    for i, raw in enumerate(lines[:MAX_HEADER_SCAN_LINES]):
        line = _clean_line(raw)
        if not line:
            continue

        delimiter, count = detect_delimiter(line)
        if count < 1:
            continue
        columns = count + 1

        matches = count_header_keywords(line)
        if matches >= 2:
            score = columns * 10 + matches
            if keyword_best is None or score > keyword_best[0]:
                keyword_best = (score, delimiter, i)
        elif fallback_best is None or columns > fallback_best[0]:
            fallback_best = (columns, delimiter, i)

    if keyword_best is not None:
        return keyword_best[1], keyword_best[2]
    if fallback_best is not None and fallback_best[0] >= 2:
        return fallback_best[1], fallback_best[2]
    raise NoHeadersFoundError()


def generate_fingerprint(headers: Sequence[str]) -> str:
    """SHA-256 hex of ``|``-joined, alphanumeric-only, lowercased headers."""
    normalized = []
    for header in headers:
        clean = "".join(ch.lower() for ch in header if ch.isalnum())
        if clean:
            normalized.append(clean)
    return hashlib.sha256("|".join(normalized).encode("utf-8")).hexdigest()


def _read_rows(text: str, delimiter: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    rows = []
    while True:
        try:
            rows.append(next(reader))
        except StopIteration:
            break
        except csv.Error:
            continue
    return rows


def detect_config(data: bytes, options: Optional[DetectOptions] = None) -> FileConfig:
    """Analyze a CSV/TSV file and return its configuration.

    Args:
        data: Raw file bytes
        options: Optional header row / delimiter overrides

    Raises:
        EmptyFileError: If the file is empty
        NoHeadersFoundError: If no header row can be found
        InvalidDelimiterError: If a forced header row has no delimiter
    """
    if not data:
        raise EmptyFileError()

    text = normalize_bytes(data)
    lines = text.split("\n")
    if not text.strip():
        raise EmptyFileError()

    if options is not None and options.header_row_index is not None and options.header_row_index >= 0:
        if options.header_row_index >= len(lines):
            raise NoHeadersFoundError()
        skip_lines = options.header_row_index
        delimiter = options.delimiter or detect_delimiter(_clean_line(lines[skip_lines]))[0]
        if not delimiter:
            raise InvalidDelimiterError()
    else:
        delimiter, skip_lines = find_header_row(lines)
        if options is not None and options.delimiter:
            delimiter = options.delimiter

    header_line = _clean_line(lines[skip_lines])
    header_rows = _read_rows(header_line, delimiter)
    if not header_rows:
        raise NoHeadersFoundError()
    headers = tuple(h.strip() for h in header_rows[0])

    body = "\n".join(lines[skip_lines + 1:])
    sample_rows = tuple(
        tuple(row) for row in _read_rows(body, delimiter)[:SAMPLE_ROW_COUNT]
    )

    return FileConfig(
        delimiter=delimiter,
        skip_lines=skip_lines,
        headers=headers,
        fingerprint=generate_fingerprint(headers),
        sample_rows=sample_rows,
    )


def suggest_columns(headers: Sequence[str]) -> ColumnSuggestions:
    """Auto-match columns to semantic roles from header names."""
    date_col = desc_col = amount_col = debit_col = credit_col = category_col = -1

    for i, header in enumerate(headers):
        h = header.strip().lower()

        if date_col == -1 and ("data mov" in h or "date" in h or "fecha" in h or h == "data"):
            date_col = i

        if desc_col == -1 and (
            "descri" in h or "merchant" in h or h in ("nome", "name", "payee", "details", "memo")
        ):
            desc_col = i

        if debit_col == -1 and ("débito" in h or "debito" in h or "debit" in h or "cargo" in h):
            debit_col = i

        if credit_col == -1 and ("crédito" in h or "credito" in h or "credit" in h or "abono" in h):
            credit_col = i

        if amount_col == -1 and h in ("amount", "valor", "importe", "montante", "value", "montant"):
            amount_col = i

        if category_col == -1 and ("categ" in h or "tipo" in h or "type" in h):
            category_col = i

    return ColumnSuggestions(
        date_col=date_col,
        desc_col=desc_col,
        amount_col=amount_col,
        debit_col=debit_col,
        credit_col=credit_col,
        category_col=category_col,
        is_double_entry=debit_col != -1 and credit_col != -1,
    )


def analyze_amount_format(value: str) -> int:
    """Return >0 for a European-looking amount, <0 for US, 0 if ambiguous."""
    cleaned = "".join(ch for ch in value if ch.isdigit() or ch in ",.-").lstrip("-")
    if not cleaned:
        return 0

    comma = cleaned.rfind(",")
    dot = cleaned.rfind(".")

    if comma >= 0 and dot >= 0:
        return 1 if comma > dot else -1
    if comma >= 0:
        return 1 if len(cleaned) - comma - 1 <= 2 else 0
    if dot >= 0:
        return -1 if len(cleaned) - dot - 1 <= 2 else 0
    return 0


def analyze_date_format(value: str) -> bool:
    """Return True if the date is definitely day-first (first field 13..31)."""
    normalized = value.replace("-", "/").replace(".", "/")
    parts = [p for p in normalized.split("/") if p]
    if len(parts) < 2:
        return False
    digits = ""
    for ch in parts[0].strip():
        if not ch.isdigit():
            break
        digits += ch
    return bool(digits) and 12 < int(digits) <= 31


def probe_dialect(
    sample_rows: Sequence[Sequence[str]], amount_idx: int, date_idx: int
) -> RegionalDialect:
    """Infer the regional dialect of a file from sample rows.

    Confidence is winning hints over total hints. A tie yields confidence 0
    and US defaults; callers apply their own default in that case.
    """
    european_hints = 0
    us_hints = 0
    currency_hint = ""
    date_is_dd = False
    date_is_mm = False

    for row in sample_rows:
        if 0 <= amount_idx < len(row) and row[amount_idx]:
            hint = analyze_amount_format(row[amount_idx])
            if hint > 0:
                european_hints += 1
            elif hint < 0:
                us_hints += 1

        if 0 <= date_idx < len(row) and row[date_idx]:
            if analyze_date_format(row[date_idx]):
                date_is_dd = True
            else:
                date_is_mm = True

        for cell in row:
            if "€" in cell or "EUR" in cell:
                currency_hint = "EUR"
                european_hints += 1
            elif "R$" in cell or "BRL" in cell:
                currency_hint = "BRL"
                european_hints += 1
            elif "$" in cell:
                if not currency_hint:
                    currency_hint = "USD"
                us_hints += 1

    total = european_hints + us_hints
    is_european = european_hints > us_hints
    if total == 0:
        confidence = 0.5
    elif european_hints == us_hints:
        confidence = 0.0
    else:
        confidence = max(european_hints, us_hints) / total

    if date_is_dd and not date_is_mm:
        date_format = "DD/MM/YYYY"
    elif date_is_mm and not date_is_dd:
        date_format = "MM/DD/YYYY"
    else:
        date_format = "DD/MM/YYYY" if is_european else "MM/DD/YYYY"

    return RegionalDialect(
        decimal_separator="," if is_european else ".",
        thousands_separator="." if is_european else ",",
        date_format=date_format,
        currency_hint=currency_hint,
        confidence=confidence,
        is_european_format=is_european,
    )
