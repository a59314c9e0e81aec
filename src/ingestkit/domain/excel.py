"""XLSX statement parsing with openpyxl."""

import io
import zipfile
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Iterator, Optional

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ingestkit.domain.entities import ColumnMapping, FileConfig, ParseResult
from ingestkit.domain.errors import EmptyFileError, FormatError, NoHeadersFoundError, RowParseError
from ingestkit.domain.parsing import RowParser
from ingestkit.domain.sniffer import (
    MAX_HEADER_SCAN_LINES,
    SAMPLE_ROW_COUNT,
    count_header_keywords,
    generate_fingerprint,
    suggest_columns,
)

XLSX_MAGIC = b"PK\x03\x04"

PREFERRED_SHEETS = ("transactions", "movimentos", "extrato", "statement", "data", "sheet1")


def is_excel(data: bytes) -> bool:
    """Return True if ``data`` looks like an XLSX (zip) container."""
    return data[:4] == XLSX_MAGIC


def find_transaction_sheet(sheet_names: list[str]) -> Optional[str]:
    """Pick the sheet most likely to hold transactions.

    Falls back to the first sheet when no name matches.
    """
    if not sheet_names:
        return None
    by_name = {name.lower(): name for name in reversed(sheet_names)}
    for preferred in PREFERRED_SHEETS:
        if preferred in by_name:
            return by_name[preferred]
    return sheet_names[0]


def cell_to_text(value: Any, european: bool = False) -> str:
    """Render a cell value in a form the row parser accepts."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        text = f"{value:.2f}"
        return text.replace(".", ",") if european else text
    return str(value).strip()


def _open_rows(data: bytes, european: bool = False) -> Iterator[list[str]]:
    """Yield rows of the transaction sheet as lists of text."""
    if not data:
        raise EmptyFileError()
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise FormatError(f"failed to open Excel file: {e}")

    try:
        sheet_name = find_transaction_sheet(workbook.sheetnames)
        if sheet_name is None:
            raise FormatError("no suitable sheet found")
        for row in workbook[sheet_name].iter_rows(values_only=True):
            yield [cell_to_text(value, european) for value in row]
    finally:
        workbook.close()


class ExcelParser:
    """Parses the transaction sheet of an XLSX workbook."""

    def __init__(self, mapping: ColumnMapping):
        """Initialize Excel parser.

        Args:
            mapping: Column mapping; ``skip_lines`` counts rows above the
                header. Unset indices are auto-detected from the header row.
        """
        self.mapping = mapping

    def _resolve(self, headers: list[str]) -> ColumnMapping:
        suggestions = suggest_columns(headers)
        m = self.mapping

        def pick(explicit: int, suggested: int) -> int:
            return explicit if explicit >= 0 else suggested

        return replace(
            m,
            date_col=pick(m.date_col, suggestions.date_col),
            desc_col=pick(m.desc_col, suggestions.desc_col),
            amount_col=pick(m.amount_col, suggestions.amount_col),
            debit_col=pick(m.debit_col, suggestions.debit_col),
            credit_col=pick(m.credit_col, suggestions.credit_col),
            category_col=pick(m.category_col, suggestions.category_col),
        )

    def parse(self, data: bytes) -> ParseResult:
        """Parse all data rows below the header.

        Raises:
            FormatError: If the workbook cannot be opened
        """
        result = ParseResult()
        row_parser: Optional[RowParser] = None

        for index, row in enumerate(_open_rows(data, bool(self.mapping.is_european_format))):
            if index < self.mapping.skip_lines:
                continue
            if row_parser is None:
                row_parser = RowParser(self._resolve(row))
                continue

            row_num = index + 1
            result.total_rows += 1
            try:
                txn = row_parser.process_record(row, row_num)
            except RowParseError as e:
                result.errors.append(e.parse_error)
                continue
            if txn is None:
                result.skipped_rows += 1
            else:
                result.transactions.append(txn)
                result.parsed_rows += 1

        return result


def detect_excel_config(data: bytes) -> FileConfig:
    """Build a FileConfig for an XLSX upload.

    Uses the same header scoring as CSV sniffing, counting non-empty cells
    as columns. The delimiter is empty.

    Raises:
        EmptyFileError: If the file is empty
        FormatError: If the workbook cannot be opened
        NoHeadersFoundError: If no row looks like a header
    """
    rows: list[list[str]] = []
    for row in _open_rows(data):
        rows.append(row)
        if len(rows) >= MAX_HEADER_SCAN_LINES + SAMPLE_ROW_COUNT:
            break

    keyword_best: Optional[tuple[int, int]] = None  # (score, index)
    fallback_best: Optional[tuple[int, int]] = None  # (columns, index)
    for i, row in enumerate(rows[:MAX_HEADER_SCAN_LINES]):
        columns = sum(1 for cell in row if cell)
        if columns < 2:
            continue
        matches = count_header_keywords(" | ".join(row))
        if matches >= 2:
            score = columns * 10 + matches
            if keyword_best is None or score > keyword_best[0]:
                keyword_best = (score, i)
        elif fallback_best is None or columns > fallback_best[0]:
            fallback_best = (columns, i)

    if keyword_best is not None:
        header_index = keyword_best[1]
    elif fallback_best is not None:
        header_index = fallback_best[1]
    else:
        raise NoHeadersFoundError()

    header_row = rows[header_index]
    while header_row and not header_row[-1]:
        header_row = header_row[:-1]
    headers = tuple(header_row)

    return FileConfig(
        delimiter="",
        skip_lines=header_index,
        headers=headers,
        fingerprint=generate_fingerprint(headers),
        sample_rows=tuple(tuple(r) for r in rows[header_index + 1:header_index + 1 + SAMPLE_ROW_COUNT]),
    )
