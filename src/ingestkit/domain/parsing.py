"""Row-level transaction parsing."""

import csv
import io
import re
from typing import IO, Iterator, Optional, Sequence, Union

from ingestkit.domain.entities import ColumnMapping, ParsedTransaction, ParseError, ParseResult
from ingestkit.domain.errors import RowParseError
from ingestkit.domain.sniffer import normalize_bytes
from ingestkit.utils.amount_parser import parse_amount, parse_debit_credit
from ingestkit.utils.date_parser import parse_date, resolve_timezone

Source = Union[bytes, str, IO[str]]

_WHITESPACE = re.compile(r"\s+")


def clean_description(description: str) -> str:
    """Collapse internal whitespace."""
    return _WHITESPACE.sub(" ", description).strip()


def open_source(source: Source) -> IO[str]:
    """Return a text stream for bytes, a string, or an open text file."""
    if isinstance(source, bytes):
        return io.StringIO(normalize_bytes(source), newline="")
    if isinstance(source, str):
        return io.StringIO(source, newline="")
    return source


def first_data_row(mapping: ColumnMapping) -> int:
    """Return the 1-based line number of the first data row."""
    return mapping.skip_lines + 2


def read_records(stream: IO[str], mapping: ColumnMapping) -> tuple[Optional[list[str]], Iterator[list[str]]]:
    """Skip preamble lines and the header, returning (header, record iterator).

    The header is None when the stream ends before it.
    """
    for _ in range(mapping.skip_lines):
        if not stream.readline():
            return None, iter(())

    reader = csv.reader(stream, delimiter=mapping.delimiter or ",", skipinitialspace=True)
    try:
        header = next(reader)
    except StopIteration:
        return None, iter(())
    return header, reader


class RowParser:
    """Converts raw records into transactions using column indices."""

    def __init__(self, mapping: ColumnMapping):
        """Initialize row parser.

        Args:
            mapping: Resolved column mapping
        """
        self.mapping = mapping
        self.european = bool(mapping.is_european_format)
        self.tz = resolve_timezone(mapping.timezone)

    def _value(self, record: Sequence[str], idx: int) -> str:
        if idx < 0 or idx >= len(record):
            return ""
        return record[idx].strip()

    def process_record(self, record: Sequence[str], row_num: int) -> Optional[ParsedTransaction]:
        """Parse one record.

        Args:
            record: Raw field values
            row_num: 1-based line number used in error reports

        Returns:
            ParsedTransaction, or None when the row has no date and is skipped

        Raises:
            RowParseError: If a required field is missing or invalid
        """
        mapping = self.mapping

        date_str = self._value(record, mapping.date_col)
        if not date_str:
            return None

        try:
            txn_date = parse_date(date_str, mapping.date_format, self.tz)
        except ValueError as e:
            raise RowParseError(
                ParseError(row=row_num, column="date", message=f"invalid date: {e}", raw_data=date_str)
            )

        description = self._value(record, mapping.desc_col)
        if not description:
            raise RowParseError(
                ParseError(row=row_num, column="description", message="missing description")
            )

        if mapping.amount_col >= 0 and not mapping.is_double_entry:
            amount_str = self._value(record, mapping.amount_col)
            if not amount_str:
                raise RowParseError(ParseError(row=row_num, column="amount", message="missing amount"))
            try:
                amount_minor, currency = parse_amount(amount_str, self.european)
            except ValueError as e:
                raise RowParseError(
                    ParseError(
                        row=row_num,
                        column="amount",
                        message=f"invalid amount: {e}",
                        raw_data=amount_str,
                    )
                )
        elif mapping.debit_col >= 0 or mapping.credit_col >= 0:
            amount_minor, currency = parse_debit_credit(
                self._value(record, mapping.debit_col),
                self._value(record, mapping.credit_col),
                self.european,
            )
        else:
            raise RowParseError(
                ParseError(row=row_num, column="amount", message="no amount column configured")
            )

        return ParsedTransaction(
            date=txn_date,
            description=clean_description(description),
            amount_minor=amount_minor,
            category=self._value(record, mapping.category_col),
            raw_row=row_num,
            currency_hint=currency,
        )


class Parser:
    """Sequential CSV parser."""

    def __init__(self, mapping: ColumnMapping):
        self.mapping = mapping
        self.row_parser = RowParser(mapping)

    def parse(self, source: Source) -> ParseResult:
        """Parse every record of a CSV source.

        Args:
            source: Raw bytes, text, or an open text stream

        Returns:
            ParseResult with transactions, row errors and counters
        """
        result = ParseResult()
        header, records = read_records(open_source(source), self.mapping)
        if header is None:
            result.errors.append(ParseError(row=1, message="failed to read header: no data"))
            return result

        row_num = first_data_row(self.mapping)
        while True:
            try:
                record = next(records)
            except StopIteration:
                break
            except csv.Error as e:
                result.errors.append(ParseError(row=row_num, message=str(e)))
                row_num += 1
                continue

            result.total_rows += 1
            try:
                txn = self.row_parser.process_record(record, row_num)
            except RowParseError as e:
                result.errors.append(e.parse_error)
            else:
                if txn is None:
                    result.skipped_rows += 1
                else:
                    result.transactions.append(txn)
                    result.parsed_rows += 1
            row_num += 1

        return result
