"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class FormatError(DomainError):
    """The uploaded file could not be analyzed."""


class EmptyFileError(FormatError):
    """The uploaded file has no content."""

    def __init__(self) -> None:
        super().__init__("file is empty")


class NoHeadersFoundError(FormatError):
    """No line in the file looks like a header row."""

    def __init__(self) -> None:
        super().__init__("could not find data headers")


class InvalidDelimiterError(FormatError):
    """The header row has no recognizable delimiter."""

    def __init__(self) -> None:
        super().__init__("could not detect valid delimiter")


class MappingError(DomainError):
    """Column mapping is incomplete or points outside the detected headers."""


class CurrencyResolutionError(DomainError):
    """No currency could be determined for an import."""


class RowParseError(DomainError):
    """A single row failed to parse. Never fatal to the import."""

    def __init__(self, parse_error) -> None:
        self.parse_error = parse_error
        super().__init__(str(parse_error))


class CategorizationError(DomainError):
    """Matcher or cache failure. Callers fail open."""


class PersistenceError(DomainError):
    """Writing imported rows failed."""


class InsightComputationError(DomainError):
    """Post-import quality metrics could not be computed."""


def row_error(row: int, column: str, message: str) -> str:
    """Return message for a row-level parse failure."""
    if column:
        return f"row {row}, column {column}: {message}"
    return f"row {row}: {message}"


def column_out_of_bounds(role: str, index: int, width: int) -> str:
    """Return message for a mapped column outside the header width."""
    return f"{role} column index {index} out of bounds for {width} detected headers"


def missing_required_columns(roles: list[str]) -> str:
    """Return message for required roles that could not be mapped."""
    return f"missing required columns: {', '.join(roles)}"


def currency_not_found(account_id: Optional[int] = None) -> str:
    """Return message when no currency can be resolved."""
    if account_id is not None:
        return f"account currency not found; invalid account_id {account_id}"
    return "currency code not found; provide account_id or include currency in file"


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"
