"""Domain model entities for ingestkit.

These are pure data classes representing the contracts between sniffing,
parsing, matching and persistence, independent of any database schema.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class FileConfig:
    """Detected shape of an uploaded file."""

    delimiter: str
    skip_lines: int
    headers: tuple[str, ...]
    fingerprint: str
    sample_rows: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class DetectOptions:
    """Caller overrides for header row and delimiter detection.

    ``header_row_index`` is 0-based; ``None`` means auto-detect.
    """

    header_row_index: Optional[int] = None
    delimiter: Optional[str] = None


@dataclass(frozen=True)
class ColumnSuggestions:
    """Auto-detected column indices. -1 means not found."""

    date_col: int = -1
    desc_col: int = -1
    amount_col: int = -1
    debit_col: int = -1
    credit_col: int = -1
    category_col: int = -1
    is_double_entry: bool = False


@dataclass(frozen=True)
class ColumnMapping:
    """Semantic column assignment for an import.

    Unset indices are -1. ``is_european_format`` of ``None`` means infer it
    from the file.
    """

    date_col: int = -1
    desc_col: int = -1
    amount_col: int = -1
    debit_col: int = -1
    credit_col: int = -1
    category_col: int = -1
    is_double_entry: bool = False
    is_european_format: Optional[bool] = None
    date_format: str = ""
    timezone: str = ""
    delimiter: str = ""
    skip_lines: int = 0


@dataclass(frozen=True)
class RegionalDialect:
    """Inferred regional formatting for amounts and dates."""

    decimal_separator: str = "."
    thousands_separator: str = ","
    date_format: str = "MM/DD/YYYY"
    currency_hint: str = ""
    confidence: float = 0.5
    is_european_format: bool = False


@dataclass(frozen=True)
class ParsedTransaction:
    """Normalized output row.

    ``amount_minor`` is signed; negative means money out. The enrichment
    fields are filled in by categorization before persistence.
    """

    date: datetime
    description: str
    amount_minor: int
    category: str = ""
    raw_row: int = 0
    currency_hint: str = ""
    merchant_name: str = ""
    category_id: Optional[int] = None
    is_recurring: bool = False
    rule_id: Optional[int] = None
    merchant_id: Optional[int] = None


@dataclass(frozen=True)
class ParseError:
    """Row-level parse failure."""

    row: int
    column: str = ""
    message: str = ""
    raw_data: str = ""

    def __str__(self) -> str:
        if self.column:
            return f"row {self.row}, column {self.column}: {self.message}"
        return f"row {self.row}: {self.message}"


@dataclass(frozen=True)
class StreamResult:
    """One parsed row. Exactly one of transaction/error is set unless skipped."""

    row_num: int
    transaction: Optional[ParsedTransaction] = None
    error: Optional[ParseError] = None

    @property
    def skipped(self) -> bool:
        return self.transaction is None and self.error is None


@dataclass
class StreamStats:
    """Parsing counters, final once the stream is exhausted."""

    total_rows: int = 0
    parsed_rows: int = 0
    skipped_rows: int = 0
    error_rows: int = 0


@dataclass
class ParseResult:
    """Result of a sequential parse."""

    transactions: list[ParsedTransaction] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    total_rows: int = 0
    parsed_rows: int = 0
    skipped_rows: int = 0


@dataclass(frozen=True)
class CategoryRule:
    """User-defined categorization rule."""

    id: int
    user_id: str
    match_pattern: str
    clean_name: Optional[str] = None
    category_id: Optional[int] = None
    is_recurring: bool = False
    priority: int = 0


@dataclass(frozen=True)
class Merchant:
    """Merchant catalog entry. ``user_id`` of ``None`` means system-wide."""

    id: int
    raw_pattern: str
    clean_name: str
    user_id: Optional[str] = None
    category_id: Optional[int] = None

    @property
    def is_system(self) -> bool:
        return self.user_id is None


@dataclass(frozen=True)
class MatchResult:
    """Exact match metadata for one source pattern."""

    pattern: str
    clean_name: str
    priority: int
    is_rule: bool
    category_id: Optional[int] = None
    is_recurring: bool = False
    rule_id: Optional[int] = None
    merchant_id: Optional[int] = None

    @property
    def source_id(self) -> int:
        return self.rule_id if self.is_rule else self.merchant_id


@dataclass(frozen=True)
class FuzzyMatchResult:
    """Approximate match with similarity score (0-100)."""

    pattern: str
    clean_name: str
    score: int
    distance: int
    is_rule: bool
    priority: int = 0
    category_id: Optional[int] = None
    is_recurring: bool = False
    rule_id: Optional[int] = None
    merchant_id: Optional[int] = None


@dataclass(frozen=True)
class CategorizationResult:
    """Categorization outcome for one description."""

    clean_merchant_name: str
    category_id: Optional[int] = None
    is_recurring: bool = False
    rule_id: Optional[int] = None
    merchant_id: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.rule_id is not None or self.merchant_id is not None


@dataclass(frozen=True)
class SearchDocument:
    """Searchable rule or merchant."""

    id: str
    pattern: str
    clean_name: str
    description: str
    category_id: str
    type: str
    priority: float
    user_id: str = ""


@dataclass(frozen=True)
class SearchResult:
    """Search hit with relevance score."""

    document: SearchDocument
    score: float
    category_id: Optional[int] = None

    @property
    def is_rule(self) -> bool:
        return self.document.type == "rule"


@dataclass(frozen=True)
class Account:
    """Bank account domain entity."""

    id: int
    user_id: str
    name: str
    currency: str
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Persisted transaction."""

    id: int
    user_id: str
    date: datetime
    description: str
    amount_minor: int
    currency_code: str
    account_id: Optional[int] = None
    import_job_id: Optional[int] = None
    institution_name: str = ""
    raw_category: str = ""
    merchant_name: str = ""
    category_id: Optional[int] = None
    is_recurring: bool = False
    rule_id: Optional[int] = None
    merchant_id: Optional[int] = None


@dataclass(frozen=True)
class DataSourceHealth:
    """Transaction quality rolled up per user and institution."""

    user_id: str
    institution_name: str
    transaction_count: int
    categorization_rate: float
    uncategorized_count: int
    first_transaction: Optional[datetime] = None
    last_transaction: Optional[datetime] = None
    last_import: Optional[datetime] = None


@dataclass(frozen=True)
class BankMapping:
    """Column mapping learned for a file fingerprint."""

    id: int
    fingerprint: str
    mapping: ColumnMapping
    user_id: Optional[str] = None
    bank_name: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ImportJob:
    """Import job record."""

    id: int
    user_id: str
    status: str
    account_id: Optional[int] = None
    institution_name: str = ""
    rows_imported: int = 0
    rows_failed: int = 0
    rows_duplicate: int = 0
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


@dataclass(frozen=True)
class ImportJobStats:
    """Aggregates over the transactions persisted by one job."""

    total_rows: int = 0
    categorized_rows: int = 0
    total_income: int = 0
    total_expenses: int = 0
    duplicates_skipped: int = 0
    earliest_date: Optional[datetime] = None
    latest_date: Optional[datetime] = None

    @property
    def uncategorized_rows(self) -> int:
        return self.total_rows - self.categorized_rows

    @property
    def categorization_rate(self) -> float:
        if self.total_rows == 0:
            return 0.0
        return self.categorized_rows / self.total_rows


@dataclass(frozen=True)
class ImportIssue:
    """Data quality issue found during import."""

    type: str
    affected_rows: int
    sample_value: str = ""
    suggestion: str = ""


@dataclass(frozen=True)
class ImportInsights:
    """Quality metrics for an import job."""

    import_job_id: int
    institution_name: str
    currency_code: str
    categorization_rate: float
    date_quality_score: float
    amount_quality_score: float
    total_income: int
    total_expenses: int
    duplicates_skipped: int
    earliest_date: Optional[datetime] = None
    latest_date: Optional[datetime] = None
    issues: tuple[ImportIssue, ...] = ()


@dataclass(frozen=True)
class ImportOptions:
    """Caller overrides for an import.

    ``header_rows`` is 1-based: the number of the header line.
    """

    header_rows: int = 0
    timezone: str = ""
    institution_name: str = ""


@dataclass(frozen=True)
class AnalyzeResult:
    """Result of analyzing an uploaded file."""

    file_config: FileConfig
    suggestions: ColumnSuggestions
    dialect: RegionalDialect
    mapping: Optional[BankMapping] = None
    is_excel: bool = False

    @property
    def mapping_found(self) -> bool:
        return self.mapping is not None

    @property
    def can_auto_import(self) -> bool:
        return self.mapping is not None


@dataclass(frozen=True)
class ImportResult:
    """User-visible import outcome."""

    job_id: int
    rows_total: int
    rows_imported: int
    rows_failed: int
    rows_duplicate: int = 0
    errors: tuple[str, ...] = ()
