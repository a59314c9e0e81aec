"""Import orchestration domain service.

Composes sniffing, mapping, streaming parsing, batched categorization and
batched persistence into one import job, then computes quality insights in
the background.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from typing import Iterable, Iterator, Optional, Sequence

from ingestkit.config import DEFAULT_BATCH_SIZE, DEFAULT_INSIGHTS_TIMEOUT
from ingestkit.database.base import Database
from ingestkit.domain.categorization import CategorizationService
from ingestkit.domain.currency import detect_currency_from_file, normalize_currency_code
from ingestkit.domain.entities import (
    AnalyzeResult,
    BankMapping,
    ColumnMapping,
    DetectOptions,
    FileConfig,
    ImportOptions,
    ImportResult,
    ParsedTransaction,
    ParseError,
    StreamResult,
)
from ingestkit.domain.errors import (
    CurrencyResolutionError,
    EmptyFileError,
    InsightComputationError,
    MappingError,
    column_out_of_bounds,
    currency_not_found,
    missing_required_columns,
)
from ingestkit.domain.excel import ExcelParser, detect_excel_config, is_excel
from ingestkit.domain.insights import InsightsSink, build_insights
from ingestkit.domain.sniffer import detect_config, normalize_bytes, probe_dialect, suggest_columns
from ingestkit.domain.streaming import StreamingParser
from ingestkit.logging_setup import get_logger
from ingestkit.utils.date_parser import detect_date_format

logger = get_logger(__name__)

PROGRESS_UPDATE_EVERY = 500


def resolve_mapping(config: FileConfig, mapping: ColumnMapping) -> ColumnMapping:
    """Fill unset mapping fields from header suggestions and validate them.

    Any explicit debit/credit column (or ``is_double_entry``) selects the
    double-entry layout; otherwise a single amount column is used, falling
    back to suggested debit/credit columns when no amount column exists.

    Raises:
        MappingError: If a required column is missing or out of bounds
    """
    suggestions = suggest_columns(config.headers)
    resolved = mapping

    if resolved.date_col < 0:
        resolved = replace(resolved, date_col=suggestions.date_col)
    if resolved.desc_col < 0:
        resolved = replace(resolved, desc_col=suggestions.desc_col)
    if resolved.category_col < 0 and suggestions.category_col >= 0:
        resolved = replace(resolved, category_col=suggestions.category_col)

    if resolved.is_double_entry or resolved.debit_col >= 0 or resolved.credit_col >= 0:
        resolved = replace(
            resolved,
            debit_col=resolved.debit_col if resolved.debit_col >= 0 else suggestions.debit_col,
            credit_col=resolved.credit_col if resolved.credit_col >= 0 else suggestions.credit_col,
            is_double_entry=True,
        )
    elif resolved.amount_col < 0:
        if suggestions.amount_col >= 0:
            resolved = replace(resolved, amount_col=suggestions.amount_col)
        elif suggestions.is_double_entry:
            resolved = replace(
                resolved,
                debit_col=suggestions.debit_col,
                credit_col=suggestions.credit_col,
                is_double_entry=True,
            )

    missing = [role for role, col in (("date", resolved.date_col), ("description", resolved.desc_col)) if col < 0]
    if missing:
        raise MappingError(missing_required_columns(missing))
    if resolved.is_double_entry:
        missing = [role for role, col in (("debit", resolved.debit_col), ("credit", resolved.credit_col)) if col < 0]
        if missing:
            raise MappingError(missing_required_columns(missing))
    elif resolved.amount_col < 0:
        raise MappingError(missing_required_columns(["amount"]))

    width = len(config.headers)
    if width > 0:
        checks = [("date", resolved.date_col), ("description", resolved.desc_col)]
        if resolved.is_double_entry:
            checks += [("debit", resolved.debit_col), ("credit", resolved.credit_col)]
        else:
            checks.append(("amount", resolved.amount_col))
        for role, col in checks:
            if col > width - 1:
                raise MappingError(column_out_of_bounds(role, col, width))

    return resolved


def collect_samples(rows: Iterable[Sequence[str]], col: int) -> list[str]:
    """Non-empty stripped values of one column."""
    if col < 0:
        return []
    samples = []
    for row in rows:
        if col < len(row):
            value = row[col].strip()
            if value:
                samples.append(value)
    return samples


def collect_amount_samples(rows: Sequence[Sequence[str]], mapping: ColumnMapping) -> list[str]:
    if mapping.is_double_entry:
        return collect_samples(rows, mapping.debit_col) + collect_samples(rows, mapping.credit_col)
    return collect_samples(rows, mapping.amount_col)


def has_decimal_suffix(value: str, sep: str) -> bool:
    """True if ``value`` ends with ``sep`` followed by one or two digits."""
    idx = value.rfind(sep)
    if idx == -1:
        return False
    suffix = value[idx + 1:]
    return 0 < len(suffix) <= 2 and suffix.isdigit()


def detect_european_format_samples(samples: Iterable[str]) -> Optional[bool]:
    """Vote on decimal separator style across amount samples.

    With both separators present the last one is the decimal separator;
    with only one, it is decimal when followed by at most two digits.

    Returns:
        True for European, False for US, None when inconclusive
    """
    european_hints = 0
    us_hints = 0

    for raw in samples:
        cleaned = "".join(ch for ch in raw if ch.isdigit() or ch in ",.-")
        cleaned = cleaned.removeprefix("-")
        if not cleaned:
            continue

        has_comma = "," in cleaned
        has_dot = "." in cleaned
        if has_comma and has_dot:
            if cleaned.rfind(",") > cleaned.rfind("."):
                european_hints += 1
            else:
                us_hints += 1
        elif has_comma:
            if has_decimal_suffix(cleaned, ","):
                european_hints += 1
        elif has_dot:
            if has_decimal_suffix(cleaned, "."):
                us_hints += 1

    if european_hints == us_hints:
        return None
    return european_hints > us_hints


def apply_format_defaults(config: FileConfig, mapping: ColumnMapping) -> ColumnMapping:
    """Infer date format and number style from samples where not explicit.

    Number style falls back to the delimiter: ``;`` files are European,
    ``,`` files are US.
    """
    if not mapping.date_format:
        date_samples = collect_samples(config.sample_rows, mapping.date_col)
        if date_samples:
            mapping = replace(mapping, date_format=detect_date_format(date_samples))

    if mapping.is_european_format is None:
        european = detect_european_format_samples(collect_amount_samples(config.sample_rows, mapping))
        if european is None:
            if config.delimiter == ";":
                european = True
            elif config.delimiter == ",":
                european = False
        mapping = replace(mapping, is_european_format=european)

    return mapping


def detect_options_for(mapping: ColumnMapping, options: ImportOptions) -> DetectOptions:
    """Sniffing overrides implied by a stored mapping and import options."""
    header_row_index = None
    if mapping.skip_lines > 0:
        header_row_index = mapping.skip_lines
    elif options.header_rows > 0:
        header_row_index = options.header_rows - 1
    return DetectOptions(header_row_index=header_row_index, delimiter=mapping.delimiter or None)


def format_errors(errors: Iterable[ParseError]) -> list[str]:
    """Render row errors as ``line N: message`` sorted by row."""
    return [f"line {e.row}: {e.message}" for e in sorted(errors, key=lambda e: e.row)]


class ImportService:
    """Service for analyzing and importing bank statement files."""

    def __init__(
        self,
        db: Database,
        categorization: Optional[CategorizationService] = None,
        insights: Optional[InsightsSink] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        workers: int = 0,
        insights_timeout: float = DEFAULT_INSIGHTS_TIMEOUT,
    ):
        """Initialize import service.

        Args:
            db: Database instance
            categorization: Categorization service; rows are stored
                uncategorized when absent
            insights: Receiver for post-import metrics; skipped when absent
            batch_size: Rows per categorize/persist batch
            workers: Parser worker threads (0 = CPU count)
            insights_timeout: Seconds allowed for computing insights
        """
        self.db = db
        self.categorization = categorization
        self.insights = insights
        self.batch_size = batch_size if batch_size > 0 else DEFAULT_BATCH_SIZE
        self.workers = workers
        self.insights_timeout = insights_timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ingestkit-insights")
        # Runs the insight steps so a stuck statement can be abandoned at the timeout.
        self._insight_workers = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ingestkit-insight-steps")
        self._pending: list[Future] = []
        self._pending_lock = threading.Lock()

    # -- analysis ---------------------------------------------------------

    def find_mapping(self, user_id: str, fingerprint: str) -> Optional[BankMapping]:
        """Saved mapping for a fingerprint: the user's own, else a global one."""
        mapping = self.db.get_mapping_by_fingerprint(fingerprint, user_id)
        if mapping is None:
            mapping = self.db.get_mapping_by_fingerprint(fingerprint, None)
        return mapping

    def analyze(self, user_id: str, data: bytes, options: Optional[DetectOptions] = None) -> AnalyzeResult:
        """Detect file layout, suggest columns and look up a saved mapping.

        Raises:
            FormatError: If the file cannot be analyzed
        """
        excel = is_excel(data)
        config = detect_excel_config(data) if excel else detect_config(data, options)
        suggestions = suggest_columns(config.headers)

        amount_idx = suggestions.amount_col
        if suggestions.is_double_entry and amount_idx < 0:
            amount_idx = suggestions.debit_col
        dialect = probe_dialect(config.sample_rows, amount_idx, suggestions.date_col)

        return AnalyzeResult(
            file_config=config,
            suggestions=suggestions,
            dialect=dialect,
            mapping=self.find_mapping(user_id, config.fingerprint),
            is_excel=excel,
        )

    def save_mapping(
        self,
        user_id: str,
        fingerprint: str,
        mapping: ColumnMapping,
        bank_name: Optional[str] = None,
        file_config: Optional[FileConfig] = None,
    ) -> int:
        """Remember a mapping for files with this header fingerprint.

        Only the amount layout in use is stored: amount column for single
        entry, debit/credit columns for double entry. Delimiter and skip
        lines come from ``file_config`` when the mapping leaves them unset.

        Returns:
            Mapping ID
        """
        if mapping.is_double_entry:
            mapping = replace(mapping, amount_col=-1)
        else:
            mapping = replace(mapping, debit_col=-1, credit_col=-1)
        if file_config is not None:
            mapping = replace(
                mapping,
                delimiter=mapping.delimiter or file_config.delimiter,
                skip_lines=mapping.skip_lines or file_config.skip_lines,
            )
        return self.db.create_mapping(fingerprint, mapping, user_id=user_id, bank_name=bank_name or None)

    # -- import -----------------------------------------------------------

    def _resolve_currency(
        self, user_id: str, account_id: Optional[int], text: str, config: FileConfig
    ) -> str:
        if account_id is not None:
            currency = self.db.get_account_currency(user_id, account_id)
            if not currency:
                raise CurrencyResolutionError(currency_not_found(account_id))
            code = normalize_currency_code(currency)
            if code is None:
                raise CurrencyResolutionError(f"invalid account currency code: {currency}")
            return code

        code = detect_currency_from_file(text, config)
        if code is None:
            raise CurrencyResolutionError(currency_not_found())
        return code

    def _enrich(self, user_id: str, batch: list[ParsedTransaction]) -> list[ParsedTransaction]:
        if self.categorization is None:
            return batch
        results = self.categorization.categorize_batch(user_id, [txn.description for txn in batch])
        return [
            replace(
                txn,
                merchant_name=result.clean_merchant_name,
                category_id=result.category_id,
                is_recurring=result.is_recurring,
                rule_id=result.rule_id,
                merchant_id=result.merchant_id,
            )
            for txn, result in zip(batch, results)
        ]

    def _excel_results(self, mapping: ColumnMapping, data: bytes) -> Iterator[StreamResult]:
        parsed = ExcelParser(mapping).parse(data)
        for txn in parsed.transactions:
            yield StreamResult(row_num=txn.raw_row, transaction=txn)
        for error in parsed.errors:
            yield StreamResult(row_num=error.row, error=error)

    def import_file(
        self,
        user_id: str,
        data: bytes,
        mapping: Optional[ColumnMapping] = None,
        options: Optional[ImportOptions] = None,
        account_id: Optional[int] = None,
    ) -> ImportResult:
        """Import a CSV/TSV/XLSX file as one job.

        Args:
            user_id: Owner of the imported transactions
            data: Raw file bytes
            mapping: Column mapping; unset fields are auto-detected
            options: Header row, timezone and institution overrides
            account_id: Target account; its currency wins over the file's

        Returns:
            ImportResult with counters and row errors sorted by line

        Raises:
            FormatError: If the file cannot be analyzed
            MappingError: If the mapping cannot be resolved
            CurrencyResolutionError: If no currency can be determined
            PersistenceError: If a batch cannot be stored

        Any failure after the job is created marks it failed before re-raising.
        """
        if not data:
            raise EmptyFileError()
        mapping = mapping if mapping is not None else ColumnMapping()
        options = options if options is not None else ImportOptions()

        excel = is_excel(data)
        if excel:
            text = ""
            config = detect_excel_config(data)
        else:
            text = normalize_bytes(data)
            config = detect_config(data, detect_options_for(mapping, options))

        resolved = apply_format_defaults(config, resolve_mapping(config, mapping))
        resolved = replace(
            resolved,
            delimiter=config.delimiter,
            skip_lines=config.skip_lines,
            timezone=options.timezone or resolved.timezone,
        )
        currency_code = self._resolve_currency(user_id, account_id, text, config)

        job_id = self.db.create_import_job(user_id, account_id, options.institution_name)
        logger.info("import job %s started for user %s (%s)", job_id, user_id, currency_code)

        cancel = threading.Event()
        if excel:
            results: Iterable[StreamResult] = self._excel_results(resolved, data)
            stream = None
        else:
            stream = StreamingParser(resolved, self.workers).parse_stream(text, cancel)
            results = stream

        rows_imported = 0
        rows_failed = 0
        errors: list[ParseError] = []
        batch: list[ParsedTransaction] = []
        since_update = 0

        def update_progress() -> None:
            try:
                self.db.update_import_job_progress(job_id, rows_imported, rows_failed)
            except Exception as e:
                logger.warning("failed to update import job %s progress: %s", job_id, e)

        def flush() -> None:
            nonlocal rows_imported, since_update, batch
            if not batch:
                return
            enriched = self._enrich(user_id, batch)
            rows_imported += self.db.bulk_insert_transactions(
                user_id, account_id, currency_code, job_id, options.institution_name, enriched
            )
            batch = []
            update_progress()
            since_update = 0

        try:
            for result in results:
                if result.error is not None:
                    errors.append(result.error)
                    rows_failed += 1
                    since_update += 1
                    if since_update >= PROGRESS_UPDATE_EVERY:
                        update_progress()
                        since_update = 0
                    continue
                if result.transaction is None:
                    continue
                batch.append(result.transaction)
                if len(batch) >= self.batch_size:
                    flush()
            flush()
        except Exception as e:
            cancel.set()
            if stream is not None:
                stream.close()
            try:
                self.db.finish_import_job(job_id, "failed", rows_imported, rows_failed, str(e))
            except Exception as finish_error:
                logger.warning("failed to mark import job %s failed: %s", job_id, finish_error)
            logger.error("import job %s failed: %s", job_id, e)
            raise

        if since_update > 0:
            update_progress()

        try:
            self.db.finish_import_job(job_id, "succeeded", rows_imported, rows_failed)
        except Exception as e:
            logger.warning("failed to finish import job %s: %s", job_id, e)

        job = self.db.get_import_job(job_id)
        rows_duplicate = job.rows_duplicate if job is not None else 0
        logger.info(
            "import job %s finished: %d imported, %d failed, %d duplicates",
            job_id,
            rows_imported,
            rows_failed,
            rows_duplicate,
        )

        if self.insights is not None and rows_imported > 0:
            self._schedule_insights(job_id, options.institution_name, currency_code)

        return ImportResult(
            job_id=job_id,
            rows_total=rows_imported + rows_failed + rows_duplicate,
            rows_imported=rows_imported,
            rows_failed=rows_failed,
            rows_duplicate=rows_duplicate,
            errors=tuple(format_errors(errors)),
        )

    def import_with_saved_mapping(
        self,
        user_id: str,
        data: bytes,
        account_id: Optional[int] = None,
        options: Optional[ImportOptions] = None,
    ) -> ImportResult:
        """Import using the mapping saved for this file's fingerprint.

        Raises:
            MappingError: If no mapping is saved for the file layout
        """
        analysis = self.analyze(user_id, data)
        if analysis.mapping is None:
            raise MappingError(
                f"no saved mapping for file fingerprint {analysis.file_config.fingerprint[:12]}"
            )
        return self.import_file(user_id, data, analysis.mapping.mapping, options, account_id)

    # -- insights ---------------------------------------------------------

    def _schedule_insights(self, job_id: int, institution_name: str, currency_code: str) -> None:
        future = self._executor.submit(self._supervise_insights, job_id, institution_name, currency_code)
        with self._pending_lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def _supervise_insights(self, job_id: int, institution_name: str, currency_code: str) -> None:
        """Run the insight steps, giving up on them after ``insights_timeout``.

        Abandoned steps stop at their next deadline check.
        """
        work = self._insight_workers.submit(self._record_insights, job_id, institution_name, currency_code)
        try:
            work.result(timeout=self.insights_timeout)
        except FutureTimeoutError:
            logger.warning("import insights for job %s timed out after %ss", job_id, self.insights_timeout)
        except Exception as e:
            logger.warning("import insights for job %s failed: %s", job_id, e)

    def _record_insights(self, job_id: int, institution_name: str, currency_code: str) -> None:
        deadline = time.monotonic() + self.insights_timeout

        def check_deadline(step: str) -> None:
            if time.monotonic() > deadline:
                raise InsightComputationError(f"timed out before {step}")

        try:
            check_deadline("computing stats")
            stats = self.db.get_import_job_stats(job_id)
            insights = build_insights(job_id, stats, institution_name, currency_code)
        except Exception as e:
            logger.warning("failed to compute import insights for job %s: %s", job_id, e)
            return

        try:
            check_deadline("storing insights")
            self.insights.upsert_import_insights(insights)
        except Exception as e:
            logger.warning("failed to store import insights for job %s: %s", job_id, e)
            return

        try:
            check_deadline("refreshing data source health")
            self.insights.refresh_data_source_health()
        except Exception as e:
            logger.warning("failed to refresh data source health: %s", e)

    def wait_for_insights(self, timeout: Optional[float] = None) -> bool:
        """Block until scheduled insights finish.

        Returns:
            True if everything finished within ``timeout``
        """
        with self._pending_lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        """Finish background work and release the insights workers.

        Steps abandoned after a timeout are not waited for.
        """
        self._executor.shutdown(wait=True)
        self._insight_workers.shutdown(wait=False, cancel_futures=True)
