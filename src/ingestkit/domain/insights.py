"""Post-import quality metrics."""

from typing import Protocol

from ingestkit.database.base import Database
from ingestkit.domain.entities import ImportInsights, ImportIssue, ImportJobStats

UNCATEGORIZED_SUGGESTION = "Review uncategorized transactions to improve spending insights"


class InsightsSink(Protocol):
    """Receiver for computed import insights."""

    def upsert_import_insights(self, insights: ImportInsights) -> None: ...

    def refresh_data_source_health(self) -> None: ...


class DatabaseInsightsSink:
    """Stores insights through the application database."""

    def __init__(self, db: Database):
        self.db = db

    def upsert_import_insights(self, insights: ImportInsights) -> None:
        self.db.upsert_import_insights(insights)

    def refresh_data_source_health(self) -> None:
        self.db.refresh_data_source_health()


def build_insights(
    job_id: int, stats: ImportJobStats, institution_name: str, currency_code: str
) -> ImportInsights:
    """Turn job aggregates into an insights record.

    Rows that reached persistence already parsed, so date and amount quality
    are always 1.0; parse failures are reported on the job itself.
    """
    issues = []
    if stats.uncategorized_rows > 0:
        issues.append(
            ImportIssue(
                type="uncategorized",
                affected_rows=stats.uncategorized_rows,
                suggestion=UNCATEGORIZED_SUGGESTION,
            )
        )

    return ImportInsights(
        import_job_id=job_id,
        institution_name=institution_name,
        currency_code=currency_code,
        categorization_rate=stats.categorization_rate,
        date_quality_score=1.0,
        amount_quality_score=1.0,
        total_income=stats.total_income,
        total_expenses=stats.total_expenses,
        duplicates_skipped=stats.duplicates_skipped,
        earliest_date=stats.earliest_date,
        latest_date=stats.latest_date,
        issues=tuple(issues),
    )
