"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so the schema can change without
touching the domain entities.
"""

from ingestkit.domain import entities as domain
from ingestkit.database.models import (
    Account as ORMAccount,
    BankMapping as ORMBankMapping,
    CategoryRule as ORMCategoryRule,
    DataSourceHealth as ORMDataSourceHealth,
    ImportInsights as ORMImportInsights,
    ImportJob as ORMImportJob,
    Merchant as ORMMerchant,
    Transaction as ORMTransaction,
)


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        user_id=orm_account.user_id,
        name=orm_account.name,
        currency=orm_account.currency,
        created_at=orm_account.created_at,
    )


def rule_to_domain(orm_rule: ORMCategoryRule) -> domain.CategoryRule:
    """Convert SQLAlchemy CategoryRule model to domain CategoryRule entity."""
    return domain.CategoryRule(
        id=orm_rule.id,
        user_id=orm_rule.user_id,
        match_pattern=orm_rule.match_pattern,
        clean_name=orm_rule.clean_name,
        category_id=orm_rule.category_id,
        is_recurring=orm_rule.is_recurring,
        priority=orm_rule.priority,
    )


def merchant_to_domain(orm_merchant: ORMMerchant) -> domain.Merchant:
    """Convert SQLAlchemy Merchant model to domain Merchant entity."""
    return domain.Merchant(
        id=orm_merchant.id,
        raw_pattern=orm_merchant.raw_pattern,
        clean_name=orm_merchant.clean_name,
        user_id=orm_merchant.user_id,
        category_id=orm_merchant.category_id,
    )


def column_mapping_to_orm_fields(mapping: domain.ColumnMapping) -> dict:
    """Flatten a ColumnMapping into BankMapping column values."""
    return {
        "date_col": mapping.date_col,
        "desc_col": mapping.desc_col,
        "amount_col": mapping.amount_col,
        "debit_col": mapping.debit_col,
        "credit_col": mapping.credit_col,
        "category_col": mapping.category_col,
        "is_double_entry": mapping.is_double_entry,
        "is_european_format": mapping.is_european_format,
        "date_format": mapping.date_format,
        "timezone": mapping.timezone,
        "delimiter": mapping.delimiter,
        "skip_lines": mapping.skip_lines,
    }


def bank_mapping_to_domain(orm_mapping: ORMBankMapping) -> domain.BankMapping:
    """Convert SQLAlchemy BankMapping model to domain BankMapping entity."""
    return domain.BankMapping(
        id=orm_mapping.id,
        fingerprint=orm_mapping.fingerprint,
        mapping=domain.ColumnMapping(
            date_col=orm_mapping.date_col,
            desc_col=orm_mapping.desc_col,
            amount_col=orm_mapping.amount_col,
            debit_col=orm_mapping.debit_col,
            credit_col=orm_mapping.credit_col,
            category_col=orm_mapping.category_col,
            is_double_entry=orm_mapping.is_double_entry,
            is_european_format=orm_mapping.is_european_format,
            date_format=orm_mapping.date_format,
            timezone=orm_mapping.timezone,
            delimiter=orm_mapping.delimiter,
            skip_lines=orm_mapping.skip_lines,
        ),
        user_id=orm_mapping.user_id,
        bank_name=orm_mapping.bank_name,
        created_at=orm_mapping.created_at,
    )


def import_job_to_domain(orm_job: ORMImportJob) -> domain.ImportJob:
    """Convert SQLAlchemy ImportJob model to domain ImportJob entity."""
    return domain.ImportJob(
        id=orm_job.id,
        user_id=orm_job.user_id,
        status=orm_job.status,
        account_id=orm_job.account_id,
        institution_name=orm_job.institution_name,
        rows_imported=orm_job.rows_imported,
        rows_failed=orm_job.rows_failed,
        rows_duplicate=orm_job.rows_duplicate,
        error_message=orm_job.error_message,
        created_at=orm_job.created_at,
        finished_at=orm_job.finished_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        user_id=orm_transaction.user_id,
        date=orm_transaction.date,
        description=orm_transaction.description,
        amount_minor=orm_transaction.amount_minor,
        currency_code=orm_transaction.currency_code,
        account_id=orm_transaction.account_id,
        import_job_id=orm_transaction.import_job_id,
        institution_name=orm_transaction.institution_name,
        raw_category=orm_transaction.raw_category,
        merchant_name=orm_transaction.merchant_name,
        category_id=orm_transaction.category_id,
        is_recurring=orm_transaction.is_recurring,
        rule_id=orm_transaction.rule_id,
        merchant_id=orm_transaction.merchant_id,
    )


def issues_to_json(issues) -> list[dict]:
    """Serialize ImportIssue entities for the JSON column."""
    return [
        {
            "type": issue.type,
            "affected_rows": issue.affected_rows,
            "sample_value": issue.sample_value,
            "suggestion": issue.suggestion,
        }
        for issue in issues
    ]


def insights_to_domain(orm_insights: ORMImportInsights) -> domain.ImportInsights:
    """Convert SQLAlchemy ImportInsights model to domain ImportInsights entity."""
    return domain.ImportInsights(
        import_job_id=orm_insights.import_job_id,
        institution_name=orm_insights.institution_name,
        currency_code=orm_insights.currency_code,
        categorization_rate=orm_insights.categorization_rate,
        date_quality_score=orm_insights.date_quality_score,
        amount_quality_score=orm_insights.amount_quality_score,
        total_income=orm_insights.total_income,
        total_expenses=orm_insights.total_expenses,
        duplicates_skipped=orm_insights.duplicates_skipped,
        earliest_date=orm_insights.earliest_date,
        latest_date=orm_insights.latest_date,
        issues=tuple(domain.ImportIssue(**issue) for issue in orm_insights.issues or []),
    )


def health_to_domain(orm_health: ORMDataSourceHealth) -> domain.DataSourceHealth:
    """Convert SQLAlchemy DataSourceHealth model to domain DataSourceHealth entity."""
    return domain.DataSourceHealth(
        user_id=orm_health.user_id,
        institution_name=orm_health.institution_name,
        transaction_count=orm_health.transaction_count,
        categorization_rate=orm_health.categorization_rate,
        uncategorized_count=orm_health.uncategorized_count,
        first_transaction=orm_health.first_transaction,
        last_transaction=orm_health.last_transaction,
        last_import=orm_health.last_import,
    )
