"""Tests for the SQLAlchemy database implementation."""

from datetime import datetime

import pytest

from ingestkit.database.sqlalchemy_db import like_pattern
from ingestkit.domain import entities
from ingestkit.domain.entities import ColumnMapping, ImportInsights, ImportIssue, ParsedTransaction

from conftest import OTHER_USER, USER


def txn(day, description, amount_minor, **kwargs):
    return ParsedTransaction(date=datetime(2024, 1, day), description=description, amount_minor=amount_minor, **kwargs)


def test_like_pattern():
    """Test bare patterns become substring matches."""
    assert like_pattern("netflix") == "%netflix%"
    assert like_pattern("NET%") == "NET%"
    assert like_pattern("my_shop") == "%my_shop%"


class TestAccounts:
    """Account persistence tests."""

    def test_create_and_get(self, temp_db):
        account_id = temp_db.create_account(USER, "Checking", "EUR")
        account = temp_db.get_account(account_id)
        assert isinstance(account, entities.Account)
        assert account.user_id == USER
        assert account.currency == "EUR"
        assert isinstance(account.created_at, datetime)

    def test_duplicate_name_per_user(self, temp_db):
        temp_db.create_account(USER, "Checking", "EUR")
        with pytest.raises(ValueError, match="already exists"):
            temp_db.create_account(USER, "Checking", "USD")
        # Other users may reuse the name
        temp_db.create_account(OTHER_USER, "Checking", "USD")

    def test_list_is_per_user(self, temp_db):
        temp_db.create_account(USER, "Savings", "EUR")
        temp_db.create_account(USER, "Checking", "EUR")
        temp_db.create_account(OTHER_USER, "Other", "GBP")
        assert [a.name for a in temp_db.list_accounts(USER)] == ["Checking", "Savings"]

    def test_currency_requires_ownership(self, temp_db):
        account_id = temp_db.create_account(USER, "Checking", "EUR")
        assert temp_db.get_account_currency(USER, account_id) == "EUR"
        assert temp_db.get_account_currency(OTHER_USER, account_id) is None
        assert temp_db.get_account_currency(USER, 999) is None


class TestRulesAndMerchants:
    """Rule and merchant persistence tests."""

    def test_rules_ordered_by_priority(self, temp_db):
        low = temp_db.create_rule(USER, "LIDL", clean_name="Lidl")
        high = temp_db.create_rule(USER, "AMAZON", priority=10, is_recurring=True)
        temp_db.create_rule(OTHER_USER, "ZARA")
        rules = temp_db.get_user_rules(USER)
        assert [r.id for r in rules] == [high, low]
        assert rules[0].is_recurring
        assert temp_db.find_rule_by_pattern(USER, "LIDL").id == low
        assert temp_db.find_rule_by_pattern(OTHER_USER, "LIDL") is None

    def test_merchant_visibility(self, temp_db):
        system = temp_db.create_merchant("%LIDL%", "Lidl")
        mine = temp_db.create_merchant("%MY SHOP%", "My Shop", user_id=USER, category_id=4)
        temp_db.create_merchant("%THEIR SHOP%", "Their Shop", user_id=OTHER_USER)

        assert [m.id for m in temp_db.get_merchants(None)] == [system]
        merchants = temp_db.get_merchants(USER)
        assert [m.id for m in merchants] == [system, mine]
        assert merchants[0].is_system
        assert merchants[1].category_id == 4


class TestMappings:
    """Bank mapping persistence tests."""

    def test_round_trip_keeps_every_field(self, temp_db):
        mapping = ColumnMapping(
            date_col=0,
            desc_col=2,
            debit_col=3,
            credit_col=4,
            is_double_entry=True,
            is_european_format=True,
            date_format="DD/MM/YYYY",
            timezone="Europe/Lisbon",
            delimiter=";",
            skip_lines=6,
        )
        mapping_id = temp_db.create_mapping("fp", mapping, user_id=USER, bank_name="My Bank")
        stored = temp_db.get_mapping_by_fingerprint("fp", USER)
        assert stored.id == mapping_id
        assert stored.mapping == mapping
        assert stored.bank_name == "My Bank"

    def test_unknown_number_format_stays_unknown(self, temp_db):
        temp_db.create_mapping("fp", ColumnMapping(date_col=0, desc_col=1, amount_col=2))
        assert temp_db.get_mapping_by_fingerprint("fp").mapping.is_european_format is None

    def test_scopes_are_separate(self, temp_db):
        temp_db.create_mapping("fp", ColumnMapping(date_col=1), user_id=None)
        assert temp_db.get_mapping_by_fingerprint("fp", USER) is None
        assert temp_db.get_mapping_by_fingerprint("fp", None).mapping.date_col == 1

    def test_create_replaces_in_scope(self, temp_db):
        first = temp_db.create_mapping("fp", ColumnMapping(date_col=0), user_id=USER, bank_name="A")
        second = temp_db.create_mapping("fp", ColumnMapping(date_col=5), user_id=USER)
        assert first == second
        stored = temp_db.get_mapping_by_fingerprint("fp", USER)
        assert stored.mapping.date_col == 5
        assert stored.bank_name == "A"


class TestImportJobs:
    """Import job and transaction persistence tests."""

    def test_job_lifecycle(self, temp_db):
        job_id = temp_db.create_import_job(USER, institution_name="Bank")
        job = temp_db.get_import_job(job_id)
        assert job.status == "running"
        assert job.finished_at is None

        temp_db.update_import_job_progress(job_id, 10, 1)
        assert temp_db.get_import_job(job_id).rows_imported == 10

        temp_db.finish_import_job(job_id, "succeeded", 12, 2)
        job = temp_db.get_import_job(job_id)
        assert job.status == "succeeded"
        assert (job.rows_imported, job.rows_failed) == (12, 2)
        assert job.finished_at is not None

    def test_finish_rejects_unknown_status(self, temp_db):
        job_id = temp_db.create_import_job(USER)
        with pytest.raises(ValueError, match="Invalid final job status"):
            temp_db.finish_import_job(job_id, "running", 0, 0)

    def test_missing_job(self, temp_db):
        assert temp_db.get_import_job(42) is None
        with pytest.raises(ValueError, match="not found"):
            temp_db.update_import_job_progress(42, 1, 0)

    def test_bulk_insert_and_stats(self, temp_db):
        job_id = temp_db.create_import_job(USER)
        inserted = temp_db.bulk_insert_transactions(
            USER,
            None,
            "EUR",
            job_id,
            "Bank",
            [
                txn(15, "Netflix", -1599, category_id=3, merchant_name="Netflix"),
                txn(16, "Salary", 250000),
                txn(17, "Coffee", -450),
            ],
        )
        assert inserted == 3

        stats = temp_db.get_import_job_stats(job_id)
        assert stats.total_rows == 3
        assert stats.categorized_rows == 1
        assert stats.uncategorized_rows == 2
        assert stats.total_income == 250000
        assert stats.total_expenses == 2049
        assert stats.earliest_date == datetime(2024, 1, 15)
        assert stats.latest_date == datetime(2024, 1, 17)

        transactions = temp_db.list_transactions(USER, job_id)
        assert [t.description for t in transactions] == ["Netflix", "Salary", "Coffee"]
        assert transactions[0].merchant_name == "Netflix"
        assert transactions[0].currency_code == "EUR"
        assert transactions[0].institution_name == "Bank"

    def test_bulk_insert_skips_rows_from_earlier_jobs(self, temp_db):
        account_id = temp_db.create_account(USER, "Checking", "EUR")
        first = temp_db.create_import_job(USER, account_id)
        temp_db.bulk_insert_transactions(USER, account_id, "EUR", first, "", [txn(15, "Netflix", -1599)])

        second = temp_db.create_import_job(USER, account_id)
        inserted = temp_db.bulk_insert_transactions(
            USER, account_id, "EUR", second, "", [txn(15, "Netflix", -1599), txn(16, "Lidl", -2000)]
        )
        assert inserted == 1
        assert temp_db.get_import_job(second).rows_duplicate == 1
        assert temp_db.get_import_job_stats(second).duplicates_skipped == 1

        # Same row in another account is not a duplicate
        other = temp_db.create_account(USER, "Savings", "EUR")
        third = temp_db.create_import_job(USER, other)
        assert temp_db.bulk_insert_transactions(USER, other, "EUR", third, "", [txn(15, "Netflix", -1599)]) == 1

    def test_bulk_insert_empty_batch(self, temp_db):
        job_id = temp_db.create_import_job(USER)
        assert temp_db.bulk_insert_transactions(USER, None, "EUR", job_id, "", []) == 0

    def test_update_transactions_merchant(self, temp_db):
        job_id = temp_db.create_import_job(USER)
        temp_db.bulk_insert_transactions(
            USER, None, "EUR", job_id, "", [txn(15, "COMPRA NETFLIX.COM", -1599), txn(16, "LIDL", -2000)]
        )
        assert temp_db.update_transactions_merchant(USER, "netflix", "Netflix", 3) == 1
        assert temp_db.update_transactions_merchant(OTHER_USER, "netflix", "Netflix", 3) == 0
        assert temp_db.update_transactions_merchant(USER, "lidl", None, None) == 0

        netflix = temp_db.list_transactions(USER)[0]
        assert netflix.merchant_name == "Netflix"
        assert netflix.category_id == 3


class TestInsights:
    """Insights and data source health persistence tests."""

    def test_upsert_and_get(self, temp_db):
        job_id = temp_db.create_import_job(USER)
        insights = ImportInsights(
            import_job_id=job_id,
            institution_name="Bank",
            currency_code="EUR",
            categorization_rate=0.5,
            date_quality_score=1.0,
            amount_quality_score=1.0,
            total_income=100,
            total_expenses=50,
            duplicates_skipped=0,
            issues=(ImportIssue(type="uncategorized", affected_rows=1, suggestion="Review"),),
        )
        temp_db.upsert_import_insights(insights)
        assert temp_db.get_import_insights(job_id) == insights

        temp_db.upsert_import_insights(ImportInsights(**{**insights.__dict__, "categorization_rate": 1.0, "issues": ()}))
        stored = temp_db.get_import_insights(job_id)
        assert stored.categorization_rate == 1.0
        assert stored.issues == ()

    def test_refresh_data_source_health(self, temp_db):
        job_id = temp_db.create_import_job(USER)
        temp_db.bulk_insert_transactions(
            USER, None, "EUR", job_id, "Bank", [txn(15, "A", -100, category_id=1), txn(16, "B", -200)]
        )
        other_job = temp_db.create_import_job(OTHER_USER)
        temp_db.bulk_insert_transactions(OTHER_USER, None, "EUR", other_job, "", [txn(15, "C", -100)])

        temp_db.refresh_data_source_health()

        rows = temp_db.list_data_source_health(USER)
        assert len(rows) == 1
        health = rows[0]
        assert health.institution_name == "Bank"
        assert health.transaction_count == 2
        assert health.categorization_rate == 0.5
        assert health.uncategorized_count == 1
        assert health.first_transaction == datetime(2024, 1, 15)
        assert health.last_import is not None

        assert [h.institution_name for h in temp_db.list_data_source_health(OTHER_USER)] == ["Unknown"]
        assert len(temp_db.list_data_source_health()) == 2

        temp_db.refresh_data_source_health()
        assert len(temp_db.list_data_source_health()) == 2
