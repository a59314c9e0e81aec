"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

# Import entities directly to avoid circular import through domain/__init__.py
from ingestkit.domain.entities import (
    Account,
    BankMapping,
    CategoryRule,
    ColumnMapping,
    DataSourceHealth,
    ImportInsights,
    ImportJob,
    ImportJobStats,
    Merchant,
    ParsedTransaction,
    Transaction,
)


class Database(ABC):
    """Abstract database interface for ingestkit."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Account operations
    @abstractmethod
    def create_account(self, user_id: str, name: str, currency: str) -> int:
        """Create a new account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def list_accounts(self, user_id: str) -> list[Account]:
        """List a user's accounts."""
        pass

    @abstractmethod
    def get_account_currency(self, user_id: str, account_id: int) -> Optional[str]:
        """Get the currency of a user's account, or None if it does not exist."""
        pass

    # Rule operations
    @abstractmethod
    def create_rule(
        self,
        user_id: str,
        match_pattern: str,
        clean_name: Optional[str] = None,
        category_id: Optional[int] = None,
        is_recurring: bool = False,
        priority: int = 0,
    ) -> int:
        """Create a categorization rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: int) -> Optional[CategoryRule]:
        """Get rule by ID."""
        pass

    @abstractmethod
    def find_rule_by_pattern(self, user_id: str, match_pattern: str) -> Optional[CategoryRule]:
        """Get a user's rule with exactly this pattern."""
        pass

    @abstractmethod
    def get_user_rules(self, user_id: str) -> list[CategoryRule]:
        """List a user's rules, highest priority first."""
        pass

    # Merchant operations
    @abstractmethod
    def create_merchant(
        self,
        raw_pattern: str,
        clean_name: str,
        user_id: Optional[str] = None,
        category_id: Optional[int] = None,
    ) -> int:
        """Create a merchant (system-wide when user_id is None). Returns merchant ID."""
        pass

    @abstractmethod
    def get_merchants(self, user_id: Optional[str] = None) -> list[Merchant]:
        """List system merchants plus the given user's own merchants."""
        pass

    # Mapping operations
    @abstractmethod
    def get_mapping_by_fingerprint(self, fingerprint: str, user_id: Optional[str] = None) -> Optional[BankMapping]:
        """Get the mapping stored for a fingerprint in exactly this scope.

        ``user_id`` of None means the global scope.
        """
        pass

    @abstractmethod
    def create_mapping(
        self,
        fingerprint: str,
        mapping: ColumnMapping,
        user_id: Optional[str] = None,
        bank_name: Optional[str] = None,
    ) -> int:
        """Store a mapping, replacing any in the same scope. Returns mapping ID."""
        pass

    # Import job operations
    @abstractmethod
    def create_import_job(
        self, user_id: str, account_id: Optional[int] = None, institution_name: str = ""
    ) -> int:
        """Create a running import job. Returns job ID."""
        pass

    @abstractmethod
    def get_import_job(self, job_id: int) -> Optional[ImportJob]:
        """Get import job by ID."""
        pass

    @abstractmethod
    def update_import_job_progress(self, job_id: int, rows_imported: int, rows_failed: int) -> None:
        """Record progress counters on a running job."""
        pass

    @abstractmethod
    def finish_import_job(
        self,
        job_id: int,
        status: str,
        rows_imported: int,
        rows_failed: int,
        error_message: Optional[str] = None,
    ) -> None:
        """Mark a job succeeded or failed."""
        pass

    @abstractmethod
    def get_import_job_stats(self, job_id: int) -> ImportJobStats:
        """Aggregate the transactions persisted by a job."""
        pass

    # Transaction operations
    @abstractmethod
    def bulk_insert_transactions(
        self,
        user_id: str,
        account_id: Optional[int],
        currency_code: str,
        job_id: int,
        institution_name: str,
        batch: Sequence[ParsedTransaction],
    ) -> int:
        """Insert a batch, skipping rows already imported by earlier jobs.

        Returns:
            Number of rows inserted

        Raises:
            PersistenceError: If the batch could not be written
        """
        pass

    @abstractmethod
    def list_transactions(self, user_id: str, import_job_id: Optional[int] = None) -> list[Transaction]:
        """List a user's transactions, optionally for one job, by date."""
        pass

    @abstractmethod
    def update_transactions_merchant(
        self,
        user_id: str,
        match_pattern: str,
        clean_name: Optional[str],
        category_id: Optional[int],
    ) -> int:
        """Apply a merchant name and category to matching existing transactions.

        Returns:
            Number of transactions updated
        """
        pass

    # Insights operations
    @abstractmethod
    def upsert_import_insights(self, insights: ImportInsights) -> None:
        """Store quality metrics for an import job."""
        pass

    @abstractmethod
    def get_import_insights(self, job_id: int) -> Optional[ImportInsights]:
        """Get stored quality metrics for an import job."""
        pass

    @abstractmethod
    def refresh_data_source_health(self) -> None:
        """Recompute per-user, per-institution health from stored transactions."""
        pass

    @abstractmethod
    def list_data_source_health(self, user_id: Optional[str] = None) -> list[DataSourceHealth]:
        """List health rows, optionally for one user."""
        pass
