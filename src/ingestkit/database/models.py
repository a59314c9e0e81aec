"""SQLAlchemy models for ingestkit database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, scoped_session, sessionmaker

Base = declarative_base()


class Account(Base):
    """Bank account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_account_user_name"),)

    # Relationships
    transactions = relationship("Transaction", back_populates="account")


class CategoryRule(Base):
    """User categorization rule model."""

    __tablename__ = "category_rules"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    match_pattern = Column(String, nullable=False)
    clean_name = Column(String, nullable=True)
    category_id = Column(Integer, nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "match_pattern", name="uq_rule_user_pattern"),)


class Merchant(Base):
    """Merchant catalog model. Rows without user_id are system-wide."""

    __tablename__ = "merchants"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    raw_pattern = Column(String, nullable=False)
    clean_name = Column(String, nullable=False)
    category_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class BankMapping(Base):
    """Column mapping learned for a header fingerprint."""

    __tablename__ = "bank_mappings"

    id = Column(Integer, primary_key=True)
    fingerprint = Column(String(64), nullable=False, index=True)
    user_id = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    date_col = Column(Integer, default=-1, nullable=False)
    desc_col = Column(Integer, default=-1, nullable=False)
    amount_col = Column(Integer, default=-1, nullable=False)
    debit_col = Column(Integer, default=-1, nullable=False)
    credit_col = Column(Integer, default=-1, nullable=False)
    category_col = Column(Integer, default=-1, nullable=False)
    is_double_entry = Column(Boolean, default=False, nullable=False)
    is_european_format = Column(Boolean, nullable=True)
    date_format = Column(String, default="", nullable=False)
    timezone = Column(String, default="", nullable=False)
    delimiter = Column(String(1), default="", nullable=False)
    skip_lines = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (UniqueConstraint("fingerprint", "user_id", name="uq_mapping_fingerprint_user"),)


class ImportJob(Base):
    """Import job model."""

    __tablename__ = "import_jobs"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    institution_name = Column(String, default="", nullable=False)
    status = Column(String, default="running", nullable=False)
    rows_imported = Column(Integer, default=0, nullable=False)
    rows_failed = Column(Integer, default=0, nullable=False)
    rows_duplicate = Column(Integer, default=0, nullable=False)
    error_message = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    finished_at = Column(DateTime, nullable=True)

    # Relationships
    transactions = relationship("Transaction", back_populates="import_job")


class Transaction(Base):
    """Imported transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    import_job_id = Column(Integer, ForeignKey("import_jobs.id"), nullable=True)
    date = Column(DateTime, nullable=False)
    description = Column(String, nullable=False)
    amount_minor = Column(BigInteger, nullable=False)
    currency_code = Column(String(3), nullable=False)
    institution_name = Column(String, default="", nullable=False)
    raw_category = Column(String, default="", nullable=False)
    merchant_name = Column(String, default="", nullable=False)
    category_id = Column(Integer, nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    rule_id = Column(Integer, nullable=True)
    merchant_id = Column(Integer, nullable=True)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Duplicate lookups during import
    __table_args__ = (
        Index("ix_transactions_identity", "user_id", "account_id", "date", "amount_minor"),
    )

    # Relationships
    account = relationship("Account", back_populates="transactions")
    import_job = relationship("ImportJob", back_populates="transactions")


class ImportInsights(Base):
    """Quality metrics for one import job."""

    __tablename__ = "import_insights"

    id = Column(Integer, primary_key=True)
    import_job_id = Column(Integer, ForeignKey("import_jobs.id"), nullable=False, unique=True)
    institution_name = Column(String, default="", nullable=False)
    currency_code = Column(String(3), nullable=False)
    categorization_rate = Column(Float, nullable=False)
    date_quality_score = Column(Float, nullable=False)
    amount_quality_score = Column(Float, nullable=False)
    total_income = Column(BigInteger, default=0, nullable=False)
    total_expenses = Column(BigInteger, default=0, nullable=False)
    duplicates_skipped = Column(Integer, default=0, nullable=False)
    earliest_date = Column(DateTime, nullable=True)
    latest_date = Column(DateTime, nullable=True)
    issues = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class DataSourceHealth(Base):
    """Transaction quality rolled up per user and institution."""

    __tablename__ = "data_source_health"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False)
    institution_name = Column(String, nullable=False)
    transaction_count = Column(Integer, default=0, nullable=False)
    categorization_rate = Column(Float, default=0.0, nullable=False)
    uncategorized_count = Column(Integer, default=0, nullable=False)
    first_transaction = Column(DateTime, nullable=True)
    last_transaction = Column(DateTime, nullable=True)
    last_import = Column(DateTime, nullable=True)

    __table_args__ = (UniqueConstraint("user_id", "institution_name", name="uq_health_user_institution"),)


def create_session_factory(database_url: str) -> scoped_session:
    """Create a thread-local SQLAlchemy session registry.

    Background insights run on their own thread, so each thread gets its
    own session from the registry.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return scoped_session(sessionmaker(bind=engine))
