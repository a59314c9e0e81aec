"""Shared pytest fixtures for ingestkit tests."""

import io
import os
import tempfile
from datetime import datetime

import pytest
from openpyxl import Workbook

from ingestkit import logging_setup
from ingestkit.database.factories import create_sqlite_database
from ingestkit.domain.account import AccountService
from ingestkit.domain.categorization import CategorizationService
from ingestkit.domain.import_service import ImportService
from ingestkit.domain.insights import DatabaseInsightsSink
from ingestkit.domain.search import SearchIndex

USER = "user-1"
OTHER_USER = "user-2"

SIMPLE_CSV = (
    "Date,Description,Amount,Currency\n"
    "2024-01-15,COMPRA NETFLIX.COM 1234,-15.99,EUR\n"
    "2024-01-16,Salary ACME,2500.00,EUR\n"
    "2024-01-17,STARBUCKS 001,-4.50,EUR\n"
)

EUROPEAN_CSV = (
    "Conta Ordem - EUR\n"
    "\n"
    "Data Mov.;Descrição;Valor;Saldo\n"
    "15/01/2024;COMPRA PINGO DOCE;-1.234,56;100,00\n"
    "16/01/2024;TRANSFERENCIA RECEBIDA;2.000,00;2.100,00\n"
)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep the CLI from attaching a handler to a test runner's stream."""
    monkeypatch.setattr(logging_setup, "_CONFIGURED", True)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def categorization_service(temp_db):
    """Create a CategorizationService with a search index."""
    return CategorizationService(temp_db, search_index=SearchIndex())


@pytest.fixture
def import_service(temp_db, categorization_service):
    """Create an ImportService that records insights."""
    service = ImportService(
        temp_db,
        categorization=categorization_service,
        insights=DatabaseInsightsSink(temp_db),
        batch_size=2,
        workers=2,
    )
    yield service
    service.close()


@pytest.fixture
def eur_account(account_service):
    """Create a EUR account for USER."""
    account_id = account_service.create_account(USER, "Checking", "EUR")
    return account_service.get_account(USER, account_id)


@pytest.fixture
def seeded_merchants(categorization_service):
    """Add the built-in system merchants."""
    categorization_service.seed_system_merchants()
    return categorization_service.get_merchants(USER)


def build_xlsx(rows, sheet_title="Transactions") -> bytes:
    """Return an XLSX workbook holding ``rows`` on one sheet."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def statement_xlsx():
    """An XLSX statement with a title row above the header."""
    return build_xlsx(
        [
            ("Account statement",),
            ("Date", "Description", "Amount", "Currency"),
            (datetime(2024, 1, 15), "NETFLIX.COM", -15.99, "EUR"),
            (datetime(2024, 1, 16), "Salary ACME", 2500, "EUR"),
        ]
    )


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
