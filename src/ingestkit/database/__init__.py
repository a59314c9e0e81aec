"""Persistence for accounts, categorization patterns, import jobs and transactions."""

from ingestkit.database.base import Database
from ingestkit.database.factories import create_sqlite_database
from ingestkit.database.sqlalchemy_db import SQLAlchemyDatabase

__all__ = ["Database", "SQLAlchemyDatabase", "create_sqlite_database"]
