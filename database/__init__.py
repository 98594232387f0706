"""Per-table data-access layer over SQLAlchemy Core."""

from database.base import DatabaseError
from database.config import DatabaseConfig
from database.connection import Database
from database.migrations import migrate
from database.table import Table

Db = Database()

__all__ = ["Db", "Database", "DatabaseConfig", "DatabaseError", "Table", "migrate"]
