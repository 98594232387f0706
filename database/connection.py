"""
database/connection.py
----------------------
Owns the SQLAlchemy engine and exposes one `Table` accessor per known table.

    db = Database()
    db.connect({"client": "pg", "connection": {...}})
    db.users.find({"id >=": 10}, {"order": "id desc"})
    db.disconnect()
"""

from __future__ import annotations

import atexit
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from database.base import DatabaseError
from database.config import DatabaseConfig, build_engine, load_config
from database.instrumentation import instrument_engine
from database.table import Table
from utils.logger import get_logger

logger = get_logger(__name__)


def _list_postgres_tables(conn: Connection, schema: str) -> List[str]:
    pg_tables = sa.table("pg_tables", sa.column("tablename"), sa.column("schemaname"), schema="pg_catalog")
    stmt = sa.select(pg_tables.c.tablename).where(pg_tables.c.schemaname == "public")
    return [row[0] for row in conn.execute(stmt)]


def _list_mysql_tables(conn: Connection, schema: str) -> List[str]:
    tables = sa.table("tables", sa.column("TABLE_NAME"), sa.column("TABLE_SCHEMA"), schema="information_schema")
    stmt = sa.select(tables.c.TABLE_NAME).where(tables.c.TABLE_SCHEMA == schema)
    return [row[0] for row in conn.execute(stmt)]


def _list_sqlite_tables(conn: Connection, schema: str) -> List[str]:
    master = sa.table("sqlite_master", sa.column("name"), sa.column("type"))
    stmt = (
        sa.select(master.c.name)
        .where(master.c.type == "table")
        .where(master.c.name.not_like("sqlite_%"))
        .order_by(master.c.name)
    )
    return [row[0] for row in conn.execute(stmt)]


class Database:
    def __init__(self):
        self._engine: Optional[Engine] = None
        self._schema: Optional[str] = None
        self._tables: List[str] = []
        self._timings: List[Dict[str, Any]] = []
        self._lock = threading.RLock()
        self._list_table_queries: Dict[str, Callable[[Connection, str], List[str]]] = {
            "postgresql": _list_postgres_tables,
            "mysql": _list_mysql_tables,
            "sqlite": _list_sqlite_tables,
        }

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def tables(self) -> List[str]:
        return list(self._tables)

    @property
    def timings(self) -> List[Dict[str, Any]]:
        return self._timings

    def connect(self, config: Union[DatabaseConfig, Mapping[str, Any], str]) -> None:
        db_config = load_config(config)
        schema = db_config.schema_name()

        # Callers arriving while a connect is pending wait here and then reuse its engine.
        with self._lock:
            if self._engine is not None:
                return

            engine = build_engine(db_config)
            instrument_engine(engine, self._timings, enabled=db_config.instrumentation.enabled)
            try:
                tables = self._list_tables(engine, schema)
            except Exception as exc:
                logger.error("Failed to list tables for %s: %s", engine.dialect.name, exc)
                engine.dispose()
                raise

            self._engine = engine
            self._schema = schema
            self._tables = tables
            atexit.register(self.disconnect)
            logger.info("Connected to %s database %s (%d tables)", engine.dialect.name, schema, len(tables))

    def disconnect(self) -> None:
        with self._lock:
            if self._engine is None:
                return

            engine = self._engine
            self._tables = []
            self._engine = None
            self._timings.clear()
            self._schema = None
            atexit.unregister(self.disconnect)

            logger.debug("Disposing pool: %s", engine.pool.status())
            engine.dispose()
            logger.info("Disconnected from %s database", engine.dialect.name)

    def get_engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseError("The database must be connected to get an engine object")
        return self._engine

    def from_table(self, table_name: str) -> Table:
        if self._engine is None:
            raise DatabaseError("The database must be connected to get a table object")
        return Table(table_name, self._engine)

    def __getattr__(self, name: str) -> Table:
        # Only reached when normal lookup fails, so methods win over table names.
        tables = self.__dict__.get("_tables") or []
        if name in tables:
            return Table(name, self._engine)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self._tables))

    def _list_tables(self, engine: Engine, schema: str) -> List[str]:
        db_type = engine.dialect.name
        list_query = self._list_table_queries.get(db_type)
        if list_query is None:
            raise DatabaseError(f"Listing tables is not supported for database type {db_type}")
        with engine.connect() as conn:
            tables = list_query(conn, schema)
        logger.debug("Found tables in %s: %s", schema, tables)
        return tables
