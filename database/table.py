from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from database.base import DatabaseError
from database.criteria import apply_criteria, apply_options, resolve_column

Record = Dict[str, Any]


def _as_records(result) -> List[Record]:
    return [dict(row) for row in result.mappings()]


def _collapse(records: List[Record]) -> Union[None, Record, List[Record]]:
    if not records:
        return None
    return records[0] if len(records) == 1 else records


class Table:
    """CRUD accessor for a single table, reflected lazily from the engine."""

    def __init__(self, name: str, engine: Engine, metadata: Optional[sa.MetaData] = None):
        self._table_name = name
        self._engine = engine
        self._metadata = metadata if metadata is not None else sa.MetaData()

    @property
    def name(self) -> str:
        return self._table_name

    def __repr__(self) -> str:
        return f"Table({self._table_name!r})"

    def insert(self, fields: Mapping[str, Any]) -> Record:
        table = self._create_builder()
        stmt = sa.insert(table).values(dict(fields))
        with self._engine.begin() as conn:
            if conn.dialect.insert_returning:
                inserted = _as_records(conn.execute(stmt.returning(*table.c)))
            else:
                inserted = self._select_inserted(conn, table, conn.execute(stmt), fields)
            # Raised inside the transaction so the insert is rolled back.
            if not inserted:
                raise DatabaseError(f"There was an error inserting the record to {self._table_name}")
        return inserted[0]

    def update(self, criteria: Optional[Mapping[str, Any]], fields: Mapping[str, Any]):
        table = self._create_builder()
        stmt = apply_criteria(sa.update(table), table, criteria).values(dict(fields))
        with self._engine.begin() as conn:
            if conn.dialect.update_returning:
                return _collapse(_as_records(conn.execute(stmt.returning(*table.c))))
            return conn.execute(stmt).rowcount or None

    def find(
        self,
        criteria: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> List[Record]:
        table = self._create_builder()
        stmt = apply_criteria(sa.select(table), table, criteria)
        stmt = apply_options(stmt, table, options)
        with self._engine.connect() as conn:
            return _as_records(conn.execute(stmt))

    def find_one(
        self,
        criteria: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Record]:
        results = self.find(criteria, options)
        return results[0] if results else None

    def destroy(self, criteria: Optional[Mapping[str, Any]] = None):
        table = self._create_builder()
        stmt = apply_criteria(sa.delete(table), table, criteria)
        with self._engine.begin() as conn:
            if conn.dialect.delete_returning:
                return _collapse(_as_records(conn.execute(stmt.returning(*table.c))))
            return conn.execute(stmt).rowcount or None

    def truncate(self) -> None:
        table = self._create_builder()
        with self._engine.begin() as conn:
            if conn.dialect.name == "sqlite":
                conn.execute(sa.delete(table))
            else:
                quoted = conn.dialect.identifier_preparer.format_table(table)
                conn.execute(sa.text(f"TRUNCATE TABLE {quoted}"))

    def count(self, criteria: Optional[Mapping[str, Any]] = None, column: Optional[str] = "*") -> int:
        table = self._create_builder()
        if column in (None, "*"):
            target = sa.func.count()
        else:
            target = sa.func.count(resolve_column(table, column))
        stmt = apply_criteria(sa.select(target).select_from(table), table, criteria)
        with self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def max(self, criteria: Optional[Mapping[str, Any]], column: str) -> Any:
        table = self._create_builder()
        target = sa.func.max(resolve_column(table, column))
        stmt = apply_criteria(sa.select(target).select_from(table), table, criteria)
        with self._engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    def query(self, callback: Callable[[sa.Table], Any]):
        """Run the statement built by ``callback`` from the reflected table.

        Row-returning statements give a list of records, anything else the
        affected row count.
        """
        stmt = callback(self._create_builder())
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
            if result.returns_rows:
                return _as_records(result)
            return result.rowcount

    def _create_builder(self) -> sa.Table:
        return sa.Table(self._table_name, self._metadata, autoload_with=self._engine)

    def _select_inserted(self, conn, table: sa.Table, result, fields: Mapping[str, Any]) -> List[Record]:
        if not table.primary_key.columns:
            return [dict(fields)]
        primary_key = result.inserted_primary_key
        if not primary_key or any(value is None for value in primary_key):
            return []
        keys = {column.name: value for column, value in zip(table.primary_key.columns, primary_key)}
        return _as_records(conn.execute(sa.select(table).filter_by(**keys)))
