"""Criteria and ordering helpers shared by every table accessor.

Criteria are plain mappings. A key is a column name optionally followed by a
comparison operator, e.g. ``{"id >=": 10, "status": ["open", "held"]}``.
"""

from __future__ import annotations

import operator
import re
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import sqlalchemy as sa


_CONDITION_PATTERN = re.compile(r"(\w+)\s*(<>|>=|<=|>|<|=)?")

_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "=": operator.eq,
    "<>": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def parse_criteria_key(key: str) -> Tuple[str, Optional[str]]:
    match = _CONDITION_PATTERN.search(key)
    if match is None:
        return key, None
    return match.group(1), match.group(2)


def parse_order(order: Optional[str]) -> Optional[Tuple[str, str]]:
    fields = (order or "").split()
    if len(fields) == 1:
        return fields[0], "asc"
    if len(fields) == 2:
        return fields[0], "desc" if fields[1].lower() == "desc" else "asc"
    return None


def resolve_column(table: sa.Table, name: str):
    column = table.c.get(name)
    # Unknown names fall through to the database, which reports them.
    return column if column is not None else sa.column(name)


def apply_criteria(statement, table: sa.Table, criteria: Optional[Mapping[str, Any]]):
    for key, value in (criteria or {}).items():
        column_name, op = parse_criteria_key(key)
        column = resolve_column(table, column_name)
        if op is None:
            if isinstance(value, (list, tuple, set, frozenset)):
                statement = statement.where(column.in_(list(value)))
            else:
                statement = statement.where(column == value)
        else:
            statement = statement.where(_OPERATORS[op](column, value))
    return statement


def apply_options(statement, table: sa.Table, options: Optional[Mapping[str, Any]]):
    order_by = parse_order((options or {}).get("order"))
    if order_by is not None:
        column_name, direction = order_by
        column = resolve_column(table, column_name)
        statement = statement.order_by(column.desc() if direction == "desc" else column.asc())
    return statement
