import pytest
import sqlalchemy as sa

from database.criteria import apply_criteria, apply_options, parse_criteria_key, parse_order


@pytest.fixture
def users():
    metadata = sa.MetaData()
    return sa.Table(
        "users",
        metadata,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(50)),
        sa.Column("num", sa.Integer),
    )


def _sql(statement) -> str:
    return str(statement.compile(compile_kwargs={"literal_binds": True})).replace("\n", " ")


@pytest.mark.parametrize(
    "key, expected",
    [
        ("id", ("id", None)),
        ("id >=", ("id", ">=")),
        ("id>=", ("id", ">=")),
        ("amount <>", ("amount", "<>")),
        ("created_at <", ("created_at", "<")),
        ("id =", ("id", "=")),
        ("id !=", ("id", None)),
        ("", ("", None)),
    ],
)
def test_parse_criteria_key(key, expected):
    assert parse_criteria_key(key) == expected


def test_parse_order_defaults_to_ascending():
    assert parse_order("id") == ("id", "asc")
    assert parse_order("name DESC") == ("name", "desc")
    assert parse_order("name sideways") == ("name", "asc")


def test_parse_order_ignores_blank_and_multi_field_orders():
    assert parse_order(None) is None
    assert parse_order(" ") is None
    assert parse_order("name asc, id desc") is None


def test_apply_criteria_equality_and_operators(users):
    stmt = apply_criteria(sa.select(users), users, {"name": "test", "num >": 5})
    sql = _sql(stmt)
    assert "users.name = 'test'" in sql
    assert "users.num > 5" in sql


def test_apply_criteria_list_becomes_in_clause(users):
    sql = _sql(apply_criteria(sa.select(users), users, {"id": [1, 2]}))
    assert "users.id IN (1, 2)" in sql


def test_apply_criteria_none_renders_is_null(users):
    sql = _sql(apply_criteria(sa.select(users), users, {"name": None}))
    assert "users.name IS NULL" in sql


def test_apply_criteria_unknown_operator_falls_back_to_equality(users):
    sql = _sql(apply_criteria(sa.select(users), users, {"id !=": 1}))
    assert "users.id = 1" in sql


def test_apply_criteria_empty_and_null_leave_statement_untouched(users):
    base = sa.select(users)
    assert _sql(apply_criteria(base, users, {})) == _sql(base)
    assert "WHERE" not in _sql(apply_criteria(base, users, None))


def test_apply_criteria_unknown_column_is_passed_through(users):
    sql = _sql(apply_criteria(sa.select(users), users, {"missing <=": 3}))
    assert "missing <= 3" in sql


def test_apply_options_orders_statement(users):
    assert "ORDER BY users.name DESC" in _sql(apply_options(sa.select(users), users, {"order": "name desc"}))
    assert "ORDER BY users.id ASC" in _sql(apply_options(sa.select(users), users, {"order": "id"}))
    assert "ORDER BY" not in _sql(apply_options(sa.select(users), users, {"order": "name asc, id desc"}))
    assert "ORDER BY" not in _sql(apply_options(sa.select(users), users, None))
