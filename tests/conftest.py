from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

from dbintrospect.config import ConnectionDescriptor
from dbintrospect.inference.chain import TypeInferenceChain


SHOP_DDL = [
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        is_active TINYINT,
        external_ref CHAR(36),
        created_on VARCHAR(20)
    )
    """,
    """
    CREATE TABLE orders (
        id INTEGER PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id),
        total DECIMAL(10, 2),
        status TINYINT
    )
    """,
    "CREATE UNIQUE INDEX ux_users_name ON users(name)",
    "CREATE INDEX ix_orders_user ON orders(user_id)",
    "CREATE VIEW active_users AS SELECT id, name FROM users WHERE is_active = 1",
]


def _create_database(path: Path, statements, rows=()) -> Path:
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        for stmt in statements:
            conn.execute(text(stmt))
        for stmt, params in rows:
            conn.execute(text(stmt), params)
    engine.dispose()
    return path


@pytest.fixture
def shop_db(tmp_path):
    """users/orders database with one declared foreign key and sample data."""
    users = [
        {
            "id": i,
            "name": f"user{i}",
            "is_active": i % 2,
            "ref": f"00000000-0000-4000-8000-{i:012d}",
            "created_on": "2024-01-01 10:00:00",
        }
        for i in range(1, 13)
    ]
    orders = [
        {"id": i, "user_id": (i % 12) + 1, "total": 10.5 * i, "status": i % 5}
        for i in range(1, 21)
    ]
    rows = [
        (
            "INSERT INTO users (id, name, is_active, external_ref, created_on) "
            "VALUES (:id, :name, :is_active, :ref, :created_on)",
            users,
        ),
        (
            "INSERT INTO orders (id, user_id, total, status) VALUES (:id, :user_id, :total, :status)",
            orders,
        ),
    ]
    return _create_database(tmp_path / "shop.db", SHOP_DDL, rows)


@pytest.fixture
def shop_descriptor(shop_db):
    return ConnectionDescriptor(engine="sqlite", database=str(shop_db))


@pytest.fixture
def make_database(tmp_path):
    """Factory: build a SQLite file from DDL statements and return its descriptor."""

    def _make(name: str, statements, rows=()):
        path = _create_database(tmp_path / f"{name}.db", statements, rows)
        return ConnectionDescriptor(engine="sqlite", database=str(path))

    return _make


@pytest.fixture
def rules_chain():
    """Inference chain without the statistical stage, for deterministic results."""
    return TypeInferenceChain(classifier=None)


class FakeResult:
    def __init__(self, rows):
        self._rows = list(rows)

    def fetchall(self):
        return list(self._rows)

    def scalar(self):
        return self._rows[0][0] if self._rows else None


class FakeConnection:
    """Stands in for a SQLAlchemy connection: records statements, returns canned rows."""

    def __init__(self, rows=(), error=None):
        self.rows = [r if isinstance(r, tuple) else (r,) for r in rows]
        self.error = error
        self.statements = []

    def execute(self, statement, params=None):
        self.statements.append((str(statement), params))
        if self.error is not None:
            raise self.error
        return FakeResult(self.rows)


class ScriptedConnection(FakeConnection):
    """Returns one canned result set per statement, in execution order."""

    def __init__(self, *results):
        super().__init__()
        self.results = [[r if isinstance(r, tuple) else (r,) for r in rows] for rows in results]

    def execute(self, statement, params=None):
        self.statements.append((str(statement), params))
        return FakeResult(self.results.pop(0) if self.results else [])


@pytest.fixture
def fake_connection():
    return FakeConnection


@pytest.fixture
def scripted_connection():
    return ScriptedConnection
