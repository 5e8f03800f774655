"""Shared test fixtures for the dbhandle test suite."""

from collections import namedtuple
from unittest.mock import MagicMock, patch

import pytest

from dbhandle.connection import ConnectionHandle

# Stand-in for psycopg2's cursor.description entries
Column = namedtuple("Column", ["name"])


# ---------------------------------------------------------------------------
# Singleton reset
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_handle():
    """Start and end every test with no live handle."""
    ConnectionHandle._instance = None
    yield
    try:
        ConnectionHandle.close_instance()
    finally:
        ConnectionHandle._instance = None


# ---------------------------------------------------------------------------
# Driver fixtures
# ---------------------------------------------------------------------------

def make_cursor(columns=("id",), rows=None):
    """Mock RealDictCursor returning `rows` (a list of dicts)."""
    cursor = MagicMock()
    cursor.description = tuple(Column(c) for c in columns) if columns else None
    cursor.fetchone.return_value = rows[0] if rows else None
    cursor.fetchall.return_value = list(rows or [])
    cursor.rowcount = len(rows) if rows else 0
    return cursor


def make_connection(cursor=None):
    conn = MagicMock()
    conn.closed = 0
    conn.cursor.return_value = cursor if cursor is not None else make_cursor()
    return conn


@pytest.fixture
def mock_cursor():
    return make_cursor()


@pytest.fixture
def mock_conn(mock_cursor):
    return make_connection(mock_cursor)


@pytest.fixture
def mock_connect(mock_conn):
    """Patch psycopg2.connect to return mock_conn."""
    with patch("dbhandle.connection.psycopg2.connect", return_value=mock_conn) as m:
        yield m


@pytest.fixture
def db_config():
    return {
        "server": "pgsql:host=localhost;port=5432;dbname=test",
        "username": "test",
        "password": "test",
    }


@pytest.fixture
def db_env(monkeypatch):
    """Set database environment variables."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost:5432/test")
    monkeypatch.setenv("DATABASE_USER", "test")
    monkeypatch.setenv("DATABASE_PASSWORD", "test")


@pytest.fixture
def handle(mock_connect, db_config):
    """Live ConnectionHandle backed by the mock driver."""
    return ConnectionHandle.get_instance(db_config)
