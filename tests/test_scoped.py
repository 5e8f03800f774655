"""Tests for dbhandle/scoped.py - caller-owned connections."""

from unittest.mock import patch

import psycopg2
import pytest
from psycopg2.extras import RealDictCursor

from dbhandle.connection import ConnectionHandle
from dbhandle.errors import BindError
from dbhandle.scoped import QueryResult, connect, run_query
from tests.conftest import make_connection, make_cursor


class TestConnect:
    """Tests for connect()."""

    def test_yields_autocommit_connection_and_closes(self, mock_connect, mock_conn, db_config):
        with connect(db_config) as conn:
            assert conn is mock_conn
            assert conn.autocommit is True
            mock_conn.close.assert_not_called()
        mock_conn.close.assert_called_once()

    def test_closes_on_exception(self, mock_connect, mock_conn, db_config):
        with pytest.raises(RuntimeError):
            with connect(db_config):
                raise RuntimeError("test error")
        mock_conn.close.assert_called_once()

    def test_does_not_touch_singleton(self, mock_connect, db_config):
        with connect(db_config):
            assert not ConnectionHandle.has_instance()

    def test_each_call_opens_its_own_connection(self, db_config):
        conns = [make_connection(), make_connection()]
        with patch("dbhandle.connection.psycopg2.connect", side_effect=conns):
            with connect(db_config) as a, connect(db_config) as b:
                assert a is not b

    def test_reads_environment(self, mock_connect, db_env):
        with connect():
            pass
        assert mock_connect.call_args[1]["dsn"] == "postgresql://localhost:5432/test"


class TestRunQuery:
    """Tests for run_query()."""

    def test_executes_with_translated_params(self):
        cursor = make_cursor(["id", "name"], [{"id": 5, "name": "a"}])
        conn = make_connection(cursor)

        result = run_query(conn, "SELECT * FROM t WHERE id=:id", {":id": 5})

        conn.cursor.assert_called_once_with(cursor_factory=RealDictCursor)
        cursor.execute.assert_called_once_with(
            "SELECT * FROM t WHERE id=%(id)s", {"id": 5}
        )
        assert isinstance(result, QueryResult)
        assert result.fetch_all() == [{"id": 5, "name": "a"}]

    def test_executes_without_params(self):
        cursor = make_cursor()
        conn = make_connection(cursor)

        run_query(conn, "SELECT 1")
        cursor.execute.assert_called_once_with("SELECT 1")

    def test_closes_cursor_and_reraises_on_error(self):
        cursor = make_cursor()
        cursor.execute.side_effect = psycopg2.ProgrammingError("syntax error")
        conn = make_connection(cursor)

        with pytest.raises(psycopg2.ProgrammingError):
            run_query(conn, "SELEC 1")
        cursor.close.assert_called_once()

    def test_bind_error_before_cursor_opens(self):
        conn = make_connection()
        with pytest.raises(BindError):
            run_query(conn, "SELECT :missing", {})
        conn.cursor.assert_not_called()


class TestQueryResult:
    """Tests for QueryResult."""

    def test_fetch_one(self):
        result = QueryResult(make_cursor(["?column?"], [{"?column?": 1}]))
        assert result.fetch_one() == {"?column?": 1}

    def test_fetch_one_exhausted(self):
        cursor = make_cursor(["id"], [])
        assert QueryResult(cursor).fetch_one() is None

    def test_no_result_set(self):
        cursor = make_cursor(columns=None)
        cursor.rowcount = 3
        result = QueryResult(cursor)

        assert result.fetch_one() is None
        assert result.fetch_all() == []
        assert result.columns == []
        assert result.rowcount == 3
        cursor.fetchone.assert_not_called()

    def test_columns(self):
        result = QueryResult(make_cursor(["id", "name"], []))
        assert result.columns == ["id", "name"]

    def test_iterates_rows(self):
        cursor = make_cursor(["id"])
        cursor.fetchone.side_effect = [{"id": 1}, {"id": 2}, None]
        assert list(QueryResult(cursor)) == [{"id": 1}, {"id": 2}]

    def test_context_manager_closes_cursor(self):
        cursor = make_cursor()
        with QueryResult(cursor) as result:
            result.fetch_all()
        cursor.close.assert_called_once()
