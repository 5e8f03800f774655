"""Caller-scoped connections and a one-call query API.

Unlike ConnectionHandle there is no global state here: the caller owns the
connection and passes it to whatever needs it.

    with connect(config) as conn:
        with run_query(conn, "SELECT * FROM t WHERE id = :id", {":id": 5}) as result:
            rows = result.fetch_all()
"""

import logging
from contextlib import contextmanager

from psycopg2.extras import RealDictCursor

from .config import coerce_config
from .connection import open_connection
from .placeholders import translate

logger = logging.getLogger(__name__)


@contextmanager
def connect(config=None):
    """Context manager yielding an autocommit connection, closed on exit."""
    conn = open_connection(coerce_config(config))
    try:
        yield conn
    finally:
        conn.close()


class QueryResult:
    """Rows from one executed statement."""

    def __init__(self, cursor):
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    @property
    def columns(self) -> list[str]:
        if self._cursor.description is None:
            return []
        return [col.name for col in self._cursor.description]

    def fetch_one(self):
        """Next row as a dict, or None when exhausted or there is no result set."""
        if self._cursor.description is None:
            return None
        row = self._cursor.fetchone()
        return dict(row) if row is not None else None

    def fetch_all(self) -> list[dict]:
        if self._cursor.description is None:
            return []
        return [dict(row) for row in self._cursor.fetchall()]

    def close(self) -> None:
        self._cursor.close()

    def __iter__(self):
        row = self.fetch_one()
        while row is not None:
            yield row
            row = self.fetch_one()

    def __enter__(self) -> "QueryResult":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def run_query(conn, query: str, params=None) -> QueryResult:
    """Execute `query` with `params` on `conn` and return its result.

    Driver errors propagate; the cursor is closed before they do.
    """
    sql, bound = translate(query, params)
    cur = conn.cursor(cursor_factory=RealDictCursor)
    try:
        if bound is None:
            cur.execute(sql)
        else:
            cur.execute(sql, bound)
    except Exception:
        cur.close()
        raise
    logger.debug("run_query rowcount=%d", cur.rowcount)
    return QueryResult(cur)
