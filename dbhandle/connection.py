"""Process-wide database handle.

One open connection per process, reached through ``get_instance()``. Callers
set a query, optionally bind parameters, execute, then fetch rows:

    db = get_instance({"server": "pgsql:host=localhost;dbname=app",
                       "username": "app", "password": "secret"})
    db.set_query("SELECT * FROM users WHERE id = :id")
    db.set_params({":id": 5})
    db.execute()
    row = db.fetch_one()

The handle is not thread-safe. Code that runs queries from several threads
should use ``dbhandle.scoped`` and give each caller its own connection.
"""

import logging
from typing import Optional

import psycopg2
import psycopg2.errors
from psycopg2.extras import RealDictCursor

from .config import DatabaseConfig, coerce_config
from .errors import InvariantError, StateError
from .placeholders import translate

logger = logging.getLogger(__name__)

# Server-reported errors are raised as SQLSTATE subclasses from this module
SQLSTATE_MODULE = psycopg2.errors.__name__


def open_connection(config: DatabaseConfig):
    """Connect in autocommit mode. Driver errors propagate unwrapped."""
    logger.info(
        "Connecting to %s as %s", config.redacted_server(), config.username or "(default user)"
    )
    conn = psycopg2.connect(**config.connect_kwargs())
    conn.autocommit = True
    return conn


class ConnectionHandle:
    """Singleton holding the connection, pending query/params and last cursor."""

    _instance: Optional["ConnectionHandle"] = None

    def __init__(self, config=None):
        if type(self)._instance is not None:
            raise InvariantError("singleton cannot be duplicated")

        self._connection = open_connection(coerce_config(config))
        self._query: Optional[str] = None
        self._params = None
        self._statement = None
        type(self)._instance = self

    @classmethod
    def get_instance(cls, config=None) -> "ConnectionHandle":
        """Return the live handle, connecting on first use.

        `config` may be a DatabaseConfig, a {"server", "username", "password"}
        dict, or None to read DATABASE_URL. It is ignored once connected.
        """
        if cls._instance is None:
            cls(config)
        elif config is not None:
            logger.debug("Handle already connected, ignoring config")
        return cls._instance

    @classmethod
    def has_instance(cls) -> bool:
        return cls._instance is not None

    @classmethod
    def close_instance(cls) -> None:
        if cls._instance is not None:
            cls._instance.close_connection()

    # --- State ---

    @property
    def connection(self):
        return self._connection

    @property
    def pending_query(self) -> Optional[str]:
        return self._query

    @property
    def pending_params(self):
        return self._params

    @property
    def active_statement(self):
        return self._statement

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.closed

    @property
    def rowcount(self) -> int:
        """Rows produced or affected by the last execute, -1 if none ran."""
        if self._statement is None:
            return -1
        return self._statement.rowcount

    # --- Query ---

    def set_query(self, query: str) -> None:
        self._query = query

    def set_params(self, params) -> None:
        """Bind {":name": value} (or a sequence for ``?`` markers)."""
        self._params = params

    def execute(self) -> bool:
        """Run the pending query on a fresh cursor.

        Returns False when the server rejects the statement. Raises StateError
        when no query is set, and lets connection-level driver errors through.
        The query and params stay set, so calling execute() again re-runs them.
        """
        if self._query is None:
            raise StateError("no query set")
        if self._connection is None:
            raise StateError("connection is closed")

        sql, params = translate(self._query, self._params)

        self._close_statement()
        self._statement = self._connection.cursor(cursor_factory=RealDictCursor)
        try:
            if params is None:
                self._statement.execute(sql)
            else:
                self._statement.execute(sql, params)
        except psycopg2.DatabaseError as e:
            if not self._is_statement_error(e):
                raise
            logger.warning("Statement failed: %s", str(e).strip())
            return False

        logger.debug("Executed statement, rowcount=%d", self._statement.rowcount)
        return True

    # --- Fetch ---

    def fetch_one(self):
        """Next row as a dict in column order, or False when there is none."""
        if self._statement is None:
            logger.warning("fetch_one() called before execute()")
            return False
        if self._statement.description is None:
            return False
        row = self._statement.fetchone()
        if row is None:
            return False
        return dict(row)

    def fetch_all(self):
        """All remaining rows as dicts. False if nothing has been executed."""
        if self._statement is None:
            logger.warning("fetch_all() called before execute()")
            return False
        if self._statement.description is None:
            return []
        return [dict(row) for row in self._statement.fetchall()]

    # --- Lifecycle ---

    def close_connection(self) -> None:
        """Close cursor and connection and release the singleton slot."""
        self._close_statement()
        if self._connection is not None:
            self._connection.close()
            logger.info("Database connection closed")
        self._connection = None
        self._query = None
        self._params = None
        if type(self)._instance is self:
            type(self)._instance = None

    def _is_statement_error(self, e: psycopg2.DatabaseError) -> bool:
        """True when the server rejected the statement and the connection is still usable.

        Lock timeouts and cancelled queries arrive as OperationalError
        subclasses too, so the exception class alone does not tell.
        """
        if self._connection.closed:
            return False
        return e.pgcode is not None or type(e).__module__ == SQLSTATE_MODULE

    def _close_statement(self) -> None:
        if self._statement is not None:
            self._statement.close()
            self._statement = None

    def __enter__(self) -> "ConnectionHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_connection()

    def __copy__(self):
        raise InvariantError("singleton cannot be duplicated")

    def __deepcopy__(self, memo):
        raise InvariantError("singleton cannot be duplicated")

    def __reduce_ex__(self, protocol):
        raise InvariantError("singleton cannot be duplicated")

    def __repr__(self) -> str:
        state = "connected" if self._connection is not None else "closed"
        return f"<ConnectionHandle {state}>"


def get_instance(config=None) -> ConnectionHandle:
    """Shortcut for ConnectionHandle.get_instance()."""
    return ConnectionHandle.get_instance(config)


def close_connection() -> None:
    """Close the live handle, if any."""
    ConnectionHandle.close_instance()
