"""Singleton database handle over psycopg2, plus a scoped alternative."""

from .config import DatabaseConfig, parse_server
from .connection import ConnectionHandle, close_connection, get_instance
from .errors import BindError, ConfigError, InvariantError, StateError
from .log_config import setup_logging
from .scoped import QueryResult, connect, run_query

__all__ = [
    "ConnectionHandle",
    "get_instance",
    "close_connection",
    "DatabaseConfig",
    "parse_server",
    "connect",
    "run_query",
    "QueryResult",
    "StateError",
    "InvariantError",
    "ConfigError",
    "BindError",
    "setup_logging",
]
