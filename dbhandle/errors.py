"""Exceptions raised by the database handle.

Driver failures (bad credentials, unreachable host, dropped connection) are
not wrapped: they surface as the psycopg2 exception the driver raised.
"""


class StateError(RuntimeError):
    """An operation was called before the state it needs was set up."""


class InvariantError(RuntimeError):
    """An operation would break the single-instance guarantee."""


class ConfigError(ValueError):
    """Database configuration is missing or malformed."""


class BindError(ValueError):
    """Query placeholders and bound parameters do not line up."""
