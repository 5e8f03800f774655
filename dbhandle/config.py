"""Database configuration and server-string parsing."""

import os
import re
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError

# Driver prefixes accepted in a PDO-style "driver:key=value;..." server string
PG_DRIVERS = {"pgsql", "postgres", "postgresql"}

_URL_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_PREFIX_RE = re.compile(r"^([a-z][a-z0-9_]*):(.*)$", re.IGNORECASE | re.DOTALL)
_URL_PASSWORD_RE = re.compile(r"(://[^:/@]*:)[^@]*@")
_KV_PASSWORD_RE = re.compile(r"(password\s*=\s*)[^;\s]*", re.IGNORECASE)

# PDO key names that differ from libpq's
_KEY_ALIASES = {"database": "dbname"}


@dataclass(frozen=True)
class DatabaseConfig:
    server: str
    username: Optional[str] = None
    password: Optional[str] = None

    def __repr__(self) -> str:
        masked = "***" if self.password else None
        return (
            f"DatabaseConfig(server={self.server!r}, "
            f"username={self.username!r}, password={masked!r})"
        )

    @classmethod
    def from_mapping(cls, config: dict) -> "DatabaseConfig":
        """Build from a {"server", "username", "password"} dict."""
        server = config.get("server")
        if not server:
            raise ConfigError("config must include 'server'")
        return cls(
            server=server,
            username=config.get("username"),
            password=config.get("password"),
        )

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Build from DATABASE_URL, DATABASE_USER and DATABASE_PASSWORD."""
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise ConfigError("DATABASE_URL must be set")
        return cls(
            server=database_url,
            username=os.environ.get("DATABASE_USER") or None,
            password=os.environ.get("DATABASE_PASSWORD") or None,
        )

    def redacted_server(self) -> str:
        """Server string with any embedded password masked, for logging."""
        server = _URL_PASSWORD_RE.sub(r"\1***@", self.server)
        return _KV_PASSWORD_RE.sub(r"\1***", server)

    def connect_kwargs(self) -> dict:
        """Keyword arguments for psycopg2.connect()."""
        kwargs = parse_server(self.server)
        if self.username:
            kwargs["user"] = self.username
        if self.password:
            kwargs["password"] = self.password
        return kwargs


def coerce_config(config) -> DatabaseConfig:
    """Accept a DatabaseConfig, a plain dict, or None (read the environment)."""
    if config is None:
        return DatabaseConfig.from_env()
    if isinstance(config, DatabaseConfig):
        return config
    if isinstance(config, dict):
        return DatabaseConfig.from_mapping(config)
    raise ConfigError(f"unsupported config type: {type(config).__name__}")


def parse_server(server: str) -> dict:
    """Turn a server string into psycopg2.connect() keyword arguments.

    Three forms are understood:
      - URLs ("postgresql://user@host/db") are passed through as ``dsn``
      - PDO-style "pgsql:host=localhost;port=5432;dbname=app" strings are
        split into keyword arguments
      - anything else is treated as a libpq keyword string and passed
        through as ``dsn``
    """
    server = server.strip()
    if not server:
        raise ConfigError("server must not be empty")

    if _URL_RE.match(server):
        return {"dsn": server}

    match = _PREFIX_RE.match(server)
    if not match:
        return {"dsn": server}

    driver, rest = match.group(1).lower(), match.group(2)
    if driver not in PG_DRIVERS:
        raise ConfigError(f"unsupported driver '{driver}' in server string")

    kwargs = {}
    for segment in rest.split(";"):
        segment = segment.strip()
        if not segment:
            continue
        if "=" not in segment:
            raise ConfigError(f"malformed server segment '{segment}'")
        key, value = segment.split("=", 1)
        key = key.strip().lower()
        kwargs[_KEY_ALIASES.get(key, key)] = value.strip()

    if not kwargs:
        raise ConfigError("server string has no connection parameters")
    return kwargs
