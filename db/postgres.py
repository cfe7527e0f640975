"""PostgreSQL 访问封装（汇率库只读连接池）。"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Iterable, Optional

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

__all__ = [
    "ConfigurationError",
    "RatesDatabase",
    "get_connection_string",
]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    pass


def get_connection_string() -> str:
    """Return the PostgreSQL connection string from RATES_POSTGRES_URL.

    Raises:
        ConfigurationError: If RATES_POSTGRES_URL is not set.
    """
    conn = str(os.getenv("RATES_POSTGRES_URL", "") or "").strip()
    if conn:
        return conn
    raise ConfigurationError("Missing RATES_POSTGRES_URL environment variable")


def _validate_schema(schema: Optional[str]) -> Optional[str]:
    target = str(schema or "").strip()
    if not target:
        return None
    if not _IDENTIFIER_RE.match(target):
        raise ConfigurationError(f"RATES_POSTGRES_SCHEMA 非法: {target}")
    return target


class RatesDatabase:
    """Explicit handle around a psycopg connection pool.

    The pool is created closed; call ``open()`` at process start and
    ``close()`` on shutdown (or use the instance as a context manager).
    Every pooled connection is configured read-only.
    """

    def __init__(
        self,
        conninfo: str,
        *,
        min_size: int = 1,
        max_size: int = 10,
        timeout: float = 30.0,
        schema: Optional[str] = None,
    ) -> None:
        if not conninfo:
            raise ConfigurationError("Missing RATES_POSTGRES_URL environment variable")
        self._schema = _validate_schema(schema)
        self._pool = ConnectionPool(
            conninfo=conninfo,
            min_size=min_size,
            max_size=max(min_size, max_size),
            timeout=timeout,
            configure=self._configure,
            open=False,
        )

    @classmethod
    def from_env(cls) -> "RatesDatabase":
        """Build a handle from RATES_* settings.

        Raises:
            ConfigurationError: If RATES_POSTGRES_URL is missing or the schema is invalid.
        """
        from config.settings import (
            RATES_POOL_MAX_SIZE,
            RATES_POOL_MIN_SIZE,
            RATES_POOL_TIMEOUT_SEC,
            RATES_POSTGRES_SCHEMA,
        )

        return cls(
            get_connection_string(),
            min_size=RATES_POOL_MIN_SIZE,
            max_size=RATES_POOL_MAX_SIZE,
            timeout=RATES_POOL_TIMEOUT_SEC,
            schema=RATES_POSTGRES_SCHEMA,
        )

    def _configure(self, conn: Any) -> None:
        if self._schema:
            previous_autocommit = bool(getattr(conn, "autocommit", False))
            try:
                conn.autocommit = True
                conn.execute(sql.SQL("SET search_path TO {}, public").format(sql.Identifier(self._schema)))
            finally:
                conn.autocommit = previous_autocommit
        conn.read_only = True

    @property
    def closed(self) -> bool:
        return bool(self._pool.closed)

    def open(self, wait: bool = False) -> None:
        self._pool.open(wait=wait)
        _logger.info("连接池已打开: min=%s max=%s", self._pool.min_size, self._pool.max_size)

    def close(self) -> None:
        """Close the connection pool (idempotent)."""
        if self._pool.closed:
            return
        self._pool.close()
        _logger.info("连接池已关闭")

    def __enter__(self) -> "RatesDatabase":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def connection(self) -> Generator[psycopg.Connection, None, None]:
        """Borrow one connection; it goes back to the pool when the block exits."""
        with self._pool.connection() as conn:
            yield conn

    def fetch_all(self, query: str, params: Optional[Iterable[Any]] = None) -> list[dict[str, Any]]:
        """Execute a query and return all rows as a list of dicts."""
        with self.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, tuple(params or ()))
                return cur.fetchall()
