from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2 import sql as pgsql
from psycopg2.extras import execute_batch

from sheet_import.models.config_models import DatabaseConfig

from .port import DatabaseError

"""PostgreSQL adapter (psycopg2).

The connection runs with ``autocommit = True`` and the orchestrator draws the
transaction boundaries itself with explicit BEGIN / COMMIT / ROLLBACK, one
transaction per sheet. Lookups issued outside a sheet transaction therefore run
in their own implicit transaction.
"""

__all__ = [
    "PostgresDatabase",
    "to_pyformat",
    "resolve_dsn",
    "connect",
]

logger = logging.getLogger(__name__)

# ":name" but not the second colon of a "::type" cast
_NAMED_PARAM = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")


def to_pyformat(statement: str) -> str:
    """Translate ``:name`` placeholders to psycopg2's ``%(name)s`` style."""
    escaped = statement.replace("%", "%%")
    return _NAMED_PARAM.sub(r"%(\1)s", escaped)


def _identifier(dotted: str) -> pgsql.Identifier:
    return pgsql.Identifier(*dotted.split("."))


class PostgresDatabase:
    """``DatabasePort`` implementation over a psycopg2 connection."""

    def __init__(self, connection: Any, page_size: int = 1000) -> None:
        self._conn = connection
        self._page_size = page_size

    def _execute(self, statement: str) -> None:
        try:
            with self._conn.cursor() as cur:
                cur.execute(statement)
        except psycopg2.Error as e:
            raise DatabaseError(f"{statement} failed: {e}") from e

    def begin_transaction(self) -> None:
        self._execute("BEGIN")

    def commit_transaction(self) -> None:
        self._execute("COMMIT")

    def rollback_transaction(self) -> None:
        self._execute("ROLLBACK")

    def execute_batch(self, sql: str, param_maps: Sequence[Mapping[str, Any]]) -> int:
        rows = [dict(p) for p in param_maps]
        if not rows:
            return 0
        statement = to_pyformat(sql)
        try:
            with self._conn.cursor() as cur:
                execute_batch(cur, statement, rows, page_size=self._page_size)
        except psycopg2.Error as e:
            raise DatabaseError(str(e).strip()) from e
        return len(rows)

    def lookup(self, table: str, match_column: str, value: Any, return_column: str) -> Any | None:
        if value is None:
            return None
        query = pgsql.SQL("SELECT {ret} FROM {table} WHERE {match} = %s LIMIT 1").format(
            ret=_identifier(return_column),
            table=_identifier(table),
            match=_identifier(match_column),
        )
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, (value,))
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise DatabaseError(f"lookup on {table}.{match_column} failed: {e}") from e
        if row is None:
            return None
        return row[0]


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve connection settings, environment first.

    Order:
        1. ``DATABASE_URL`` / ``PGDSN`` (whole DSN), then the config ``dsn``
        2. ``PGHOST`` / ``PGPORT`` / ``PGUSER`` / ``PGPASSWORD`` / ``PGDATABASE``
        3. the config ``database`` section for whatever is still missing
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[PostgresDatabase]:
    """Open a connection and yield a ``PostgresDatabase``; the connection is closed on exit."""
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise DatabaseError(f"cannot connect: {e}") from e
    conn.autocommit = True
    try:
        yield PostgresDatabase(conn)
    finally:
        try:
            conn.close()
        except psycopg2.Error:  # pragma: no cover
            logger.debug("closing connection failed", exc_info=True)
