"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. FastAPI initializes it on startup and
closes it on shutdown (see `api/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...

Every helper takes an optional `conn`. Pass the connection yielded by
`transaction()` to run a statement inside that transaction; leave it out to run
on any pooled connection.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Iterator

import asyncpg

from .errors import ConflictError, LookupFailed, PersistenceError
from .settings import Settings

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


async def init_pool(settings: Settings) -> None:
    global _pool
    if _pool is not None:
        return None
    _pool = await asyncpg.create_pool(
        dsn=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
    )


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return None
    await _pool.close()
    _pool = None


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


def _target(conn: asyncpg.Connection | None) -> asyncpg.Pool | asyncpg.Connection:
    return conn if conn is not None else pool()


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


async def fetch_one(sql: str, *args: Any, conn: asyncpg.Connection | None = None) -> dict[str, Any] | None:
    """
    Run a query and return a single row as a dict (or None).
    """
    row = await _target(conn).fetchrow(sql, *args)
    return _record_to_dict(row) if row is not None else None


async def fetch_all(sql: str, *args: Any, conn: asyncpg.Connection | None = None) -> list[dict[str, Any]]:
    """
    Run a query and return all rows as a list of dicts.
    """
    rows = await _target(conn).fetch(sql, *args)
    return [_record_to_dict(r) for r in rows]


async def execute(sql: str, *args: Any, conn: asyncpg.Connection | None = None) -> None:
    """
    Run a statement (INSERT/UPDATE/DELETE/DDL). No result returned.
    """
    await _target(conn).execute(sql, *args)


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    """
    Acquire one connection and hold a transaction open on it.

    Commits when the block exits normally, rolls back when it raises.
    """
    async with pool().acquire() as conn:  # type: asyncpg.Connection
        async with conn.transaction():
            yield conn


def quote(name: str) -> str:
    """
    Double-quote an identifier. Only ever pass names from code, never user input.
    """
    return f'"{name}"'


@contextmanager
def store_errors(action: str, table: str, *, lookup: bool = False) -> Iterator[None]:
    """
    Translate driver failures into the shared error taxonomy.

    A unique-index violation is a conflict; anything else the store or the
    connection raises is logged here and surfaces as a generic persistence
    failure (`LookupFailed` for read-before-write lookups).
    """
    try:
        yield
    except asyncpg.UniqueViolationError as exc:
        raise ConflictError(f"A {table} row with the same key already exists.") from exc
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        logger.exception("store_failed action=%s table=%s", action, table)
        error_cls = LookupFailed if lookup else PersistenceError
        raise error_cls(f"An error occurred while {action} {table}.") from exc
