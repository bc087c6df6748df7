"""
Descriptor-driven persistence for natural-keyed tables.

All SQL is generated from a `TableDescriptor`; identifiers come from the
descriptor (never from user input) and are always double-quoted because
several columns ("dec", "format", "language") collide with SQL keywords.
Store failures are translated by `core.db.store_errors`.
"""

from __future__ import annotations

from typing import Any, Mapping

import asyncpg

from core import db
from core.db import store_errors
from core.errors import PersistenceError

from .descriptors import TableDescriptor

_q = db.quote


def _where(columns: list[str], start: int = 1) -> str:
    return " AND ".join(f"{_q(col)} = ${i}" for i, col in enumerate(columns, start=start))


async def find_ids_by_natural_key(
    desc: TableDescriptor,
    key: str,
    *,
    scope: Mapping[str, Any] | None = None,
    conn: asyncpg.Connection | None = None,
) -> list[Any]:
    """
    Ids of rows whose key equals the candidate, both trimmed and case-folded by the database.

    At most two ids come back; two means the table already holds near-duplicates.
    """
    scope = dict(scope or {})
    conditions = [f"lower(trim({_q(desc.key_column)})) = lower(trim($1))"]
    if scope:
        conditions.append(_where(list(scope), start=2))
    sql = (
        f"SELECT {_q(desc.id_column)} FROM {_q(desc.table)} "
        f"WHERE {' AND '.join(conditions)} "
        f"ORDER BY {_q(desc.id_column)} LIMIT 2"
    )
    with store_errors("looking up", desc.table, lookup=True):
        rows = await db.fetch_all(sql, key, *scope.values(), conn=conn)
    return [row[desc.id_column] for row in rows]


async def id_exists(desc: TableDescriptor, identifier: Any, *, conn: asyncpg.Connection | None = None) -> bool:
    sql = f"SELECT {_q(desc.id_column)} FROM {_q(desc.table)} WHERE {_q(desc.id_column)} = $1"
    with store_errors("looking up", desc.table, lookup=True):
        row = await db.fetch_one(sql, identifier, conn=conn)
    return row is not None


async def insert_row(
    desc: TableDescriptor,
    values: Mapping[str, Any],
    *,
    conn: asyncpg.Connection | None = None,
) -> Any:
    columns = list(values)
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    sql = (
        f"INSERT INTO {_q(desc.table)} ({', '.join(_q(c) for c in columns)}) "
        f"VALUES ({placeholders}) RETURNING {_q(desc.id_column)}"
    )
    with store_errors("creating", desc.table):
        row = await db.fetch_one(sql, *values.values(), conn=conn)
    if row is None:
        raise PersistenceError(f"Failed to create {desc.table} row.")
    return row[desc.id_column]


async def update_row(
    desc: TableDescriptor,
    identifier: Any,
    values: Mapping[str, Any],
    *,
    conn: asyncpg.Connection | None = None,
) -> Any | None:
    """
    Update one row by surrogate id. Returns the id, or None when it is gone.
    """
    if not values:
        return identifier if await id_exists(desc, identifier, conn=conn) else None

    columns = list(values)
    assignments = ", ".join(f"{_q(col)} = ${i}" for i, col in enumerate(columns, start=1))
    sql = (
        f"UPDATE {_q(desc.table)} SET {assignments} "
        f"WHERE {_q(desc.id_column)} = ${len(columns) + 1} "
        f"RETURNING {_q(desc.id_column)}"
    )
    with store_errors("updating", desc.table):
        row = await db.fetch_one(sql, *values.values(), identifier, conn=conn)
    return row[desc.id_column] if row is not None else None


async def get_row(desc: TableDescriptor, identifier: Any) -> dict[str, Any] | None:
    sql = f"SELECT * FROM {_q(desc.table)} WHERE {_q(desc.id_column)} = $1"
    with store_errors("retrieving", desc.table):
        return await db.fetch_one(sql, identifier)


async def list_rows(desc: TableDescriptor, *, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
    filters = dict(filters or {})
    where = f"WHERE {_where(list(filters))} " if filters else ""
    sql = f"SELECT * FROM {_q(desc.table)} {where}ORDER BY {_q(desc.id_column)}"
    with store_errors("retrieving", desc.table):
        return await db.fetch_all(sql, *filters.values())


async def delete_row(desc: TableDescriptor, identifier: Any) -> bool:
    sql = f"DELETE FROM {_q(desc.table)} WHERE {_q(desc.id_column)} = $1 RETURNING {_q(desc.id_column)}"
    with store_errors("deleting", desc.table):
        row = await db.fetch_one(sql, identifier)
    return row is not None


async def find_row_by_natural_key(
    desc: TableDescriptor,
    key: str,
    *,
    scope: Mapping[str, Any] | None = None,
) -> dict[str, Any] | None:
    scope = dict(scope or {})
    conditions = [f"lower(trim({_q(desc.key_column)})) = lower(trim($1))"]
    if scope:
        conditions.append(_where(list(scope), start=2))
    sql = (
        f"SELECT * FROM {_q(desc.table)} "
        f"WHERE {' AND '.join(conditions)} "
        f"ORDER BY {_q(desc.id_column)} LIMIT 1"
    )
    with store_errors("retrieving", desc.table):
        return await db.fetch_one(sql, key, *scope.values())


async def list_states_with_country() -> list[dict[str, Any]]:
    sql = """
        SELECT s.*, c."countryname"
        FROM "States" s
        LEFT OUTER JOIN "Country" c ON s."countryid" = c."countryid"
        ORDER BY s."stateid"
    """
    with store_errors("retrieving", "States"):
        return await db.fetch_all(sql)


async def list_selectable_hsn_codes(*, isservice: bool) -> list[dict[str, Any]]:
    sql = """
        SELECT "hsncode", "codedesc"
        FROM "HSNSAC"
        WHERE "isselectable" = true AND "isservice" = $1
        ORDER BY "hsncode"
    """
    with store_errors("retrieving", "HSNSAC"):
        return await db.fetch_all(sql, isservice)


def _like_fragment(fragment: str) -> str:
    escaped = fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def search_hsn_codes(*, isservice: bool, fragment: str) -> list[dict[str, Any]]:
    sql = """
        SELECT "hsncode", "codedesc", "isselectable"
        FROM "HSNSAC"
        WHERE "isservice" = $1 AND "hsncode" ILIKE $2
        ORDER BY "hsncode"
    """
    with store_errors("retrieving", "HSNSAC"):
        return await db.fetch_all(sql, isservice, _like_fragment(fragment))


async def list_items(*, compid: int) -> list[dict[str, Any]]:
    sql = """
        SELECT "itemid", "itemtype", "itemname", "hsncode"
        FROM "Items"
        WHERE "compid" = $1
        ORDER BY "itemid"
    """
    with store_errors("retrieving", "Items"):
        return await db.fetch_all(sql, compid)


async def get_item_details(itemid: int) -> dict[str, Any] | None:
    sql = """
        SELECT i."itemid", i."itemtype", i."itemname", i."sku", i."hsncode", h."codedesc", i."unitid",
               i."sellprice", i."currencycode", i."taxprefid", i."taxrate", i."isactive"
        FROM "Items" i
        LEFT JOIN "HSNSAC" h ON i."hsncode" = h."hsncode"
        WHERE i."itemid" = $1
    """
    with store_errors("retrieving", "Items"):
        return await db.fetch_one(sql, itemid)
