"""
Company persistence helpers.
"""

from __future__ import annotations

from typing import Any, Mapping

import asyncpg

from core import db
from core.db import store_errors

PROFILE_COLUMNS = (
    "compname",
    "isgstreg",
    "gstno",
    "indtypeid",
    "bustypeid",
    "countryid",
    "stateid",
    "street1",
    "street2",
    "city",
    "pincode",
    "phone",
    "email",
    "website",
    "fiscal",
    "language",
    "dateformatid",
    "panno",
)


async def get_company(compid: int) -> dict[str, Any] | None:
    columns = ", ".join(db.quote(c) for c in ("compid", *PROFILE_COLUMNS, "logofile"))
    with store_errors("retrieving", "Company"):
        return await db.fetch_one(f'SELECT {columns} FROM "Company" WHERE "compid" = $1', compid)


async def insert_company(values: Mapping[str, Any], *, conn: asyncpg.Connection | None = None) -> int:
    columns = list(values)
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    sql = (
        f'INSERT INTO "Company" ({", ".join(db.quote(c) for c in columns)}) '
        f'VALUES ({placeholders}) RETURNING "compid"'
    )
    with store_errors("creating", "Company"):
        row = await db.fetch_one(sql, *values.values(), conn=conn)
    if row is None:
        raise RuntimeError("Failed to create company.")
    return int(row["compid"])


async def update_company(compid: int, values: Mapping[str, Any]) -> int | None:
    columns = list(values)
    assignments = ", ".join(f"{db.quote(col)} = ${i}" for i, col in enumerate(columns, start=1))
    sql = f'UPDATE "Company" SET {assignments} WHERE "compid" = ${len(columns) + 1} RETURNING "compid"'
    with store_errors("updating", "Company"):
        row = await db.fetch_one(sql, *values.values(), compid)
    return int(row["compid"]) if row is not None else None
