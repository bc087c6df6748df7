"""
User persistence helpers.

Inserts and plain updates of "Users" rows go through the shared
`masterdata.repository` functions with the USER descriptor; this module holds
the lookups and the statements specific to users.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import asyncpg

from core import db
from core.db import store_errors


async def find_user_by_email(email: str, *, conn: asyncpg.Connection | None = None) -> dict[str, Any] | None:
    with store_errors("looking up", "Users", lookup=True):
        return await db.fetch_one(
            """
            SELECT *
            FROM "Users"
            WHERE lower(trim("emailid")) = lower(trim($1))
            ORDER BY "userid"
            LIMIT 1
            """,
            email or "",
            conn=conn,
        )


async def find_user_by_mobile(mobileno: str, *, conn: asyncpg.Connection | None = None) -> dict[str, Any] | None:
    with store_errors("looking up", "Users", lookup=True):
        return await db.fetch_one(
            """
            SELECT *
            FROM "Users"
            WHERE lower(trim("mobileno")) = lower(trim($1))
            ORDER BY "userid"
            LIMIT 1
            """,
            mobileno or "",
            conn=conn,
        )


async def get_user(userid: int) -> dict[str, Any] | None:
    with store_errors("retrieving", "Users"):
        return await db.fetch_one('SELECT * FROM "Users" WHERE "userid" = $1', userid)


async def get_user_profile(userid: int) -> dict[str, Any] | None:
    with store_errors("retrieving", "Users"):
        return await db.fetch_one(
            """
            SELECT "userid", "company", "salid", "fullname", "emailid",
                   "emailverified" AS isemailverified, "mobileno",
                   "mobileverified" AS ismobileverified, "usertype", "picture"
            FROM "Users"
            WHERE "userid" = $1
            """,
            userid,
        )


async def get_header_details(userid: int) -> list[dict[str, Any]]:
    with store_errors("retrieving", "Users"):
        return await db.fetch_all(
            'SELECT "userid", "compid", "fullname", "usertype" FROM "Users" WHERE "userid" = $1',
            userid,
        )


async def get_company_admin(compid: int) -> dict[str, Any] | None:
    with store_errors("retrieving", "Users"):
        return await db.fetch_one(
            """
            SELECT "company", "location", "countryid"
            FROM "Users"
            WHERE "usertype" = $1 AND "compid" = $2
            ORDER BY "userid"
            LIMIT 1
            """,
            "A",
            compid,
        )


async def list_sub_users(compid: int) -> list[dict[str, Any]]:
    with store_errors("retrieving", "Users"):
        return await db.fetch_all(
            """
            SELECT "userid", "fullname", "emailid", "mobileno"
            FROM "Users"
            WHERE "usertype" = $1 AND "compid" = $2
            ORDER BY "userid"
            """,
            "U",
            compid,
        )


async def update_password(userid: int, password_hash: str) -> bool:
    with store_errors("updating", "Users"):
        row = await db.fetch_one(
            'UPDATE "Users" SET "password" = $1 WHERE "userid" = $2 RETURNING "userid"',
            password_hash,
            userid,
        )
    return row is not None


async def store_otp(userid: int, *, code_column: str, issued_column: str, code: str, issued_at: datetime) -> None:
    with store_errors("updating", "Users"):
        await db.execute(
            f'UPDATE "Users" SET {db.quote(code_column)} = $1, {db.quote(issued_column)} = $2 WHERE "userid" = $3',
            code,
            issued_at,
            userid,
        )


async def consume_otp(
    userid: int,
    *,
    code_column: str,
    issued_column: str,
    verified_column: str,
    last_verified_column: str,
    code: str,
    address: str | None,
) -> bool:
    """
    Mark the address verified and clear the code, but only while the stored
    code is still `code`. False means another request consumed it first.
    """
    with store_errors("updating", "Users"):
        row = await db.fetch_one(
            f"""
            UPDATE "Users"
            SET {db.quote(verified_column)} = $1,
                {db.quote(last_verified_column)} = $2,
                {db.quote(code_column)} = $3,
                {db.quote(issued_column)} = $4
            WHERE "userid" = $5 AND {db.quote(code_column)} = $6
            RETURNING "userid"
            """,
            True,
            address,
            None,
            None,
            userid,
            code,
        )
    return row is not None


async def get_country_isd_code(countryid: int | None) -> str | None:
    if countryid is None:
        return None
    with store_errors("retrieving", "Country"):
        row = await db.fetch_one('SELECT "isdcode" FROM "Country" WHERE "countryid" = $1', countryid)
    return row["isdcode"] if row is not None else None


async def upsert_user_role(values: dict[str, Any]) -> None:
    columns = list(values)
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    updates = ", ".join(f"{db.quote(c)} = EXCLUDED.{db.quote(c)}" for c in columns if c != "userid")
    with store_errors("saving", "UserRole"):
        await db.execute(
            f"""
            INSERT INTO "UserRole" ({", ".join(db.quote(c) for c in columns)})
            VALUES ({placeholders})
            ON CONFLICT ("userid") DO UPDATE SET {updates}
            """,
            *values.values(),
        )
