"""
Audit-log sink.

One terse line per mutating call, appended to "Userlog". Rows are written but
never read back by the API.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import asyncpg

from . import db
from .errors import PersistenceError

logger = logging.getLogger(__name__)


async def write_user_log(
    userid: int | None,
    action: str,
    compid: int | None = 0,
    isweb: bool = True,
    *,
    conn: asyncpg.Connection | None = None,
) -> None:
    now = datetime.now(timezone.utc)
    try:
        await db.execute(
            """
            INSERT INTO "Userlog" (userid, logdate, logtime, logaction, compid, isweb)
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            userid,
            now.date(),
            now.time().replace(microsecond=0, tzinfo=None),
            action,
            compid or 0,
            isweb,
            conn=conn,
        )
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        logger.exception("audit_write_failed userid=%s action=%s", userid, action)
        raise PersistenceError("Failed to write audit log.") from exc
