"""
Upsert engine: decides INSERT vs UPDATE for one natural-keyed row.

Decision order:
1. A row whose normalized natural key matches wins. Its attribute columns are
   overwritten; the key column is rewritten only as the descriptor's
   `key_on_match` policy says. A supplied surrogate id is ignored here.
2. Otherwise a supplied surrogate id (> 0) of an existing row is updated,
   natural key included. This is the only way to rename a key.
3. Otherwise a new row is inserted with the key exactly as supplied.

Every successful branch writes exactly one audit entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

import asyncpg

from core import audit
from core.errors import PersistenceError, ValidationError

from . import repository, resolver
from .descriptors import KeyOnMatch, TableDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """
    Who is making the change, for the audit log.
    """

    userid: int | None = None
    compid: int | None = 0
    isweb: bool = True


@dataclass(frozen=True)
class UpsertRequest:
    key: str | None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    identifier: Any = None
    scope: Mapping[str, Any] = field(default_factory=dict)
    # Written on INSERT only (e.g. a password hash).
    insert_only: Mapping[str, Any] = field(default_factory=dict)


class Outcome(str, Enum):
    MATCHED_KEY = "matched_key"
    MATCHED_ID = "matched_id"
    CREATED = "created"


@dataclass(frozen=True)
class UpsertResult:
    id: Any
    outcome: Outcome

    @property
    def created(self) -> bool:
        return self.outcome is Outcome.CREATED


def _has_identifier(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _attribute_values(desc: TableDescriptor, request: UpsertRequest) -> dict[str, Any]:
    unknown = set(request.attributes) - set(desc.columns)
    if unknown:
        raise ValueError(f"{desc.table} has no attribute columns {sorted(unknown)}")
    # Saves replace every attribute; anything not supplied becomes NULL.
    return {col: request.attributes.get(col) for col in desc.columns}


def _scope_values(desc: TableDescriptor, request: UpsertRequest) -> dict[str, Any]:
    missing = [col for col in desc.scope_columns if request.scope.get(col) is None]
    if missing:
        raise ValidationError(f"{', '.join(missing)} is required.")
    return {col: request.scope[col] for col in desc.scope_columns}


async def upsert(
    desc: TableDescriptor,
    request: UpsertRequest,
    *,
    actor: Actor | None = None,
    conn: asyncpg.Connection | None = None,
) -> UpsertResult:
    actor = actor or Actor()
    key = resolver.require_key(desc, request.key)
    attributes = _attribute_values(desc, request)
    scope = _scope_values(desc, request)

    matched = await resolver.resolve(desc, key, scope=scope, conn=conn)
    if matched is not None:
        values = dict(attributes)
        if desc.key_on_match is KeyOnMatch.TRIMMED:
            values[desc.key_column] = resolver.normalize_key(key)
        elif desc.key_on_match is KeyOnMatch.RAW:
            values[desc.key_column] = key
        row_id = await _update(desc, matched, values, conn=conn)
        await _record(actor, f"Updated {desc.entity} - {key}", conn=conn)
        logger.info("upsert_updated table=%s id=%s via=key", desc.table, row_id)
        return UpsertResult(row_id, Outcome.MATCHED_KEY)

    if _has_identifier(request.identifier) and await repository.id_exists(desc, request.identifier, conn=conn):
        values = {desc.key_column: key, **attributes}
        row_id = await _update(desc, request.identifier, values, conn=conn)
        await _record(actor, f"Updated {desc.entity} - {request.identifier}", conn=conn)
        logger.info("upsert_updated table=%s id=%s via=id", desc.table, row_id)
        return UpsertResult(row_id, Outcome.MATCHED_ID)

    values = {desc.key_column: key, **scope, **attributes, **request.insert_only}
    row_id = await repository.insert_row(desc, values, conn=conn)
    await _record(actor, f"Created {desc.entity} - {key}", conn=conn)
    logger.info("upsert_created table=%s id=%s", desc.table, row_id)
    return UpsertResult(row_id, Outcome.CREATED)


async def _update(
    desc: TableDescriptor,
    identifier: Any,
    values: dict[str, Any],
    *,
    conn: asyncpg.Connection | None,
) -> Any:
    row_id = await repository.update_row(desc, identifier, values, conn=conn)
    if row_id is None:
        # Deleted by another request between the existence check and the update.
        raise PersistenceError(f"{desc.table} row {identifier} no longer exists.")
    return row_id


async def _record(actor: Actor, action: str, *, conn: asyncpg.Connection | None) -> None:
    await audit.write_user_log(actor.userid, action, actor.compid, actor.isweb, conn=conn)
