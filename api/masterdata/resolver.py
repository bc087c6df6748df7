"""
Natural-key resolution.

Matching policy: both the candidate and the stored value lose leading and
trailing spaces and are compared case-insensitively. Only the space character
is trimmed, as Postgres `trim()` does, so a tab or a non-breaking space stays
part of the key. Nothing else is normalized: "U S A" and "USA" differ.
"""

from __future__ import annotations

from typing import Any, Mapping

import asyncpg

from core.errors import ConflictAmbiguity, ValidationError

from . import repository
from .descriptors import TableDescriptor


def normalize_key(candidate: str | None) -> str:
    # Same rule as the lower(trim(...)) comparison in the repository.
    return (candidate or "").strip(" ")


def require_key(desc: TableDescriptor, candidate: str | None) -> str:
    if candidate is None or not isinstance(candidate, str) or not candidate.strip():
        raise ValidationError(f"{desc.key_column} is required.")
    return candidate


async def resolve(
    desc: TableDescriptor,
    candidate: str,
    *,
    scope: Mapping[str, Any] | None = None,
    conn: asyncpg.Connection | None = None,
) -> Any | None:
    """
    Surrogate id of the row matching `candidate`, or None.

    Raises `ConflictAmbiguity` when near-duplicates already exist in the table
    and `LookupFailed` when the query itself fails.
    """
    require_key(desc, candidate)
    ids = await repository.find_ids_by_natural_key(desc, candidate, scope=scope, conn=conn)
    if not ids:
        return None
    if len(ids) > 1:
        raise ConflictAmbiguity(desc.table, candidate, ids)
    return ids[0]
