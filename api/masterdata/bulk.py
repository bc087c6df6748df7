"""
Bulk CSV import.

Flow:
- `parse_csv` checks the header row eagerly and then yields raw rows lazily
- each raw row becomes a typed pydantic row record
- cross-references (e.g. a state's country name) are resolved to ids
- the upsert engine is applied once per row

Two modes:
- TRANSACTIONAL: one transaction for the whole batch; any failing row (malformed
  rows included) rolls everything back and nothing is committed.
- INDEPENDENT: every row commits on its own. Malformed rows are recorded as
  skipped and processing continues; any other failure stops the batch, and rows
  committed before it stay committed.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator

import asyncpg
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core import db
from core.errors import ImportRowError, MasterDataError, NotFoundError, ValidationError

from . import engine, resolver
from .descriptors import TableDescriptor

logger = logging.getLogger(__name__)


class ImportMode(str, Enum):
    TRANSACTIONAL = "transactional"
    INDEPENDENT = "independent"


@dataclass(frozen=True)
class CrossReference:
    """
    A CSV column naming a row of another table by its natural key.

    `writes` is the attribute column that receives the resolved id; leave it
    unset when the column only has to point at an existing row. `on_missing`
    is "fail" (the row fails) or "zero" (the id becomes 0).
    """

    field: str
    target: TableDescriptor
    writes: str | None = None
    on_missing: str = "fail"

    def __post_init__(self) -> None:
        if self.on_missing not in ("fail", "zero"):
            raise ValueError(f"on_missing must be 'fail' or 'zero', got {self.on_missing!r}")


@dataclass(frozen=True)
class BulkSpec:
    descriptor: TableDescriptor
    row_model: type[BaseModel]
    mode: ImportMode
    label: str
    references: tuple[CrossReference, ...] = ()

    @property
    def required_columns(self) -> tuple[str, ...]:
        return tuple(self.row_model.model_fields)


@dataclass(frozen=True)
class RawRow:
    number: int
    values: dict[str, str | None]
    malformed: str | None = None


@dataclass
class ImportReport:
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: list[dict[str, Any]] = field(default_factory=list)

    @property
    def committed(self) -> int:
        return self.created + self.updated

    def as_dict(self, label: str) -> dict[str, Any]:
        return {
            "message": f"{label} saved or updated successfully",
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": list(self.skipped),
        }


def parse_csv(text: str, required_columns: Iterable[str]) -> Iterator[RawRow]:
    """
    Check the header now, then return a lazy iterator over the data rows.

    Row numbers count data rows from 1 (the header is not a row). Rows with
    more or fewer cells than the header come back flagged as malformed.
    """
    reader = csv.DictReader(io.StringIO(text, newline=""))
    try:
        header = [(name or "").strip() for name in (reader.fieldnames or [])]
    except csv.Error as exc:
        raise ValidationError(f"Malformed CSV: {exc}") from exc
    if not header:
        raise ValidationError("CSV file is empty.")

    missing = [col for col in required_columns if col not in header]
    if missing:
        raise ValidationError(f"CSV is missing required columns: {', '.join(missing)}")
    reader.fieldnames = header

    return _rows(reader)


def _rows(reader: csv.DictReader) -> Iterator[RawRow]:
    records = enumerate(reader, start=1)
    while True:
        try:
            number, record = next(records)
        except StopIteration:
            return
        except csv.Error as exc:
            # csv cannot resume past a parse error.
            raise ValidationError(f"Malformed CSV: {exc}") from exc
        malformed = None
        if None in record:
            malformed = "Row has more cells than the header."
            record.pop(None)
        elif any(value is None for value in record.values()):
            malformed = "Row has fewer cells than the header."
        yield RawRow(number=number, values=dict(record), malformed=malformed)


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def typed_row(spec: BulkSpec, raw: RawRow) -> BaseModel:
    if raw.malformed:
        raise ValidationError(raw.malformed)
    try:
        return spec.row_model.model_validate(raw.values)
    except PydanticValidationError as exc:
        raise ValidationError(_describe(exc)) from exc


async def _resolve_references(
    spec: BulkSpec,
    record: BaseModel,
    *,
    conn: asyncpg.Connection,
) -> dict[str, Any]:
    resolved: dict[str, Any] = {}
    for ref in spec.references:
        candidate = getattr(record, ref.field)
        ref_id = None
        if candidate is not None and candidate.strip():
            ref_id = await resolver.resolve(ref.target, candidate, conn=conn)
        if ref_id is None:
            if ref.on_missing == "fail":
                raise NotFoundError(f"{ref.target.entity} '{candidate or ''}' not found.")
            ref_id = 0
        if ref.writes:
            resolved[ref.writes] = ref_id
    return resolved


async def _apply(
    spec: BulkSpec,
    record: BaseModel,
    report: ImportReport,
    *,
    actor: engine.Actor,
    conn: asyncpg.Connection,
) -> None:
    desc = spec.descriptor
    values = record.model_dump()
    attributes = {col: values[col] for col in desc.columns if col in values}
    attributes.update(await _resolve_references(spec, record, conn=conn))

    result = await engine.upsert(
        desc,
        engine.UpsertRequest(key=values.get(desc.key_column), attributes=attributes),
        actor=actor,
        conn=conn,
    )
    report.processed += 1
    if result.created:
        report.created += 1
    else:
        report.updated += 1


def _row_error(spec: BulkSpec, raw: RawRow, exc: MasterDataError, committed: int) -> ImportRowError:
    key = raw.values.get(spec.descriptor.key_column)
    logger.warning(
        "bulk_import_failed table=%s row=%s committed=%s error=%s",
        spec.descriptor.table,
        raw.number,
        committed,
        exc.message,
    )
    return ImportRowError(row=raw.number, key=key, reason=exc.message, committed=committed, cause=exc)


async def _import_transactional(spec: BulkSpec, rows: Iterable[RawRow], actor: engine.Actor) -> ImportReport:
    report = ImportReport()
    async with db.transaction() as conn:
        for raw in rows:
            try:
                record = typed_row(spec, raw)
                await _apply(spec, record, report, actor=actor, conn=conn)
            except MasterDataError as exc:
                # Raising out of the transaction block rolls back every row.
                raise _row_error(spec, raw, exc, committed=0) from exc
    return report


async def _import_independent(spec: BulkSpec, rows: Iterable[RawRow], actor: engine.Actor) -> ImportReport:
    report = ImportReport()
    for raw in rows:
        try:
            record = typed_row(spec, raw)
        except ValidationError as exc:
            report.skipped.append({"row": raw.number, "error": exc.message})
            continue

        try:
            # One transaction per row keeps a row and its audit entry together.
            async with db.transaction() as conn:
                await _apply(spec, record, report, actor=actor, conn=conn)
        except MasterDataError as exc:
            raise _row_error(spec, raw, exc, committed=report.committed) from exc
    return report


async def import_batch(
    spec: BulkSpec,
    rows: Iterable[RawRow],
    *,
    actor: engine.Actor | None = None,
) -> ImportReport:
    actor = actor or engine.Actor()
    if spec.mode is ImportMode.TRANSACTIONAL:
        report = await _import_transactional(spec, rows, actor)
    else:
        report = await _import_independent(spec, rows, actor)

    logger.info(
        "bulk_import_done table=%s mode=%s processed=%s created=%s updated=%s skipped=%s",
        spec.descriptor.table,
        spec.mode.value,
        report.processed,
        report.created,
        report.updated,
        len(report.skipped),
    )
    return report
