"""
Reference-data business logic.

Saves go through the upsert engine, bulk uploads through the bulk importer.
Reads and deletes are plain by-id lookups with 404 semantics.
"""

from __future__ import annotations

import itertools
from typing import Any

from fastapi import UploadFile

from core import uploads
from core.errors import NotFoundError, ValidationError
from core.settings import Settings

from . import bulk, engine, repository, schemas
from .bulk import BulkSpec, CrossReference, ImportMode, ImportReport
from .descriptors import (
    BASE_CURRENCY,
    BUSINESS_TYPE,
    COMPANY_CURRENCY,
    COUNTRY,
    GST_TREATMENT,
    HSN_CODE,
    INDUSTRY_TYPE,
    LANGUAGE,
    STATE,
    TableDescriptor,
)

BULK_SPECS: dict[str, BulkSpec] = {
    spec.descriptor.table: spec
    for spec in (
        BulkSpec(
            descriptor=COUNTRY,
            row_model=schemas.CountryRow,
            mode=ImportMode.TRANSACTIONAL,
            label="Countries",
            references=(CrossReference(field="defcurcode", target=BASE_CURRENCY),),
        ),
        BulkSpec(
            descriptor=STATE,
            row_model=schemas.StateRow,
            mode=ImportMode.INDEPENDENT,
            label="States",
            references=(CrossReference(field="countryname", target=COUNTRY, writes="countryid"),),
        ),
        BulkSpec(BASE_CURRENCY, schemas.BaseCurrencyRow, ImportMode.INDEPENDENT, "Currencies"),
        BulkSpec(HSN_CODE, schemas.HSNCodeRow, ImportMode.INDEPENDENT, "HSN/SAC Codes"),
        BulkSpec(BUSINESS_TYPE, schemas.BusinessTypeRow, ImportMode.INDEPENDENT, "Business Types"),
        BulkSpec(INDUSTRY_TYPE, schemas.IndustryTypeRow, ImportMode.INDEPENDENT, "Industry Types"),
        BulkSpec(LANGUAGE, schemas.LanguageRow, ImportMode.INDEPENDENT, "Languages"),
        BulkSpec(GST_TREATMENT, schemas.GSTTreatmentRow, ImportMode.INDEPENDENT, "GST Treatments"),
    )
}


def actor_for(payload: schemas.SaveRequest) -> engine.Actor:
    return engine.Actor(userid=payload.userid, compid=payload.compid, isweb=payload.isweb)


async def save(desc: TableDescriptor, payload: schemas.SaveRequest) -> engine.UpsertResult:
    data = payload.model_dump()
    request = engine.UpsertRequest(
        key=data.get(desc.key_column),
        attributes={col: data.get(col) for col in desc.columns},
        identifier=data.get(desc.id_column),
        scope={col: data.get(col) for col in desc.scope_columns},
    )
    return await engine.upsert(desc, request, actor=actor_for(payload))


async def get_one(desc: TableDescriptor, identifier: int) -> dict[str, Any]:
    row = await repository.get_row(desc, identifier)
    if row is None:
        raise NotFoundError(f"{desc.entity} not found")
    return row


async def list_all(desc: TableDescriptor, **filters: Any) -> list[dict[str, Any]]:
    filters = {k: v for k, v in filters.items() if v is not None}
    return await repository.list_rows(desc, filters=filters)


async def delete(desc: TableDescriptor, identifier: int) -> None:
    if not await repository.delete_row(desc, identifier):
        raise NotFoundError(f"{desc.entity} not found")


async def states_with_country() -> list[dict[str, Any]]:
    return await repository.list_states_with_country()


async def selectable_hsn_codes(isservice: bool) -> list[dict[str, Any]]:
    return await repository.list_selectable_hsn_codes(isservice=isservice)


async def search_hsn_codes(isservice: bool, fragment: str | None) -> list[dict[str, Any]]:
    return await repository.search_hsn_codes(isservice=isservice, fragment=fragment or "")


async def items_of_company(compid: int | None) -> list[dict[str, Any]]:
    if not compid:
        raise ValidationError("Invalid request or missing parameters")
    return await repository.list_items(compid=compid)


async def item_details(itemid: int | None) -> dict[str, Any]:
    if not itemid:
        raise ValidationError("Invalid request or missing parameters")
    row = await repository.get_item_details(itemid)
    if row is None:
        raise NotFoundError("Item not found")
    return row


def _required_code(currencycode: str | None) -> str:
    code = (currencycode or "").strip()
    if not code:
        raise ValidationError("Invalid request or missing parameters")
    return code


async def base_currency_by_code(currencycode: str | None) -> dict[str, Any]:
    row = await repository.find_row_by_natural_key(BASE_CURRENCY, _required_code(currencycode))
    if row is None:
        raise NotFoundError("Currency code not found")
    return row


async def company_currency_by_code(currencycode: str | None, compid: int | None) -> dict[str, Any]:
    scope = {"compid": compid} if compid is not None else None
    row = await repository.find_row_by_natural_key(COMPANY_CURRENCY, _required_code(currencycode), scope=scope)
    if row is None:
        raise NotFoundError("Currency not found")
    return row


async def currency_details(currencycode: str | None, compid: int | None) -> dict[str, Any]:
    """
    A company's own currency row when it has one, the base currency otherwise.
    """
    code = _required_code(currencycode)
    scope = {"compid": compid} if compid is not None else None
    row = await repository.find_row_by_natural_key(COMPANY_CURRENCY, code, scope=scope)
    if row is None:
        row = await repository.find_row_by_natural_key(BASE_CURRENCY, code)
    if row is None:
        raise NotFoundError("Currency code not found in both tables")
    return {col: row.get(col) for col in ("currencycode", "symbol", "currencyname", "dec", "format")}


async def import_upload(
    spec: BulkSpec,
    file: UploadFile | None,
    settings: Settings,
    *,
    actor: engine.Actor,
) -> ImportReport:
    if file is None:
        raise ValidationError("CSV file not provided")

    data = await uploads.read_upload_bytes(file, settings.max_upload_bytes)
    text = uploads.decode_csv(data)
    rows = list(itertools.islice(bulk.parse_csv(text, spec.required_columns), settings.bulk_max_rows + 1))
    if len(rows) > settings.bulk_max_rows:
        raise ValidationError(f"Too many rows. Max is {settings.bulk_max_rows}.")
    return await bulk.import_batch(spec, rows, actor=actor)
