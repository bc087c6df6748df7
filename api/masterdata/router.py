"""
FastAPI router for reference-data endpoints.

Every entity gets the same route set (save, list, get, delete and, where the
entity supports it, bulk upload), generated from `ENTITIES`. Lookups that only
some entities have are declared by hand below.

Route handlers are built inside `_register`, so annotations here must stay
real objects (no postponed evaluation) for FastAPI to see the body models.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from fastapi.responses import JSONResponse

from core.settings import Settings, get_settings

from . import descriptors, engine, schemas, service
from .descriptors import TableDescriptor

router = APIRouter()


@dataclass(frozen=True)
class EntityRoutes:
    descriptor: TableDescriptor
    save_model: type
    save_path: str
    get_path: str
    delete_path: str
    list_path: Optional[str] = None
    bulk_path: Optional[str] = None


ENTITIES: tuple[EntityRoutes, ...] = (
    EntityRoutes(
        descriptors.COUNTRY,
        schemas.CountrySave,
        save_path="SaveCountry",
        get_path="countries",
        delete_path="countries",
        list_path="GetCountries",
        bulk_path="SaveBulkCountries",
    ),
    EntityRoutes(
        descriptors.STATE,
        schemas.StateSave,
        save_path="SaveState",
        get_path="state",
        delete_path="states",
        bulk_path="SaveBulkStates",
    ),
    EntityRoutes(
        descriptors.BASE_CURRENCY,
        schemas.BaseCurrencySave,
        save_path="SaveBaseCur",
        get_path="basecurrencies",
        delete_path="basecurrencies",
        list_path="GetDefCur",
        bulk_path="SaveBulkBaseCur",
    ),
    EntityRoutes(
        descriptors.COMPANY_CURRENCY,
        schemas.CurrencySave,
        save_path="SaveCurDetails",
        get_path="currencies",
        delete_path="currencies",
    ),
    EntityRoutes(
        descriptors.HSN_CODE,
        schemas.HSNCodeSave,
        save_path="SaveHSNCode",
        get_path="hsncodes",
        delete_path="hsncodes",
        list_path="GetAllHSNCodes",
        bulk_path="SaveBulkHSNCode",
    ),
    EntityRoutes(
        descriptors.BUSINESS_TYPE,
        schemas.BusinessTypeSave,
        save_path="SaveBusinessType",
        get_path="business-types",
        delete_path="business-types",
        list_path="GetBusinessType",
        bulk_path="SaveBulkBusType",
    ),
    EntityRoutes(
        descriptors.INDUSTRY_TYPE,
        schemas.IndustryTypeSave,
        save_path="SaveIndustryType",
        get_path="industry-types",
        delete_path="industry-types",
        list_path="GetIndustryType",
        bulk_path="SaveBulkIndType",
    ),
    EntityRoutes(
        descriptors.LANGUAGE,
        schemas.LanguageSave,
        save_path="SaveLanguage",
        get_path="languages",
        delete_path="languages",
        list_path="GetLang",
        bulk_path="SaveBulkLang",
    ),
    EntityRoutes(
        descriptors.DATE_FORMAT,
        schemas.DateFormatSave,
        save_path="SaveDateFormat",
        get_path="GetADateFormat",
        delete_path="dateFormats",
        list_path="GetDateFormat",
    ),
    EntityRoutes(
        descriptors.SALUTATION,
        schemas.SalutationSave,
        save_path="SaveSalutation",
        get_path="GetASalutation",
        delete_path="salutations",
        list_path="GetSalutation",
    ),
    EntityRoutes(
        descriptors.GST_TREATMENT,
        schemas.GSTTreatmentSave,
        save_path="SaveGSTTreatment",
        get_path="GetAGSTTreatment",
        delete_path="gsttreatments",
        list_path="GetGSTTreatment",
        bulk_path="SaveBulkGSTTreat",
    ),
    EntityRoutes(
        descriptors.ITEM,
        schemas.ItemSave,
        save_path="SaveItem",
        get_path="items",
        delete_path="items",
    ),
    EntityRoutes(
        descriptors.FISCAL_YEAR,
        schemas.FiscalYearSave,
        save_path="SaveFiscalYear",
        get_path="fiscalyears",
        delete_path="fiscalyears",
        list_path="GetFisYear",
    ),
)


def _register(entity: EntityRoutes) -> None:
    desc = entity.descriptor
    body_model = entity.save_model
    name = desc.table.lower()

    async def save_entity(payload: body_model) -> JSONResponse:
        result = await service.save(desc, payload)
        code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        return JSONResponse(status_code=code, content={desc.id_column: result.id})

    async def get_entity(item_id: int) -> dict:
        return await service.get_one(desc, item_id)

    async def delete_entity(item_id: int) -> Response:
        await service.delete(desc, item_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    router.add_api_route(f"/{entity.save_path}", save_entity, methods=["POST"], name=f"save_{name}")
    router.add_api_route(f"/{entity.get_path}/{{item_id}}", get_entity, methods=["GET"], name=f"get_{name}")
    router.add_api_route(
        f"/{entity.delete_path}/{{item_id}}",
        delete_entity,
        methods=["DELETE"],
        status_code=status.HTTP_204_NO_CONTENT,
        name=f"delete_{name}",
    )

    if entity.list_path:

        async def list_entities() -> list:
            return await service.list_all(desc)

        router.add_api_route(f"/{entity.list_path}", list_entities, methods=["GET"], name=f"list_{name}")

    if entity.bulk_path:
        spec = service.BULK_SPECS[desc.table]

        async def bulk_import(
            csv_file: Optional[UploadFile] = File(default=None, alias="csvFile"),
            userid: Optional[int] = Form(default=None),
            isweb: bool = Form(default=True),
            settings: Settings = Depends(get_settings),
        ) -> dict:
            actor = engine.Actor(userid=userid, isweb=isweb)
            report = await service.import_upload(spec, csv_file, settings, actor=actor)
            return report.as_dict(spec.label)

        router.add_api_route(f"/{entity.bulk_path}", bulk_import, methods=["POST", "PUT"], name=f"bulk_{name}")


for _entity in ENTITIES:
    _register(_entity)


@router.get("/GetAllStates")
async def get_all_states() -> list:
    return await service.states_with_country()


@router.get("/GetStates/{countryid}")
async def get_states(countryid: int) -> list:
    return await service.list_all(descriptors.STATE, countryid=countryid)


@router.get("/GetHSNCodes")
async def get_hsn_codes(isservice: bool = Query(default=False)) -> list:
    return await service.selectable_hsn_codes(isservice)


@router.get("/GetHSNCodePart")
async def get_hsn_code_part(
    isservice: bool = Query(default=False),
    hsncode: str = Query(default="", max_length=50),
) -> list:
    return await service.search_hsn_codes(isservice, hsncode)


@router.get("/GetDefCurDet")
async def get_default_currency_details(currencycode: Optional[str] = Query(default=None)) -> dict:
    return await service.base_currency_by_code(currencycode)


@router.get("/GetCurDet")
async def get_currency_details(
    currencycode: Optional[str] = Query(default=None),
    compid: Optional[int] = Query(default=None),
) -> dict:
    return await service.currency_details(currencycode, compid)


@router.get("/GetCurrency")
async def get_currencies(compid: Optional[int] = Query(default=None)) -> list:
    return await service.list_all(descriptors.COMPANY_CURRENCY, compid=compid)


@router.get("/GetCurDetails/{currencycode}")
async def get_company_currency(currencycode: str, compid: Optional[int] = Query(default=None)) -> dict:
    return await service.company_currency_by_code(currencycode, compid)


@router.get("/GetItemList")
async def get_item_list(compid: Optional[int] = Query(default=None)) -> list:
    return await service.items_of_company(compid)


@router.get("/GetItemDetails")
async def get_item_details(itemid: Optional[int] = Query(default=None)) -> dict:
    return await service.item_details(itemid)
