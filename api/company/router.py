"""
FastAPI router for company profile endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response

from core import storage, uploads
from core.settings import Settings, get_settings

from . import schemas, service

router = APIRouter()


@router.get("/GetCompanyDetails/{compid}")
async def get_company_details(compid: int) -> dict:
    return await service.company_details(compid)


@router.get("/GetCompanyLogo/{compid}")
async def get_company_logo(
    compid: int,
    store: storage.LocalObjectStore = Depends(storage.get_object_store),
) -> Response:
    data, content_type = await service.company_logo(compid, store)
    return Response(content=data, media_type=content_type)


@router.put("/UpdComp")
async def update_company(
    request: Request,
    compid: int | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    store: storage.LocalObjectStore = Depends(storage.get_object_store),
) -> dict:
    """
    Multipart form: profile fields plus an optional `logo` image.
    """
    fields, files = await uploads.read_form(request)
    form = uploads.validate_form(schemas.CompanyProfileForm, fields)
    return await service.update_company(
        compid,
        form,
        files.get("logo"),
        settings=settings,
        store=store,
    )
