"""
Company profile business logic.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import UploadFile

from core import audit, storage
from core.errors import NotFoundError, ValidationError
from core.settings import Settings

from . import repository, schemas

logger = logging.getLogger(__name__)

DEFAULT_LOGO = "demologo.jpg"


async def _require_company(compid: int) -> dict[str, Any]:
    row = await repository.get_company(compid)
    if row is None:
        raise NotFoundError("Company not found")
    return row


async def company_details(compid: int) -> dict[str, Any]:
    return await _require_company(compid)


async def company_logo(compid: int, store: storage.LocalObjectStore) -> tuple[bytes, str]:
    row = await _require_company(compid)
    return await storage.get_with_fallback(store, row.get("logofile"), DEFAULT_LOGO)


async def update_company(
    compid: int | None,
    form: schemas.CompanyProfileForm,
    logo: UploadFile | None,
    *,
    settings: Settings,
    store: storage.LocalObjectStore,
) -> dict[str, str]:
    if not compid or not (form.compname or "").strip():
        raise ValidationError("Invalid request or missing parameters")

    await _require_company(compid)

    values: dict[str, Any] = {col: getattr(form, col) for col in repository.PROFILE_COLUMNS}
    if logo is not None:
        values["logofile"] = await storage.save_thumbnail(
            store,
            logo,
            key_stem=f"CL{compid}",
            size=settings.thumbnail_size,
            max_bytes=settings.max_upload_bytes,
        )
    values["updon"] = datetime.now(timezone.utc)

    if await repository.update_company(compid, values) is None:
        raise NotFoundError("Company not found")

    await audit.write_user_log(form.userid, f"Updated Company - {form.compname}", compid, form.isweb)
    logger.info("company_updated compid=%s logo=%s", compid, "logofile" in values)
    return {"message": "Company details updated successfully"}
