"""
Company profile schemas.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator


class CompanyProfileForm(BaseModel):
    """
    Multipart form fields of `PUT /api/UpdComp`.
    """

    compname: str | None = None
    isgstreg: bool | None = None
    gstno: str | None = None
    indtypeid: int | None = None
    bustypeid: int | None = None
    countryid: int | None = None
    stateid: int | None = None
    street1: str | None = None
    street2: str | None = None
    city: str | None = None
    pincode: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    fiscal: str | None = None
    language: str | None = None
    dateformatid: int | None = None
    panno: str | None = None
    userid: int | None = None
    isweb: bool = True

    # Browsers submit untouched inputs as "".
    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value
