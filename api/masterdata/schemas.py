"""
Pydantic schemas for reference-data endpoints.

Two families:
- `*Save` request bodies for the Save<Entity> endpoints
- `*Row` typed records for bulk CSV rows (one per CSV data row)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, field_validator


class SaveRequest(BaseModel):
    """
    Fields every save body may carry for the audit log.
    """

    userid: int | None = None
    isweb: bool = True
    compid: int | None = 0


class CountrySave(SaveRequest):
    countryid: int | None = None
    countryname: str | None = None
    defcurcode: str | None = None
    isdcode: str | None = None


class StateSave(SaveRequest):
    stateid: int | None = None
    statename: str | None = None
    countryid: int | None = None


class _CurrencyFields(SaveRequest):
    currencycode: str | None = None
    symbol: str | None = None
    currencyname: str | None = None
    dec: int | None = None
    format: str | None = None


class BaseCurrencySave(_CurrencyFields):
    currencyid: int | None = None


class CurrencySave(_CurrencyFields):
    curid: int | None = None


class HSNCodeSave(SaveRequest):
    hsnid: int | None = None
    hsncode: str | None = None
    codedesc: str | None = None
    isselectable: bool | None = None
    isservice: bool | None = None


class BusinessTypeSave(SaveRequest):
    bustypeid: int | None = None
    bustype: str | None = None


class IndustryTypeSave(SaveRequest):
    indtypeid: int | None = None
    indtype: str | None = None


class LanguageSave(SaveRequest):
    langid: int | None = None
    langcode: str | None = None
    language: str | None = None


class DateFormatSave(SaveRequest):
    dateformatid: int | None = None
    dateformat: str | None = None
    monfmt: str | None = None
    daypos: int | None = None
    monpos: int | None = None
    yearpos: int | None = None
    yearfmt: str | None = None


class SalutationSave(SaveRequest):
    salid: int | None = None
    salutation: str | None = None
    gender: str | None = None


class GSTTreatmentSave(SaveRequest):
    gsttreatmentid: int | None = None
    gsttreatment: str | None = None
    reqgstno: bool | None = None
    reqsupplace: bool | None = None


class ItemSave(SaveRequest):
    # Items belong to a company, so there is no fallback to company 0.
    compid: int | None = None
    itemid: int | None = None
    itemname: str | None = None
    itemtype: str | None = None
    sku: str | None = None
    hsncode: str | None = None
    unitid: int | None = None
    sellprice: Decimal | None = None
    currencycode: str | None = None
    taxprefid: int | None = None
    taxrate: Decimal | None = None
    isactive: bool | None = None


class FiscalYearSave(SaveRequest):
    fiscalid: int | None = None
    fiscalyear: str | None = None
    startmonth: int | None = None


class CsvRow(BaseModel):
    # Spreadsheet exports leave empty cells as "", which means "no value".
    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CountryRow(CsvRow):
    countryname: str
    defcurcode: str
    isdcode: str | None = None


class StateRow(CsvRow):
    statename: str
    countryname: str


class BaseCurrencyRow(CsvRow):
    currencycode: str
    symbol: str | None = None
    currencyname: str | None = None
    dec: int | None = None
    format: str | None = None


class HSNCodeRow(CsvRow):
    hsncode: str
    codedesc: str | None = None
    isselectable: bool | None = None
    isservice: bool | None = None


class BusinessTypeRow(CsvRow):
    bustype: str


class IndustryTypeRow(CsvRow):
    indtype: str


class LanguageRow(CsvRow):
    langcode: str
    language: str | None = None


class GSTTreatmentRow(CsvRow):
    gsttreatment: str
    reqgstno: bool | None = None
    reqsupplace: bool | None = None
