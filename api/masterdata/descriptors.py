"""
Table descriptors for every natural-keyed table the API reconciles.

A descriptor names the table, its surrogate id column, its natural-key column
and the attribute columns a save writes. The resolver, upsert engine and bulk
importer work purely from these.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class KeyOnMatch(str, Enum):
    """
    What happens to the stored natural key when a save matches by natural key.
    """

    KEEP = "keep"
    TRIMMED = "trimmed"
    RAW = "raw"


@dataclass(frozen=True)
class TableDescriptor:
    entity: str
    table: str
    id_column: str
    key_column: str
    columns: tuple[str, ...] = ()
    scope_columns: tuple[str, ...] = ()
    key_on_match: KeyOnMatch = KeyOnMatch.KEEP

    def __post_init__(self) -> None:
        overlap = set(self.columns) & ({self.id_column, self.key_column} | set(self.scope_columns))
        if overlap:
            raise ValueError(f"{self.table}: attribute columns overlap key columns: {sorted(overlap)}")


COUNTRY = TableDescriptor(
    entity="Country",
    table="Country",
    id_column="countryid",
    key_column="countryname",
    columns=("defcurcode", "isdcode"),
    key_on_match=KeyOnMatch.TRIMMED,
)

STATE = TableDescriptor(
    entity="State",
    table="States",
    id_column="stateid",
    key_column="statename",
    columns=("countryid",),
    key_on_match=KeyOnMatch.RAW,
)

BASE_CURRENCY = TableDescriptor(
    entity="Base Currency",
    table="CurrencyBase",
    id_column="currencyid",
    key_column="currencycode",
    columns=("symbol", "currencyname", "dec", "format"),
    key_on_match=KeyOnMatch.RAW,
)

COMPANY_CURRENCY = TableDescriptor(
    entity="Currency",
    table="Currency",
    id_column="curid",
    key_column="currencycode",
    columns=("symbol", "currencyname", "dec", "format", "userid"),
    scope_columns=("compid",),
    key_on_match=KeyOnMatch.RAW,
)

HSN_CODE = TableDescriptor(
    entity="HSN Code",
    table="HSNSAC",
    id_column="hsnid",
    key_column="hsncode",
    columns=("codedesc", "isselectable", "isservice"),
)

BUSINESS_TYPE = TableDescriptor(
    entity="Business Type",
    table="BusinessType",
    id_column="bustypeid",
    key_column="bustype",
    key_on_match=KeyOnMatch.RAW,
)

INDUSTRY_TYPE = TableDescriptor(
    entity="Industry Type",
    table="IndustryType",
    id_column="indtypeid",
    key_column="indtype",
    key_on_match=KeyOnMatch.RAW,
)

LANGUAGE = TableDescriptor(
    entity="Language",
    table="Language",
    id_column="langid",
    key_column="langcode",
    columns=("language",),
)

DATE_FORMAT = TableDescriptor(
    entity="Date Format",
    table="DateFormat",
    id_column="dateformatid",
    key_column="dateformat",
    columns=("monfmt", "daypos", "monpos", "yearpos", "yearfmt"),
)

SALUTATION = TableDescriptor(
    entity="Salutation",
    table="Salutation",
    id_column="salid",
    key_column="salutation",
    columns=("gender",),
    key_on_match=KeyOnMatch.TRIMMED,
)

GST_TREATMENT = TableDescriptor(
    entity="GST Treatment",
    table="GSTTreatment",
    id_column="gsttreatmentid",
    key_column="gsttreatment",
    columns=("reqgstno", "reqsupplace"),
    key_on_match=KeyOnMatch.TRIMMED,
)

# Items are named per company; two companies may both sell a "Widget".
ITEM = TableDescriptor(
    entity="Item",
    table="Items",
    id_column="itemid",
    key_column="itemname",
    columns=(
        "itemtype",
        "sku",
        "hsncode",
        "unitid",
        "sellprice",
        "currencycode",
        "taxprefid",
        "taxrate",
        "isactive",
        "userid",
    ),
    scope_columns=("compid",),
    key_on_match=KeyOnMatch.TRIMMED,
)

FISCAL_YEAR = TableDescriptor(
    entity="Fiscal Year",
    table="FiscalYear",
    id_column="fiscalid",
    key_column="fiscalyear",
    columns=("startmonth",),
    key_on_match=KeyOnMatch.RAW,
)

# Sub-users are reconciled by e-mail address like any other natural key.
USER = TableDescriptor(
    entity="User",
    table="Users",
    id_column="userid",
    key_column="emailid",
    columns=("salid", "fullname", "compid", "mobileno", "usertype", "company", "location", "countryid"),
    key_on_match=KeyOnMatch.RAW,
)

REFERENCE_TABLES: tuple[TableDescriptor, ...] = (
    COUNTRY,
    STATE,
    BASE_CURRENCY,
    COMPANY_CURRENCY,
    HSN_CODE,
    BUSINESS_TYPE,
    INDUSTRY_TYPE,
    LANGUAGE,
    DATE_FORMAT,
    SALUTATION,
    GST_TREATMENT,
    ITEM,
    FISCAL_YEAR,
)
