from __future__ import annotations

import asyncio

import pytest

from core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from masterdata import engine, service
from masterdata.descriptors import (
    COMPANY_CURRENCY,
    COUNTRY,
    FISCAL_YEAR,
    HSN_CODE,
    ITEM,
    REFERENCE_TABLES,
    STATE,
)
from masterdata.engine import Actor, Outcome, UpsertRequest


def _logs(store) -> list[str]:
    return [row["logaction"] for row in store.rows("Userlog")]


@pytest.mark.asyncio
async def test_repeated_saves_converge_on_one_row(store, fake_pool):
    first = await engine.upsert(COUNTRY, UpsertRequest(key="India", attributes={"defcurcode": "INR"}))
    second = await engine.upsert(
        COUNTRY,
        UpsertRequest(key="  india ", attributes={"defcurcode": "IN2", "isdcode": "91"}),
    )

    assert first.outcome is Outcome.CREATED
    assert second.outcome is Outcome.MATCHED_KEY
    assert first.id == second.id

    rows = store.rows("Country")
    assert len(rows) == 1
    assert rows[0]["countryname"] == "india"
    assert rows[0]["defcurcode"] == "IN2"
    assert rows[0]["isdcode"] == "91"


@pytest.mark.asyncio
@pytest.mark.parametrize("desc", REFERENCE_TABLES, ids=lambda d: d.table)
async def test_blank_key_never_touches_the_store(store, fake_pool, desc):
    with pytest.raises(ValidationError):
        await engine.upsert(desc, UpsertRequest(key="   ", scope={"compid": 1}))

    assert store.statements == []


@pytest.mark.asyncio
async def test_created_row_reads_back_as_written(store, fake_pool):
    result = await engine.upsert(
        HSN_CODE,
        UpsertRequest(
            key="8471",
            attributes={"codedesc": "Computers", "isselectable": True, "isservice": False},
        ),
    )

    row = await service.get_one(HSN_CODE, result.id)
    assert row["hsncode"] == "8471"
    assert row["codedesc"] == "Computers"
    assert row["isselectable"] is True
    assert row["isservice"] is False


@pytest.mark.asyncio
async def test_insert_keeps_the_key_exactly_as_supplied(store, fake_pool):
    await engine.upsert(STATE, UpsertRequest(key=" Goa ", attributes={"countryid": 1}))

    assert store.rows("States")[0]["statename"] == " Goa "


@pytest.mark.asyncio
async def test_key_match_rewrites_key_per_table_policy(store, fake_pool):
    store.seed("States", statename="Goa", countryid=1)
    store.seed("HSNSAC", hsncode="ABC1")
    store.seed("Country", countryname="India")

    await engine.upsert(STATE, UpsertRequest(key=" goa ", attributes={"countryid": 1}))
    await engine.upsert(HSN_CODE, UpsertRequest(key="abc1"))
    await engine.upsert(COUNTRY, UpsertRequest(key=" INDIA  "))

    assert store.rows("States")[0]["statename"] == " goa "
    assert store.rows("HSNSAC")[0]["hsncode"] == "ABC1"
    assert store.rows("Country")[0]["countryname"] == "INDIA"


@pytest.mark.asyncio
async def test_trimmed_key_keeps_non_space_padding(store, fake_pool):
    store.seed("Country", countryname="\u00a0India")

    result = await engine.upsert(COUNTRY, UpsertRequest(key=" \u00a0INDIA "))
    other = await engine.upsert(COUNTRY, UpsertRequest(key="India"))

    assert result.outcome is Outcome.MATCHED_KEY
    assert other.created
    assert [r["countryname"] for r in store.rows("Country")] == ["\u00a0INDIA", "India"]


@pytest.mark.asyncio
async def test_save_replaces_attributes_not_supplied(store, fake_pool):
    store.seed("Country", countryname="India", defcurcode="INR", isdcode="91")

    await engine.upsert(COUNTRY, UpsertRequest(key="India", attributes={"isdcode": "+91"}))

    row = store.rows("Country")[0]
    assert row["isdcode"] == "+91"
    assert row["defcurcode"] is None


@pytest.mark.asyncio
async def test_unknown_attribute_is_a_programming_error(store, fake_pool):
    with pytest.raises(ValueError):
        await engine.upsert(COUNTRY, UpsertRequest(key="India", attributes={"capital": "Delhi"}))


@pytest.mark.asyncio
async def test_identifier_renames_the_key(store, fake_pool):
    store.seed("Country", countryid=1, countryname="Inda", defcurcode="INR")

    result = await engine.upsert(
        COUNTRY,
        UpsertRequest(key="India", attributes={"defcurcode": "INR"}, identifier=1),
        actor=Actor(userid=7, compid=3, isweb=False),
    )

    assert result.outcome is Outcome.MATCHED_ID
    assert result.id == 1
    assert store.rows("Country")[0]["countryname"] == "India"

    log = store.rows("Userlog")
    assert [row["logaction"] for row in log] == ["Updated Country - 1"]
    assert log[0]["userid"] == 7
    assert log[0]["compid"] == 3
    assert log[0]["isweb"] is False


@pytest.mark.asyncio
async def test_natural_key_match_wins_over_identifier(store, fake_pool):
    store.seed("Country", countryid=1, countryname="India")
    store.seed("Country", countryid=2, countryname="France")

    result = await engine.upsert(COUNTRY, UpsertRequest(key="india", identifier=2))

    assert result.id == 1
    assert result.outcome is Outcome.MATCHED_KEY
    assert [r["countryname"] for r in store.rows("Country")] == ["india", "France"]


@pytest.mark.asyncio
async def test_unknown_identifier_falls_through_to_insert(store, fake_pool):
    result = await engine.upsert(COUNTRY, UpsertRequest(key="India", identifier=99))

    assert result.created
    assert result.id != 99
    assert len(store.rows("Country")) == 1


@pytest.mark.asyncio
async def test_every_branch_writes_exactly_one_audit_entry(store, fake_pool):
    created = await engine.upsert(COUNTRY, UpsertRequest(key="India"))
    await engine.upsert(COUNTRY, UpsertRequest(key="INDIA"))
    await engine.upsert(COUNTRY, UpsertRequest(key="Bharat", identifier=created.id))

    assert _logs(store) == [
        "Created Country - India",
        "Updated Country - INDIA",
        f"Updated Country - {created.id}",
    ]


@pytest.mark.asyncio
async def test_failed_insert_leaves_no_row_and_no_audit(store, fake_pool):
    store.fail_on(lambda sql, args: sql.startswith("INSERT INTO Country"))

    with pytest.raises(PersistenceError):
        await engine.upsert(COUNTRY, UpsertRequest(key="India"))

    assert store.rows("Country") == []
    assert store.rows("Userlog") == []


@pytest.mark.asyncio
async def test_company_currency_requires_a_company(store, fake_pool):
    with pytest.raises(ValidationError) as exc_info:
        await engine.upsert(COMPANY_CURRENCY, UpsertRequest(key="USD"))

    assert exc_info.value.message == "compid is required."
    assert store.statements == []


@pytest.mark.asyncio
async def test_company_currency_is_keyed_per_company(store, fake_pool):
    a = await engine.upsert(COMPANY_CURRENCY, UpsertRequest(key="USD", scope={"compid": 1}))
    b = await engine.upsert(COMPANY_CURRENCY, UpsertRequest(key="usd", scope={"compid": 2}))
    again = await engine.upsert(
        COMPANY_CURRENCY,
        UpsertRequest(key=" Usd", attributes={"symbol": "$"}, scope={"compid": 1}),
    )

    assert a.id != b.id
    assert again.id == a.id
    rows = {row["curid"]: row for row in store.rows("Currency")}
    assert rows[a.id]["compid"] == 1
    assert rows[a.id]["symbol"] == "$"
    assert rows[b.id]["symbol"] is None


@pytest.mark.asyncio
async def test_item_names_are_unique_per_company(store, fake_pool):
    a = await engine.upsert(ITEM, UpsertRequest(key="Widget", attributes={"sku": "W-1"}, scope={"compid": 1}))
    b = await engine.upsert(ITEM, UpsertRequest(key="widget", scope={"compid": 2}))
    again = await engine.upsert(
        ITEM,
        UpsertRequest(key=" WIDGET ", attributes={"sku": "W-2"}, scope={"compid": 1}),
    )

    assert a.id != b.id
    assert again.id == a.id
    assert again.outcome is Outcome.MATCHED_KEY
    rows = {row["itemid"]: row for row in store.rows("Items")}
    assert rows[a.id]["itemname"] == "WIDGET"
    assert rows[a.id]["sku"] == "W-2"
    assert rows[b.id]["compid"] == 2
    assert _logs(store)[:2] == ["Created Item - Widget", "Created Item - widget"]


@pytest.mark.asyncio
async def test_item_requires_a_company(store, fake_pool):
    with pytest.raises(ValidationError) as exc_info:
        await engine.upsert(ITEM, UpsertRequest(key="Widget"))

    assert exc_info.value.message == "compid is required."
    assert store.statements == []


@pytest.mark.asyncio
async def test_fiscal_year_matches_on_its_label(store, fake_pool):
    created = await engine.upsert(FISCAL_YEAR, UpsertRequest(key="Apr-Mar", attributes={"startmonth": 4}))
    updated = await engine.upsert(FISCAL_YEAR, UpsertRequest(key="APR-MAR ", attributes={"startmonth": 1}))

    assert updated.id == created.id
    assert store.rows("FiscalYear") == [{"fiscalid": 1, "fiscalyear": "APR-MAR ", "startmonth": 1}]
    assert _logs(store) == ["Created Fiscal Year - Apr-Mar", "Updated Fiscal Year - APR-MAR "]


@pytest.mark.asyncio
async def test_concurrent_creates_leave_one_row(store, fake_pool):
    """
    Both callers miss on lookup and race to insert; the unique index lets one
    through and the other gets a conflict.
    """
    results = await asyncio.gather(
        engine.upsert(COUNTRY, UpsertRequest(key="India")),
        engine.upsert(COUNTRY, UpsertRequest(key=" india")),
        return_exceptions=True,
    )

    assert len(store.rows("Country")) == 1
    created = [r for r in results if isinstance(r, engine.UpsertResult)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(created) == 1 and created[0].created
    assert len(conflicts) == 1


@pytest.mark.asyncio
async def test_delete_twice_reports_not_found(store, fake_pool):
    store.seed("Country", countryname="India")

    await service.delete(COUNTRY, 1)
    with pytest.raises(NotFoundError):
        await service.delete(COUNTRY, 1)
    assert store.rows("Country") == []
