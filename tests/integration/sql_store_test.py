"""Integration tests for the SQL record store against a real PostgreSQL database."""

from __future__ import annotations

import pytest

from kanban_board.config import BoardViewConfig
from kanban_board.core.fetchxml import parse_fetch_xml
from kanban_board.core.query import AdditionalCondition, QueryOptions, prepare_queries
from kanban_board.core.retrieval import retrieve_all, retrieve_query
from kanban_board.core.side_data import subscribe, unsubscribe
from kanban_board.db import SqlRecordStore
from kanban_board.errors import RetrievalFailedError
from kanban_board.models import QueryDocument


@pytest.mark.asyncio
async def test_retrieve_query_pages_through_all_rows(sql_store: SqlRecordStore) -> None:
    query = parse_fetch_xml('<fetch><entity name="incident"><order attribute="incidentid"/></entity></fetch>')

    records = await retrieve_query(sql_store, query)

    assert [r["incidentid"] for r in records] == ["a", "b", "c", "d"]


@pytest.mark.asyncio
async def test_filters_compare_text_values(sql_store: SqlRecordStore) -> None:
    query = parse_fetch_xml(
        '<fetch><entity name="incident">'
        '<attribute name="incidentid"/>'
        '<filter type="or">'
        '<condition attribute="statuscode" operator="eq" value="5"/>'
        '<condition attribute="oss_escalated" operator="eq" value="false"/>'
        "</filter>"
        '<order attribute="incidentid"/>'
        "</entity></fetch>"
    )

    records = await retrieve_query(sql_store, query)

    assert records == [{"incidentid": "a"}, {"incidentid": "b"}, {"incidentid": "c"}, {"incidentid": "d"}]


@pytest.mark.asyncio
async def test_link_entity_filter(sql_store: SqlRecordStore) -> None:
    query = parse_fetch_xml(
        '<fetch><entity name="incident">'
        '<attribute name="incidentid"/>'
        '<order attribute="incidentid"/>'
        '<link-entity name="account" from="accountid" to="customerid" alias="acc">'
        '<filter><condition attribute="name" operator="eq" value="Contoso"/></filter>'
        "</link-entity>"
        "</entity></fetch>"
    )

    records = await retrieve_query(sql_store, query)

    assert [r["incidentid"] for r in records] == ["a", "d"]


@pytest.mark.asyncio
async def test_batched_in_filters_are_merged(sql_store: SqlRecordStore) -> None:
    ids = [f"missing-{i}" for i in range(600)] + ["b", "d"]
    queries = prepare_queries(
        None,
        "incident",
        "statuscode",
        ["title"],
        "incidentid",
        "title",
        options=QueryOptions(additional_condition=AdditionalCondition("incidentid", "in", ids)),
    )

    records = await retrieve_all(sql_store, queries)

    assert len(queries) == 2
    assert sorted(r["incidentid"] for r in records) == ["b", "d"]


@pytest.mark.asyncio
async def test_update_record(sql_store: SqlRecordStore) -> None:
    await sql_store.update_record("incident", "incidentid", "a", {"statuscode": 5, "statecode": 1})

    query = parse_fetch_xml(
        '<fetch><entity name="incident"><attribute name="statuscode"/><attribute name="statecode"/>'
        '<filter><condition attribute="incidentid" operator="eq" value="a"/></filter></entity></fetch>'
    )
    assert await retrieve_query(sql_store, query) == [{"statuscode": 5, "statecode": 1}]


@pytest.mark.asyncio
async def test_update_missing_record_raises(sql_store: SqlRecordStore) -> None:
    with pytest.raises(KeyError):
        await sql_store.update_record("incident", "incidentid", "zzz", {"statuscode": 1})


@pytest.mark.asyncio
async def test_delete_record(sql_store: SqlRecordStore) -> None:
    await sql_store.delete_record("incident", "incidentid", "c")

    query = parse_fetch_xml('<fetch><entity name="incident"><order attribute="incidentid"/></entity></fetch>')
    records = await retrieve_query(sql_store, query)
    assert [r["incidentid"] for r in records] == ["a", "b", "d"]


@pytest.mark.asyncio
async def test_delete_missing_record_raises(sql_store: SqlRecordStore) -> None:
    with pytest.raises(KeyError):
        await sql_store.delete_record("incident", "incidentid", "zzz")


@pytest.mark.asyncio
async def test_subscribe_and_unsubscribe(sql_store: SqlRecordStore) -> None:
    config = BoardViewConfig.model_validate(
        {
            "primaryEntity": {
                "logicalName": "incident",
                "swimLaneSource": "statuscode",
                "subscriptionLookup": "oss_incidentid",
                "emailNotificationsSender": {"email": "board@example.com"},
            }
        }
    )

    subscription_id = await subscribe(sql_store, config, config.primary_entity, "{a}", "u1", email_notifications=True)

    [stored] = await retrieve_query(sql_store, QueryDocument(entity="oss_subscription"))
    assert stored["oss_subscriptionid"] == subscription_id
    assert stored["_oss_incidentid_value"] == "a"
    assert stored["oss_emailnotificationsenabled"] is True
    assert stored["oss_emailnotificationssender"] == '{"email": "board@example.com"}'

    assert await unsubscribe(sql_store, config, config.primary_entity, "a", "u1") == 1
    assert await retrieve_query(sql_store, QueryDocument(entity="oss_subscription")) == []


@pytest.mark.asyncio
async def test_ping(sql_store: SqlRecordStore) -> None:
    assert await sql_store.ping() is True


@pytest.mark.asyncio
async def test_unknown_table_fails_retrieval(sql_store: SqlRecordStore) -> None:
    with pytest.raises(RetrievalFailedError):
        await retrieve_query(sql_store, QueryDocument(entity="contact"))
