"""Shared fixtures and helpers for tests."""

import json
from pathlib import Path
from typing import Any

import pytest

from kanban_board.config import BoardDefinition
from kanban_board.db import InMemoryRecordStore

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Sample board: incidents laned by status reason, tasks laned by a done flag
# ---------------------------------------------------------------------------

USER_ID = "u1"

PRIMARY_QUERY = (
    '<fetch version="1.0" mapping="logical">'
    '<entity name="incident">'
    '<attribute name="title"/>'
    '<order attribute="title"/>'
    '<link-entity name="account" from="accountid" to="customerid" alias="acc">'
    '<attribute name="name"/>'
    "</link-entity>"
    "</entity>"
    "</fetch>"
)

BOARD_DEFINITION: dict[str, Any] = {
    "config": {
        "primaryEntity": {
            "logicalName": "incident",
            "swimLaneSource": "statuscode",
            "subscriptionLookup": "oss_incidentid",
            "notificationLookup": "oss_incidentid",
            "emailNotificationsSender": {"email": "board@example.com"},
        },
        "secondaryEntity": {
            "logicalName": "task",
            "swimLaneSource": "oss_done",
            "parentLookup": "regardingobjectid",
            "subscriptionLookup": "oss_taskid",
            "notificationLookup": "oss_taskid",
        },
    },
    "primary": {
        "metadata": {
            "logical_name": "incident",
            "primary_id_attribute": "incidentid",
            "primary_name_attribute": "title",
            "attributes": [
                {"logical_name": "title"},
                {"logical_name": "statuscode", "attribute_type": "Status"},
                {"logical_name": "ownerid", "attribute_type": "Owner"},
            ],
        },
        "lane_attribute": {
            "logical_name": "statuscode",
            "kind": "categorical",
            "options": [
                {"value": 5, "label": "Resolved", "color": "#00aa00", "sort_rank": 2, "state": 1},
                {"value": 1, "label": "Open", "color": "#0000aa", "sort_rank": 0, "state": 0},
                {"value": 2, "label": "In Progress", "color": "#aaaa00", "sort_rank": 1, "state": 0},
            ],
        },
        "form": {
            "name": "Card",
            "header": {"rows": [{"cells": ["title"]}]},
            "body": {"rows": [{"cells": ["description", "customerid"]}, {"cells": ["title"]}]},
            "footer": {"rows": []},
        },
        "query": PRIMARY_QUERY,
    },
    "secondary": {
        "metadata": {
            "logical_name": "task",
            "primary_id_attribute": "activityid",
            "primary_name_attribute": "subject",
        },
        "lane_attribute": {
            "logical_name": "oss_done",
            "kind": "boolean",
            "false_option": {"value": False, "label": "To do", "sort_rank": 0},
            "true_option": {"value": True, "label": "Done", "sort_rank": 1},
        },
        "form": {"body": {"rows": [{"cells": ["subject"]}]}},
        "views": [
            {"id": "v-hidden", "name": "Hidden Tasks", "fetch_xml": '<fetch><entity name="task"/></fetch>'},
            {
                "id": "v-open",
                "name": "Open Tasks",
                "fetch_xml": (
                    '<fetch><entity name="task">'
                    '<filter><condition attribute="oss_done" operator="eq" value="false"/></filter>'
                    "</entity></fetch>"
                ),
            },
        ],
    },
}

RECORDS: dict[str, list[dict[str, Any]]] = {
    "incident": [
        {"incidentid": "a", "title": "Printer broken", "statuscode": 1, "ownerid": USER_ID},
        {"incidentid": "b", "title": "VPN down", "statuscode": 5, "ownerid": USER_ID},
        {"incidentid": "c", "title": "New laptop", "statuscode": None, "ownerid": USER_ID},
        {"incidentid": "d", "title": "Email bounce", "statuscode": 2, "ownerid": "u2"},
    ],
    "task": [
        {"activityid": "t1", "subject": "Call vendor", "regardingobjectid": "a", "oss_done": False},
        {"activityid": "t2", "subject": "Reset token", "regardingobjectid": "b", "oss_done": True},
        {"activityid": "t3", "subject": "Unrelated", "regardingobjectid": "zzz", "oss_done": False},
    ],
    "oss_subscription": [
        {"oss_subscriptionid": "s1", "ownerid": USER_ID, "createdon": "2024-01-02", "_oss_incidentid_value": "a"},
        {"oss_subscriptionid": "s2", "ownerid": USER_ID, "createdon": "2024-01-03", "_oss_taskid_value": "t1"},
        {"oss_subscriptionid": "s3", "ownerid": "u2", "createdon": "2024-01-04", "_oss_incidentid_value": "b"},
    ],
    "oss_notification": [
        {
            "oss_notificationid": "n1",
            "ownerid": USER_ID,
            "createdon": "2024-02-01",
            "_oss_incidentid_value": "a",
            "oss_data": '{"updatedFields": ["title"]}',
        },
        {
            "oss_notificationid": "n2",
            "ownerid": USER_ID,
            "createdon": "2024-02-03",
            "_oss_incidentid_value": "a",
            "oss_data": None,
        },
    ],
}


class CollectingReporter:
    def __init__(self) -> None:
        self.errors: list[Exception] = []

    def report(self, error: Exception) -> None:
        self.errors.append(error)


@pytest.fixture
def board_definition() -> BoardDefinition:
    return BoardDefinition.model_validate(BOARD_DEFINITION)


@pytest.fixture
def store() -> InMemoryRecordStore:
    memory_store = InMemoryRecordStore()
    memory_store.add_records("incident", RECORDS["incident"])
    memory_store.add_records("task", RECORDS["task"])
    memory_store.add_records("oss_subscription", RECORDS["oss_subscription"])
    memory_store.add_records("oss_notification", RECORDS["oss_notification"])
    return memory_store


@pytest.fixture
def reporter() -> CollectingReporter:
    return CollectingReporter()


@pytest.fixture
def definition_file(tmp_path: Path) -> Path:
    path = tmp_path / "board.json"
    path.write_text(json.dumps(BOARD_DEFINITION), encoding="utf-8")
    return path


@pytest.fixture
def records_file(tmp_path: Path) -> Path:
    path = tmp_path / "records.json"
    path.write_text(json.dumps(RECORDS), encoding="utf-8")
    return path
