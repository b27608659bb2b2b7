from kanban_board.config import SecondaryEntity
from kanban_board.core.display import FORMATTED_VALUE_SUFFIX, extract_text, selectable_views
from kanban_board.models import SavedView

VIEWS = [
    SavedView(id="v1", name="Open Tasks"),
    SavedView(id="v2", name="Hidden Tasks"),
    SavedView(id="v3", name="All Tasks"),
]


def _entity(**kwargs: object) -> SecondaryEntity:
    return SecondaryEntity(logical_name="task", swim_lane_source="oss_done", parent_lookup="regardingobjectid", **kwargs)


class TestExtractText:
    def test_prefers_formatted_value(self) -> None:
        record = {"statuscode": 1, f"statuscode{FORMATTED_VALUE_SUFFIX}": "Open"}
        assert extract_text(record, "statuscode") == "Open"

    def test_uses_lookup_formatted_value(self) -> None:
        record = {"_customerid_value": "guid", f"_customerid_value{FORMATTED_VALUE_SUFFIX}": "Contoso"}
        assert extract_text(record, "customerid") == "Contoso"

    def test_falls_back_to_raw_value(self) -> None:
        assert extract_text({"prioritycode": 2}, "prioritycode") == "2"

    def test_missing_values(self) -> None:
        assert extract_text({"a": None}, "a") == ""
        assert extract_text(None, "a") == ""
        assert extract_text({}, "a") == ""


class TestSelectableViews:
    def test_all_views_without_settings(self) -> None:
        assert selectable_views(VIEWS, _entity()) == VIEWS

    def test_hidden_views_by_name_case_insensitive(self) -> None:
        views = selectable_views(VIEWS, _entity(hidden_views=["hidden tasks"]))
        assert [v.id for v in views] == ["v1", "v3"]

    def test_visible_views_by_id(self) -> None:
        views = selectable_views(VIEWS, _entity(visible_views=["V3", "v2"], hidden_views=["v2"]))
        assert [v.id for v in views] == ["v3"]
