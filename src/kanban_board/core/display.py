from collections.abc import Iterable
from typing import Any

from kanban_board.config import SecondaryEntity
from kanban_board.models import SavedView

FORMATTED_VALUE_SUFFIX = "@OData.Community.Display.V1.FormattedValue"


def extract_text(record: dict[str, Any] | None, field: str) -> str:
    """Return the display text of ``field``: formatted value, lookup formatted value, raw value, or ``""``."""
    if not record:
        return ""
    for key in (f"{field}{FORMATTED_VALUE_SUFFIX}", f"_{field}_value{FORMATTED_VALUE_SUFFIX}"):
        if record.get(key) is not None:
            return str(record[key])
    value = record.get(field)
    return "" if value is None else str(value)


def selectable_views(views: Iterable[SavedView], config: SecondaryEntity) -> list[SavedView]:
    """Filter secondary views by ``hidden_views``/``visible_views`` (case-insensitive name or id)."""

    def _listed(view: SavedView, names: list[str]) -> bool:
        return any(view.name.lower() == n.lower() or view.id.lower() == n.lower() for n in names)

    return [
        v
        for v in views
        if not (config.hidden_views and _listed(v, config.hidden_views))
        and (config.visible_views is None or _listed(v, config.visible_views))
    ]
