"""Bucketing of records into board lanes."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from kanban_board.config import BoardEntity
from kanban_board.errors import OptionMismatch
from kanban_board.models import AttributeKind, CategoricalOption, LaneAttribute, Lane, Record

logger = logging.getLogger(__name__)


def _option_key(value: Any) -> tuple[bool, Any]:
    # bool is an int subclass; keep True from matching an option with value 1.
    return isinstance(value, bool), value


def assign_lanes(
    records: Iterable[Record],
    lane_attribute: LaneAttribute,
    lane_source: str | None = None,
    hide_empty_lanes: bool = False,
    diagnostics: list[OptionMismatch] | None = None,
    id_field: str | None = None,
    entity: str = "",
) -> list[Lane]:
    """Group ``records`` into lanes by the value of ``lane_source``.

    Lanes follow the option order of ``lane_attribute`` (boolean: false, true;
    categorical: ascending sort rank). Records without a value go to a fallback
    lane with ``option=None`` that is always first. Unless ``hide_empty_lanes``
    is set every option gets a lane, even an empty one.

    A categorical value that matches no option drops the record; the mismatch is
    logged and appended to ``diagnostics`` when a list is given.
    """
    source = lane_source or lane_attribute.logical_name
    options = lane_attribute.ordered_options()
    positions = {_option_key(o.value): index for index, o in enumerate(options)}
    by_key = {_option_key(o.value): o for o in options}

    lanes: dict[tuple[bool, Any], Lane] = {}
    if not hide_empty_lanes:
        lanes = {_option_key(o.value): Lane(option=o) for o in options}
    fallback: Lane | None = None

    def _lane_for(option: CategoricalOption) -> Lane:
        key = _option_key(option.value)
        lane = lanes.get(key)
        if lane is None:
            lane = lanes[key] = Lane(option=option)
        return lane

    for record in records:
        value = record.get(source)

        if value is None:
            if fallback is None:
                fallback = Lane(option=None)
            fallback.data.append(record)
            continue

        if lane_attribute.kind is AttributeKind.BOOLEAN:
            _lane_for(options[1] if value else options[0]).data.append(record)
            continue

        option = by_key.get(_option_key(value)) if isinstance(value, (int, float, str)) else None
        if option is None:
            mismatch = OptionMismatch(
                entity=entity,
                attribute=source,
                value=value,
                record_id=record.get(id_field) if id_field else None,
            )
            logger.warning(mismatch.message)
            if diagnostics is not None:
                diagnostics.append(mismatch)
            continue
        _lane_for(option).data.append(record)

    ordered = sorted(lanes.items(), key=lambda item: positions[item[0]])
    result = [lane for _, lane in ordered]
    if fallback is not None:
        result.insert(0, fallback)
    return result


def lane_record_ids(lanes: Iterable[Lane], id_field: str) -> list[str]:
    return [str(record[id_field]) for lane in lanes for record in lane.data if record.get(id_field) is not None]


def visible_lanes(lanes: Iterable[Lane], entity_config: BoardEntity) -> list[Lane]:
    """Apply the entity's ``visible_lanes``/``hidden_lanes`` settings; the fallback lane always stays."""
    visible = entity_config.visible_lanes
    hidden = entity_config.hidden_lanes or []
    result = []
    for lane in lanes:
        if lane.option is not None:
            if visible is not None and lane.option.value not in visible:
                continue
            if lane.option.value in hidden:
                continue
        result.append(lane)
    return result


def filter_lanes_by_text(lanes: Iterable[Lane], text: str | None) -> list[Lane]:
    """Keep records where any value contains ``text`` (case-insensitive); lanes themselves are kept."""
    if not text:
        return list(lanes)
    needle = text.lower()
    return [
        Lane(option=lane.option, data=[r for r in lane.data if any(needle in f"{v}".lower() for v in r.values())])
        for lane in lanes
    ]
