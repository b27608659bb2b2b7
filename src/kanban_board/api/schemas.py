from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from kanban_board.config import BoardViewConfig
from kanban_board.core.lanes import visible_lanes
from kanban_board.models import BoardState, Lane


class HealthResponse(BaseModel):
    status: str = "ok"


class ReadinessResponse(BaseModel):
    status: str = "ok"
    store: str = "up"


class RefreshRequestBody(BaseModel):
    external_order: list[str] | None = None
    hide_empty_lanes: bool = False


class MoveRequestBody(BaseModel):
    target_value: int | bool | None
    secondary: bool = False


class SubscribeRequestBody(BaseModel):
    secondary: bool = False
    email_notifications: bool = False


class LaneResponse(BaseModel):
    value: int | bool | None
    label: str
    color: str
    count: int
    records: list[dict[str, Any]]

    @classmethod
    def from_lane(cls, lane: Lane) -> LaneResponse:
        return cls(value=lane.value, label=lane.label, color=lane.color, count=len(lane.data), records=lane.data)


class BoardResponse(BaseModel):
    cycle: int
    primary_lanes: list[LaneResponse]
    secondary_lanes: list[LaneResponse]
    subscriptions: dict[str, list[dict[str, Any]]]
    notifications: dict[str, list[dict[str, Any]]]
    diagnostics: list[str]

    @classmethod
    def from_state(cls, board: BoardState, config: BoardViewConfig) -> BoardResponse:
        """Render a published board, leaving out the lanes the entity configurations hide."""

        def _keyed(groups: dict[Any, list[dict[str, Any]]]) -> dict[str, list[dict[str, Any]]]:
            return {("" if k is None else str(k)): v for k, v in groups.items()}

        primary_lanes = visible_lanes(board.primary_lanes, config.primary_entity)
        secondary_lanes = board.secondary_lanes
        if config.secondary_entity is not None:
            secondary_lanes = visible_lanes(secondary_lanes, config.secondary_entity)

        return cls(
            cycle=board.cycle,
            primary_lanes=[LaneResponse.from_lane(lane) for lane in primary_lanes],
            secondary_lanes=[LaneResponse.from_lane(lane) for lane in secondary_lanes],
            subscriptions=_keyed(board.subscriptions_by_parent),
            notifications=_keyed(board.notifications_by_parent),
            diagnostics=[d.message for d in board.diagnostics],
        )
