"""One refresh cycle of a board: primary data, secondary data, side data, then a single publish."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from kanban_board.config import BoardDefinition, BoardEntity, EntityView
from kanban_board.core.display import selectable_views
from kanban_board.core.lanes import assign_lanes, lane_record_ids
from kanban_board.core.ordering import reorder
from kanban_board.core.ports.record_store import RecordStore
from kanban_board.core.ports.session import ErrorReporter, UserContext
from kanban_board.core.query import QueryOptions, id_filter, prepare_entity_queries
from kanban_board.core.retrieval import retrieve_all
from kanban_board.core.side_data import (
    clear_notifications,
    fetch_notifications,
    fetch_subscriptions,
    subscribe,
    unsubscribe,
)
from kanban_board.core.transitions import find_option, move_record
from kanban_board.errors import ActionNotAllowedError, BoardError, OptionMismatch, TransitionNotAllowedError
from kanban_board.models import BoardState, CardForm, Lane

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE = "idle"
    FETCHING_PRIMARY = "fetching_primary"
    FETCHING_SECONDARY = "fetching_secondary"
    FETCHING_SIDE_DATA = "fetching_side_data"
    FAILED = "failed"


@dataclass(frozen=True)
class RefreshRequest:
    """Per-cycle overrides; anything left unset falls back to the board definition.

    ``external_order`` lists primary record ids in the host's order. When given
    (even empty) it restricts and orders the primary records.
    """

    external_order: list[str] | None = None
    primary_query: str | None = None
    primary_form: CardForm | None = None
    secondary_query: str | None = None
    secondary_form: CardForm | None = None
    hide_empty_lanes: bool = False


class RefreshCoordinator:
    """Fetches all board data for a cycle and publishes it atomically.

    Invocations are expected to be serialized by the caller. A failing stage
    leaves ``published`` untouched and reports exactly one error.
    """

    def __init__(
        self,
        store: RecordStore,
        definition: BoardDefinition,
        user: UserContext,
        reporter: ErrorReporter,
    ) -> None:
        self.store = store
        self.definition = definition
        self.user = user
        self.reporter = reporter
        self.state = RefreshState.IDLE
        self.published: BoardState | None = None
        self.last_error: BoardError | None = None
        self._cycle = 0

    def _enter(self, state: RefreshState) -> None:
        logger.debug("refresh cycle %d: %s -> %s", self._cycle, self.state.value, state.value)
        self.state = state

    async def _fetch_primary(self, request: RefreshRequest, diagnostics: list[OptionMismatch]) -> list[Lane]:
        view = self.definition.primary
        entity = self.definition.config.primary_entity
        id_field = view.metadata.primary_id_attribute

        options = QueryOptions(hide_empty_lanes=request.hide_empty_lanes)
        if request.external_order is not None:
            options = QueryOptions(
                hide_empty_lanes=request.hide_empty_lanes,
                additional_condition=id_filter(id_field, request.external_order),
            )

        queries = prepare_entity_queries(
            request.primary_query or view.query,
            entity.swim_lane_source,
            request.primary_form or view.form,
            view.metadata,
            options,
        )
        records = await retrieve_all(self.store, queries)
        ordered = reorder(records, request.external_order, id_field)
        return assign_lanes(
            ordered,
            view.lane_attribute,
            entity.swim_lane_source,
            hide_empty_lanes=request.hide_empty_lanes,
            diagnostics=diagnostics,
            id_field=id_field,
            entity=entity.logical_name,
        )

    def _secondary_base_query(self, view: EntityView, request: RefreshRequest) -> str | None:
        if request.secondary_query:
            return request.secondary_query
        if view.query:
            return view.query
        secondary = self.definition.config.secondary_entity
        assert secondary is not None
        views = selectable_views(view.views, secondary)
        default = secondary.default_view
        for candidate in views:
            if default and default.lower() in (candidate.id.lower(), candidate.name.lower()):
                return candidate.fetch_xml
        return views[0].fetch_xml if views else None

    async def _fetch_secondary(
        self,
        request: RefreshRequest,
        primary_lanes: list[Lane],
        diagnostics: list[OptionMismatch],
    ) -> list[Lane]:
        view = self.definition.secondary
        entity = self.definition.config.secondary_entity
        assert view is not None and entity is not None

        parent_ids = lane_record_ids(primary_lanes, self.definition.primary.metadata.primary_id_attribute)
        options = QueryOptions(
            additional_fields=[entity.parent_lookup],
            hide_empty_lanes=request.hide_empty_lanes,
            additional_condition=id_filter(entity.parent_lookup, parent_ids),
        )
        queries = prepare_entity_queries(
            self._secondary_base_query(view, request),
            entity.swim_lane_source,
            request.secondary_form or view.form,
            view.metadata,
            options,
        )
        records = await retrieve_all(self.store, queries)
        return assign_lanes(
            records,
            view.lane_attribute,
            entity.swim_lane_source,
            hide_empty_lanes=request.hide_empty_lanes,
            diagnostics=diagnostics,
            id_field=view.metadata.primary_id_attribute,
            entity=entity.logical_name,
        )

    async def refresh(self, request: RefreshRequest | None = None) -> BoardState | None:
        """Run one cycle. Returns the published state, or ``None`` when the cycle failed."""
        request = request or RefreshRequest()
        config = self.definition.config
        self._cycle += 1
        diagnostics: list[OptionMismatch] = []

        try:
            self._enter(RefreshState.FETCHING_PRIMARY)
            primary_lanes = await self._fetch_primary(request, diagnostics)

            secondary_lanes: list[Lane] = []
            if config.secondary_entity is not None and self.definition.secondary is not None:
                self._enter(RefreshState.FETCHING_SECONDARY)
                secondary_lanes = await self._fetch_secondary(request, primary_lanes, diagnostics)

            self._enter(RefreshState.FETCHING_SIDE_DATA)
            user_id = self.user.user_id()
            subscriptions = await fetch_subscriptions(self.store, config, user_id)
            notifications = await fetch_notifications(self.store, config, user_id)
        except BoardError as exc:
            self._enter(RefreshState.FAILED)
            self.last_error = exc
            logger.error("refresh cycle %d failed: %s", self._cycle, exc)
            self.reporter.report(exc)
            self._enter(RefreshState.IDLE)
            return None

        board = BoardState(
            primary_lanes=primary_lanes,
            secondary_lanes=secondary_lanes,
            subscriptions_by_parent=subscriptions,
            notifications_by_parent=notifications,
            diagnostics=diagnostics,
            cycle=self._cycle,
        )
        self.published = board
        self.last_error = None
        self._enter(RefreshState.IDLE)
        logger.info(
            "refresh cycle %d published %d primary and %d secondary record(s)",
            self._cycle,
            sum(len(lane.data) for lane in primary_lanes),
            sum(len(lane.data) for lane in secondary_lanes),
        )
        return board

    def _entity(self, secondary: bool) -> tuple[EntityView, BoardEntity]:
        if not secondary:
            return self.definition.primary, self.definition.config.primary_entity
        view = self.definition.secondary
        entity = self.definition.config.secondary_entity
        if view is None or entity is None:
            raise ActionNotAllowedError("Board has no secondary entity")
        return view, entity

    async def move_and_refresh(
        self,
        record_id: str,
        target_value: Any,
        secondary: bool = False,
        request: RefreshRequest | None = None,
    ) -> BoardState | None:
        """Move a record to the lane of ``target_value`` and refresh the board.

        Raises ``TransitionNotAllowedError`` for refused moves and
        ``RetrievalFailedError`` when the store rejects the update.
        """
        view, entity = self._entity(secondary)
        target = find_option(view.lane_attribute, target_value) if target_value is not None else None
        if target_value is not None and target is None:
            raise TransitionNotAllowedError(f"{target_value!r} is not a lane of {entity.logical_name}")

        await move_record(
            self.store, entity, view.metadata.primary_id_attribute, record_id, view.lane_attribute, target
        )
        return await self.refresh(request)

    async def subscribe_and_refresh(
        self,
        record_id: str,
        secondary: bool = False,
        email_notifications: bool = False,
        request: RefreshRequest | None = None,
    ) -> BoardState | None:
        _, entity = self._entity(secondary)
        await subscribe(
            self.store, self.definition.config, entity, record_id, self.user.user_id(), email_notifications
        )
        return await self.refresh(request)

    async def unsubscribe_and_refresh(
        self,
        record_id: str,
        secondary: bool = False,
        request: RefreshRequest | None = None,
    ) -> BoardState | None:
        _, entity = self._entity(secondary)
        await unsubscribe(self.store, self.definition.config, entity, record_id, self.user.user_id())
        return await self.refresh(request)

    async def clear_notifications_and_refresh(
        self,
        parent_id: str | None = None,
        notification_ids: list[str] | None = None,
        request: RefreshRequest | None = None,
    ) -> BoardState | None:
        """Delete the selected notifications of the current user and refresh the board.

        See ``clear_notifications`` for how ``parent_id`` and ``notification_ids`` select.
        """
        await clear_notifications(
            self.store, self.definition.config, self.user.user_id(), parent_id, notification_ids
        )
        return await self.refresh(request)
