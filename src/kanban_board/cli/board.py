import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kanban_board.config import (
    BoardDefinition,
    BoardEntity,
    EntityView,
    get_board_definition_path,
    get_user_id,
    load_board_definition,
)
from kanban_board.core.display import extract_text
from kanban_board.core.fetchxml import to_fetch_xml
from kanban_board.core.lanes import filter_lanes_by_text, visible_lanes
from kanban_board.core.ports.record_store import RecordStore
from kanban_board.core.query import QueryOptions, prepare_entity_queries
from kanban_board.core.refresh import RefreshCoordinator, RefreshRequest
from kanban_board.core.session import StaticUserContext
from kanban_board.errors import BoardError
from kanban_board.models import BoardState, Lane

board_app = typer.Typer(help="Fetch and inspect boards.")
console = Console()

DefinitionOption = Annotated[
    Path | None, typer.Option("--definition", "-d", help="Board definition JSON (default: $KANBAN_BOARD_DEFINITION).")
]
RecordsOption = Annotated[
    Path | None, typer.Option("--records", help="JSON file of records to use instead of the database.")
]
UserOption = Annotated[str | None, typer.Option("--user", help="Current user id (default: $KANBAN_USER_ID).")]


class ConsoleErrorReporter:
    def report(self, error: Exception) -> None:
        console.print(f"[red]An error occurred: {escape(str(error))}[/red]")


def _get_store(records: Path | None) -> RecordStore:
    if records is not None:
        from kanban_board.db.memory import InMemoryRecordStore

        return InMemoryRecordStore.from_file(records)

    from kanban_board.db.engine import get_engine
    from kanban_board.db.sql import SqlRecordStore

    return SqlRecordStore(get_engine())


def _load_definition(definition: Path | None) -> BoardDefinition:
    path = definition or get_board_definition_path()
    if not path:
        console.print("[red]No board definition given (use --definition or KANBAN_BOARD_DEFINITION).[/red]")
        raise typer.Exit(code=2)
    return load_board_definition(path)


def _resolve_user(user: str | None) -> str:
    resolved = user or get_user_id()
    if not resolved:
        console.print("[red]No user given (use --user or KANBAN_USER_ID).[/red]")
        raise typer.Exit(code=2)
    return resolved


def _parse_lane_value(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered in ("none", "null", ""):
        return None
    if lowered in ("true", "false"):
        return lowered == "true"
    return int(raw)


def _render_lanes(title: str, lanes: list[Lane], view: EntityView, entity: BoardEntity, search: str | None) -> None:
    id_field = view.metadata.primary_id_attribute
    name_field = view.metadata.primary_name_attribute
    table = Table(title=title, show_lines=False)
    table.add_column("lane")
    table.add_column("id")
    table.add_column("name")
    shown = filter_lanes_by_text(visible_lanes(lanes, entity), search)
    for lane in shown:
        lane_title = f"{escape(lane.label)} ({len(lane.data)})"
        if not lane.data:
            table.add_row(lane_title, "", "")
        for index, record in enumerate(lane.data):
            table.add_row(
                lane_title if index == 0 else "",
                escape(extract_text(record, id_field)),
                escape(extract_text(record, name_field)),
            )
    console.print(table)


def _render_board(definition: BoardDefinition, board: BoardState, search: str | None) -> None:
    config = definition.config
    _render_lanes(
        config.primary_entity.logical_name,
        board.primary_lanes,
        definition.primary,
        config.primary_entity,
        search,
    )
    if definition.secondary is not None and config.secondary_entity is not None:
        _render_lanes(
            config.secondary_entity.logical_name,
            board.secondary_lanes,
            definition.secondary,
            config.secondary_entity,
            search,
        )
    subscriptions = sum(len(v) for v in board.subscriptions_by_parent.values())
    notifications = sum(len(v) for v in board.notifications_by_parent.values())
    console.print(f"({subscriptions} subscriptions, {notifications} notifications)")
    for diagnostic in board.diagnostics:
        console.print(f"[yellow]{diagnostic.message}[/yellow]")


@board_app.command("show")
def show(
    definition: DefinitionOption = None,
    records: RecordsOption = None,
    user: UserOption = None,
    order: Annotated[list[str] | None, typer.Option("--order", help="Primary record ids in display order.")] = None,
    search: Annotated[str | None, typer.Option(help="Only show records containing this text.")] = None,
    hide_empty: Annotated[bool, typer.Option("--hide-empty", help="Leave out lanes without records.")] = False,
) -> None:
    """Refresh a board and print its lanes."""
    board_definition = _load_definition(definition)
    user_id = _resolve_user(user)
    store = _get_store(records)
    coordinator = RefreshCoordinator(store, board_definition, StaticUserContext(user_id), ConsoleErrorReporter())

    async def _run() -> BoardState | None:
        try:
            return await coordinator.refresh(RefreshRequest(external_order=order, hide_empty_lanes=hide_empty))
        finally:
            await store.dispose()

    board = asyncio.run(_run())
    if board is None:
        raise typer.Exit(code=1)
    _render_board(board_definition, board, search)


@board_app.command("queries")
def queries(
    definition: DefinitionOption = None,
    secondary: Annotated[bool, typer.Option("--secondary", help="Show the secondary entity's queries.")] = False,
) -> None:
    """Print the FetchXML documents a refresh would execute (without id filters)."""
    board_definition = _load_definition(definition)
    config = board_definition.config
    if secondary:
        if board_definition.secondary is None or config.secondary_entity is None:
            console.print("[red]Board has no secondary entity.[/red]")
            raise typer.Exit(code=2)
        view, entity = board_definition.secondary, config.secondary_entity
        options = QueryOptions(additional_fields=[config.secondary_entity.parent_lookup])
    else:
        view, entity = board_definition.primary, config.primary_entity
        options = QueryOptions()

    try:
        documents = prepare_entity_queries(view.query, entity.swim_lane_source, view.form, view.metadata, options)
    except BoardError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    for document in documents:
        console.print(to_fetch_xml(document), markup=False, highlight=False, soft_wrap=True)


def _apply_and_render(
    definition: Path | None,
    records: Path | None,
    user: str | None,
    action: Callable[[RefreshCoordinator], Awaitable[BoardState | None]],
) -> None:
    """Run one change against the board, then print the board refreshed after it."""
    board_definition = _load_definition(definition)
    user_id = _resolve_user(user)
    store = _get_store(records)
    coordinator = RefreshCoordinator(store, board_definition, StaticUserContext(user_id), ConsoleErrorReporter())

    async def _run() -> BoardState | None:
        try:
            return await action(coordinator)
        finally:
            await store.dispose()

    try:
        board = asyncio.run(_run())
    except BoardError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    if board is None:
        raise typer.Exit(code=1)
    _render_board(board_definition, board, None)


@board_app.command("move")
def move(
    record_id: Annotated[str, typer.Argument(help="Id of the record to move.")],
    lane: Annotated[str, typer.Argument(help="Target lane option value (number, true/false).")],
    definition: DefinitionOption = None,
    records: RecordsOption = None,
    user: UserOption = None,
    secondary: Annotated[bool, typer.Option("--secondary", help="Move a secondary record.")] = False,
) -> None:
    """Move a record to another lane, then refresh the board."""
    try:
        target = _parse_lane_value(lane)
    except ValueError as exc:
        console.print(f"[red]Invalid lane value: {escape(lane)}[/red]")
        raise typer.Exit(code=2) from exc
    _apply_and_render(
        definition, records, user, lambda c: c.move_and_refresh(record_id, target, secondary=secondary)
    )


@board_app.command("subscribe")
def subscribe(
    record_id: Annotated[str, typer.Argument(help="Id of the record to follow.")],
    definition: DefinitionOption = None,
    records: RecordsOption = None,
    user: UserOption = None,
    secondary: Annotated[bool, typer.Option("--secondary", help="Follow a secondary record.")] = False,
    email: Annotated[bool, typer.Option("--email", help="Also receive notifications by email.")] = False,
) -> None:
    """Subscribe the current user to a record, then refresh the board."""
    _apply_and_render(
        definition,
        records,
        user,
        lambda c: c.subscribe_and_refresh(record_id, secondary=secondary, email_notifications=email),
    )


@board_app.command("unsubscribe")
def unsubscribe(
    record_id: Annotated[str, typer.Argument(help="Id of the record to stop following.")],
    definition: DefinitionOption = None,
    records: RecordsOption = None,
    user: UserOption = None,
    secondary: Annotated[bool, typer.Option("--secondary", help="Stop following a secondary record.")] = False,
) -> None:
    """Remove the current user's subscriptions to a record, then refresh the board."""
    _apply_and_render(definition, records, user, lambda c: c.unsubscribe_and_refresh(record_id, secondary=secondary))


@board_app.command("clear-notifications")
def clear_notifications(
    record_id: Annotated[
        str | None, typer.Argument(help="Only clear notifications about this record.", show_default=False)
    ] = None,
    notification: Annotated[
        list[str] | None, typer.Option("--notification", "-n", help="Id of a notification to clear.")
    ] = None,
    definition: DefinitionOption = None,
    records: RecordsOption = None,
    user: UserOption = None,
) -> None:
    """Mark notifications as read (all of them unless narrowed down), then refresh the board."""
    _apply_and_render(
        definition,
        records,
        user,
        lambda c: c.clear_notifications_and_refresh(parent_id=record_id, notification_ids=notification or None),
    )
