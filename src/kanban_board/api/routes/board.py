from collections.abc import Awaitable

from fastapi import APIRouter, Depends, HTTPException, Query, status

from kanban_board.api.dependencies import get_coordinator
from kanban_board.api.schemas import BoardResponse, MoveRequestBody, RefreshRequestBody, SubscribeRequestBody
from kanban_board.core.refresh import RefreshCoordinator, RefreshRequest
from kanban_board.errors import ActionNotAllowedError, BoardError
from kanban_board.models import BoardState

router = APIRouter(prefix="/board", tags=["board"])


def _published_or_error(board: BoardState | None, coordinator: RefreshCoordinator) -> BoardResponse:
    if board is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(coordinator.last_error))
    return BoardResponse.from_state(board, coordinator.definition.config)


async def _change(action: Awaitable[BoardState | None], coordinator: RefreshCoordinator) -> BoardResponse:
    """Await a change to the board and render the board refreshed after it."""
    try:
        published = await action
    except ActionNotAllowedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except BoardError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return _published_or_error(published, coordinator)


@router.get("", response_model=BoardResponse)
async def board(coordinator: RefreshCoordinator = Depends(get_coordinator)) -> BoardResponse:
    """Return the published board, running a first refresh when nothing was published yet."""
    published = coordinator.published
    if published is None:
        published = await coordinator.refresh()
    return _published_or_error(published, coordinator)


@router.post("/refresh", response_model=BoardResponse)
async def refresh(
    body: RefreshRequestBody | None = None,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> BoardResponse:
    body = body or RefreshRequestBody()
    request = RefreshRequest(external_order=body.external_order, hide_empty_lanes=body.hide_empty_lanes)
    return _published_or_error(await coordinator.refresh(request), coordinator)


@router.post("/records/{record_id}/move", response_model=BoardResponse)
async def move(
    record_id: str,
    body: MoveRequestBody,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> BoardResponse:
    return await _change(
        coordinator.move_and_refresh(record_id, body.target_value, secondary=body.secondary), coordinator
    )


@router.post("/records/{record_id}/subscription", response_model=BoardResponse)
async def subscribe(
    record_id: str,
    body: SubscribeRequestBody | None = None,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> BoardResponse:
    body = body or SubscribeRequestBody()
    return await _change(
        coordinator.subscribe_and_refresh(
            record_id, secondary=body.secondary, email_notifications=body.email_notifications
        ),
        coordinator,
    )


@router.delete("/records/{record_id}/subscription", response_model=BoardResponse)
async def unsubscribe(
    record_id: str,
    secondary: bool = Query(default=False),
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> BoardResponse:
    return await _change(coordinator.unsubscribe_and_refresh(record_id, secondary=secondary), coordinator)


@router.delete("/records/{record_id}/notifications", response_model=BoardResponse)
async def clear_record_notifications(
    record_id: str,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> BoardResponse:
    """Mark every notification about one board record as read."""
    return await _change(coordinator.clear_notifications_and_refresh(parent_id=record_id), coordinator)


@router.delete("/notifications/{notification_id}", response_model=BoardResponse)
async def clear_notification(
    notification_id: str,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> BoardResponse:
    return await _change(
        coordinator.clear_notifications_and_refresh(notification_ids=[notification_id]), coordinator
    )
