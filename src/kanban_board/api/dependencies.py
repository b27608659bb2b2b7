from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import HTTPException, status

from kanban_board.config import get_board_definition_path, get_user_id, load_board_definition
from kanban_board.core.ports.record_store import RecordStore
from kanban_board.core.refresh import RefreshCoordinator
from kanban_board.core.session import LoggingErrorReporter, StaticUserContext
from kanban_board.db.engine import get_engine
from kanban_board.db.sql import SqlRecordStore

_store: SqlRecordStore | None = None
_coordinator: RefreshCoordinator | None = None


async def get_store() -> AsyncIterator[RecordStore]:
    """Yield a ``RecordStore`` instance, creating it lazily on first call."""
    global _store  # noqa: PLW0603
    if _store is None:
        _store = SqlRecordStore(get_engine())
    yield _store


async def get_coordinator() -> AsyncIterator[RefreshCoordinator]:
    """Yield the board's ``RefreshCoordinator``, built from ``KANBAN_BOARD_DEFINITION``."""
    global _coordinator, _store  # noqa: PLW0603
    if _coordinator is None:
        path = get_board_definition_path()
        user_id = get_user_id()
        if not path or not user_id:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="KANBAN_BOARD_DEFINITION and KANBAN_USER_ID must be set",
            )
        if _store is None:
            _store = SqlRecordStore(get_engine())
        _coordinator = RefreshCoordinator(
            _store,
            load_board_definition(path),
            StaticUserContext(user_id),
            LoggingErrorReporter(),
        )
    yield _coordinator


async def shutdown_store() -> None:
    global _store, _coordinator  # noqa: PLW0603
    if _store is not None:
        await _store.dispose()
        _store = None
    _coordinator = None
