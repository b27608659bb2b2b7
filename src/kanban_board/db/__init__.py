from kanban_board.db.engine import get_engine as _get_engine
from kanban_board.db.memory import InMemoryRecordStore
from kanban_board.db.sql import SqlRecordStore, build_select

__all__ = [
    "InMemoryRecordStore",
    "SqlRecordStore",
    "_get_engine",
    "build_select",
]
