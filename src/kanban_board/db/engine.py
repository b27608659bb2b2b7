from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from kanban_board.config import get_database_url


def get_engine() -> AsyncEngine:
    return create_async_engine(get_database_url(), future=True)
