from __future__ import annotations

from fastapi import FastAPI

from kanban_board.api.lifespan import lifespan
from kanban_board.api.routes.board import router as board_router
from kanban_board.api.routes.health import router as health_router


def create_app() -> FastAPI:
    app = FastAPI(
        title="Kanban Board API",
        description="Fetch, lane and refresh kanban boards over an external record store.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health_router, include_in_schema=False)
    app.include_router(board_router)

    return app
