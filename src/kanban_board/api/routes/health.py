from fastapi import APIRouter, Depends, Response, status

from kanban_board.api.dependencies import get_store
from kanban_board.api.schemas import HealthResponse, ReadinessResponse
from kanban_board.core.ports.record_store import RecordStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/healthz/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness check: is the process alive?"""
    return HealthResponse()


@router.get("/healthz/ready", response_model=ReadinessResponse)
async def readiness(
    response: Response,
    store: RecordStore = Depends(get_store),
) -> ReadinessResponse:
    """Readiness check: record store connectivity."""
    if await store.ping():
        return ReadinessResponse(status="ok", store="up")
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="degraded", store="down")
