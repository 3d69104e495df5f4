from fastapi import APIRouter, Request

from schemas.health import HealthResponse

health_router = APIRouter(tags=["health"])


@health_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    return HealthResponse(status="ok", **request.app.state.hub.stats())
