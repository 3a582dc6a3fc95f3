"""Main FastAPI application for the DayBalance backend."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.api.routes.profile import router as profile_router
from app.api.routes.schedule import router as schedule_router
from app.api.routes.task import router as task_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.core.middleware import RequestIDMiddleware
from app.observability.client import init_opik
from app.observability.tracing import trace

configure_logging(log_level=settings.log_level)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Initialize observability backends after the event loop starts."""
    init_opik()
    yield


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestIDMiddleware)
app.include_router(profile_router)
app.include_router(task_router)
app.include_router(schedule_router)


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
