"""FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.tripwatch.api.routes.health import router as health_router
from backend.tripwatch.api.routes.metrics import router as metrics_router
from backend.tripwatch.api.routes.monitoring import router as monitoring_router
from backend.tripwatch.api.service import get_monitoring_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Only close a service that was actually created
    if get_monitoring_service.cache_info().currsize:
        await get_monitoring_service().aclose()
        get_monitoring_service.cache_clear()


app = FastAPI(title="Tripwatch Monitoring API", version="0.1.0", lifespan=lifespan)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(monitoring_router, tags=["monitoring"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Tripwatch Monitoring API", "version": "0.1.0"}
