"""Health check endpoints.

- /health: liveness, always ok
- /healthz: configuration and monitoring state, 503 when monitoring cannot run or is failing
"""

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response

from backend.tripwatch.api.service import MonitoringService, get_monitoring_service
from backend.tripwatch.config import Settings
from backend.tripwatch.models.common import MonitoringState

router = APIRouter()


def check_config(settings: Settings) -> tuple[bool, str]:
    """Check that the collaborator API key is configured.

    Returns:
        (is_ok, status_message)
    """
    if not settings.google_maps_api_key:
        return (False, "missing_api_key")
    return (True, "ok")


def check_monitoring(service: MonitoringService) -> tuple[bool, str]:
    """Report the monitoring state.

    Returns:
        (is_ok, state) - not ok while the last cycle ended in error
    """
    state = service.status().state
    return (state != MonitoringState.error, state.value)


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> dict[str, Any] | Response:
    """Health check endpoint.

    Returns:
        200 with component status if monitoring can run
        503 if the configuration is incomplete or monitoring is in error
    """
    config_ok, config_status = check_config(service.settings)
    monitoring_ok, monitoring_status = check_monitoring(service)

    core_ok = config_ok and monitoring_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "config": config_status,
            "monitoring": monitoring_status,
        },
    }

    if not core_ok:
        return Response(
            content=json.dumps(response_body),
            status_code=503,
            media_type="application/json",
        )

    return response_body
