"""Monitoring endpoints - lifecycle, manual checks, recommendation, impact and SSE stream."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from backend.tripwatch.api.service import MonitoringService, get_monitoring_service
from backend.tripwatch.models.adjustments import AdjustmentRecommendation, ItineraryImpact
from backend.tripwatch.models.disruptions import Disruption
from backend.tripwatch.models.itinerary import Itinerary, TravelDates
from backend.tripwatch.models.status import MonitoringStatus
from backend.tripwatch.monitoring.scheduler import MonitoringConfigurationError

router = APIRouter(prefix="/monitoring", tags=["monitoring"])

_disruption_list = TypeAdapter(list[Disruption])


class StartMonitoringRequest(BaseModel):
    """Request body for POST /monitoring/start."""

    model_config = ConfigDict(populate_by_name=True)

    itinerary: Itinerary
    travel_dates: TravelDates | None = Field(None, alias="travelDates")


class ManualCheckResponse(BaseModel):
    """Response body for POST /monitoring/check."""

    checked: bool
    status: MonitoringStatus


@router.post("/start", response_model=MonitoringStatus, status_code=status.HTTP_202_ACCEPTED)
async def start_monitoring(
    body: StartMonitoringRequest,
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> MonitoringStatus:
    """Start monitoring an itinerary.

    The first detection cycle runs in the background; the returned status
    is already active.

    Raises:
        HTTPException: 503 if monitoring is not configured
    """
    try:
        return await service.start(body.itinerary, body.travel_dates)
    except MonitoringConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e


@router.post("/stop", response_model=MonitoringStatus)
async def stop_monitoring(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> MonitoringStatus:
    """Stop monitoring. Calling it while idle is a no-op."""
    return service.stop()


@router.post("/check", response_model=ManualCheckResponse)
async def check_now(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> ManualCheckResponse:
    """Run one detection cycle right away.

    `checked` is false when another cycle of the session was already running.

    Raises:
        HTTPException: 409 if monitoring is not active
    """
    if not service.scheduler.is_active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Monitoring is not active",
        )
    checked = await service.check_now()
    return ManualCheckResponse(checked=checked, status=service.status())


@router.get("/status", response_model=MonitoringStatus)
async def get_status(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> MonitoringStatus:
    return service.status()


@router.get("/recommendation", response_model=AdjustmentRecommendation)
async def get_recommendation(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> AdjustmentRecommendation:
    """Latest recommendation bundle of the current session.

    Raises:
        HTTPException: 404 if no recommendation has been produced yet
    """
    recommendation = service.latest_recommendation()
    if recommendation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No recommendation available",
        )
    return recommendation


@router.get("/impact", response_model=list[ItineraryImpact])
async def get_impact(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> list[ItineraryImpact]:
    """Days of the monitored itinerary touched by the latest cycle's disruptions."""
    return service.itinerary_impact()


@router.get("/events/stream")
async def stream_events(
    request: Request,
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> StreamingResponse:
    """Stream status, disruption and recommendation events via SSE.

    The current status is sent first. Heartbeats are sent while idle.

    Args:
        request: Incoming request (for disconnect detection)
        service: Monitoring service
        limit: Close the stream after this many non-heartbeat events

    Returns:
        SSE stream
    """
    events: asyncio.Queue[tuple[str, str]] = asyncio.Queue(maxsize=256)

    def enqueue(name: str, data: str) -> None:
        if events.full():
            events.get_nowait()
        events.put_nowait((name, data))

    subscriptions = [
        service.scheduler.subscribe_to_status(
            lambda s: enqueue("status", s.model_dump_json())
        ),
        service.scheduler.subscribe(
            lambda d: enqueue("disruptions", _disruption_list.dump_json(d).decode())
        ),
        service.engine.subscribe(lambda r: enqueue("recommendation", r.model_dump_json())),
    ]
    heartbeat_sec = service.settings.sse_heartbeat_sec

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE events."""
        sent = 0
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    name, data = await asyncio.wait_for(events.get(), timeout=heartbeat_sec)
                except TimeoutError:
                    yield "event: heartbeat\n"
                    yield f'data: {{"ts": "{datetime.now(UTC).isoformat()}"}}\n\n'
                    continue

                yield f"event: {name}\n"
                yield f"data: {data}\n\n"
                sent += 1
                if limit is not None and sent >= limit:
                    break
        finally:
            for subscription in subscriptions:
                subscription.unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
