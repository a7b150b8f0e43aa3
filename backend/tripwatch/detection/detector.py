"""Disruption detector - one detection cycle over an itinerary's locations.

Weather is fetched per location, route timings per consecutive pair. Every
call goes through the collaborator executor; a failed call is logged and
skipped so the remaining locations and routes are still checked. Calls are
awaited one at a time.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial

import httpx

from backend.tripwatch.adapters.routes import fetch_route
from backend.tripwatch.adapters.weather import fetch_weather
from backend.tripwatch.config import Settings
from backend.tripwatch.detection.traffic import (
    build_route_pairs,
    build_snapshot,
    is_disruptive,
    route_label,
    snapshot_to_disruption,
)
from backend.tripwatch.detection.weather import (
    alert_to_disruption,
    classify_weather,
    is_surfaced,
)
from backend.tripwatch.models.common import GeoKey
from backend.tripwatch.models.disruptions import Disruption, TrafficSnapshot, WeatherAlert
from backend.tripwatch.models.itinerary import TravelDates
from backend.tripwatch.models.tool_results import RouteRequest, WeatherRequest
from backend.tripwatch.tools.executor import (
    CallContext,
    CallExecutionError,
    CallTimeoutError,
    CircuitOpenError,
    CollaboratorExecutor,
    SessionToken,
)

logger = logging.getLogger(__name__)

# Failures that skip one location or route for this cycle
SKIPPABLE_ERRORS = (CallTimeoutError, CallExecutionError, CircuitOpenError)


@dataclass
class DetectionResult:
    """Outcome of one detection cycle."""

    disruptions: list[Disruption] = field(default_factory=list)
    alerts: dict[GeoKey, list[WeatherAlert]] = field(default_factory=dict)
    traffic_data: list[TrafficSnapshot] = field(default_factory=list)
    weather_checks: int = 0
    traffic_checks: int = 0
    weather_attempts: int = 0
    route_attempts: int = 0
    failed_locations: list[GeoKey] = field(default_factory=list)
    failed_routes: list[str] = field(default_factory=list)
    traffic_failed: bool = False

    @property
    def attempts(self) -> int:
        return self.weather_attempts + self.route_attempts

    @property
    def failures(self) -> int:
        return len(self.failed_locations) + len(self.failed_routes)

    @property
    def all_failed(self) -> bool:
        """True when checks were attempted and every one of them failed."""
        return self.attempts > 0 and self.failures == self.attempts


class DisruptionDetector:
    """Polls weather and route collaborators and classifies the results."""

    def __init__(
        self,
        executor: CollaboratorExecutor,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        label_for: Callable[[GeoKey], str | None] | None = None,
    ) -> None:
        """Initialize detector.

        Args:
            executor: Executor shared with the owning monitoring context
            settings: API key, collaborator URLs and route distance floor
            client: Shared httpx client (optional, adapters open their own otherwise)
            label_for: Lookup for resolved place names, used for disruption labels
        """
        self._executor = executor
        self._settings = settings
        self._label_for = label_for or (lambda key: None)
        self._fetch_weather = partial(
            fetch_weather,
            api_key=settings.google_maps_api_key,
            base_url=settings.weather_api_url,
            client=client,
        )
        self._fetch_route = partial(
            fetch_route,
            api_key=settings.google_maps_api_key,
            base_url=settings.traffic_api_url,
            client=client,
        )

    async def detect(
        self,
        locations: list[GeoKey],
        travel_dates: TravelDates | None,
        token: SessionToken,
    ) -> DetectionResult:
        """Run one detection cycle.

        Args:
            locations: Extracted, ordered GeoKeys
            travel_dates: Trip window (current conditions carry no date, logged only)
            token: Session token; a stopped session aborts between calls

        Returns:
            DetectionResult with weather disruptions first, then traffic

        Raises:
            SessionCancelledError: If the session was stopped mid-cycle
        """
        trace_id = uuid.uuid4().hex
        result = DetectionResult()

        if travel_dates is not None:
            logger.debug(
                "Detection cycle %s for trip %s..%s",
                trace_id,
                travel_dates.start_date,
                travel_dates.end_date,
            )

        await self._check_weather(locations, token, trace_id, result)
        await self._check_traffic(locations, token, trace_id, result)

        logger.info(
            "Detection cycle %s: %d disruptions, %d/%d weather, %d/%d routes",
            trace_id,
            len(result.disruptions),
            result.weather_checks,
            result.weather_attempts,
            result.traffic_checks,
            result.route_attempts,
        )
        return result

    async def _check_weather(
        self,
        locations: list[GeoKey],
        token: SessionToken,
        trace_id: str,
        result: DetectionResult,
    ) -> None:
        for location in locations:
            result.weather_attempts += 1
            ctx = CallContext(
                trace_id=trace_id,
                session_id=token.session_id,
                collaborator="weather",
                target=location,
            )
            try:
                reading = await self._executor.execute(
                    ctx, self._fetch_weather, WeatherRequest(location=location), token
                )
            except SKIPPABLE_ERRORS as e:
                logger.warning("Weather check failed for %s: %s", location, e)
                result.failed_locations.append(location)
                continue

            result.weather_checks += 1
            alerts = classify_weather(reading)
            result.alerts[location] = alerts

            label = self._label_for(location)
            for alert in alerts:
                if is_surfaced(alert):
                    result.disruptions.append(alert_to_disruption(alert, location, label))

    async def _check_traffic(
        self,
        locations: list[GeoKey],
        token: SessionToken,
        trace_id: str,
        result: DetectionResult,
    ) -> None:
        snapshots: list[TrafficSnapshot] = []
        disruptions: list[Disruption] = []

        try:
            pairs = build_route_pairs(locations, self._settings.min_route_distance_km)
            for origin, destination in pairs:
                result.route_attempts += 1
                label = route_label(origin, destination)
                request = RouteRequest(origin=origin, destination=destination)
                ctx = CallContext(
                    trace_id=trace_id,
                    session_id=token.session_id,
                    collaborator="routes",
                    target=label,
                )
                try:
                    timing = await self._executor.execute(ctx, self._fetch_route, request, token)
                except SKIPPABLE_ERRORS as e:
                    logger.warning("Route check failed for %s: %s", label, e)
                    result.failed_routes.append(label)
                    continue

                if timing is None:
                    continue

                result.traffic_checks += 1
                snapshot = build_snapshot(timing)
                snapshots.append(snapshot)
                if is_disruptive(snapshot):
                    disruptions.append(
                        snapshot_to_disruption(
                            snapshot,
                            origin_name=self._label_for(origin),
                            destination_name=self._label_for(destination),
                        )
                    )
        except (ValueError, TypeError) as e:
            logger.error("Traffic phase failed: %s", e)
            result.traffic_failed = True
            result.traffic_data = []
            return

        result.traffic_data = snapshots
        result.disruptions.extend(disruptions)
