"""Shared pytest fixtures for all test suites."""

import json
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
import pytest_asyncio

from backend.tripwatch.api.service import MonitoringService, get_monitoring_service
from backend.tripwatch.config import Settings
from backend.tripwatch.main import app
from backend.tripwatch.monitoring.scheduler import MonitoringScheduler
from backend.tripwatch.recommendation.engine import AdjustmentRecommendationEngine

WEATHER_URL = "http://collaborators.test/api/weather-data"
TRAFFIC_URL = "http://collaborators.test/api/traffic-data"
ALTERNATIVES_URL = "http://collaborators.test/api/weather-alternatives"
GEOCODE_URL = "http://collaborators.test/maps/api/geocode/json"


def weather_payload(
    condition: str = "Clear",
    description: str = "clear sky",
    temp: float = 22.0,
    wind: float = 3.0,
    visibility: float = 10.0,
    rain_1h: float | None = None,
    probability: float | None = None,
) -> dict[str, Any]:
    """OpenWeather-shaped payload as returned by the weather proxy."""
    payload: dict[str, Any] = {
        "main": {"temp": temp, "feels_like": temp, "humidity": 50, "pressure": 1012},
        "weather": [{"main": condition, "description": description}],
        "wind": {"speed": wind},
        "visibility": visibility,
    }
    if rain_1h is not None:
        payload["rain"] = {"1h": rain_1h}
    if probability is not None:
        payload["precipitationProbability"] = probability
    return payload


def route_payload(live_seconds: int, static_seconds: int) -> dict[str, Any]:
    """Routes-API-shaped payload as returned by the traffic proxy."""
    return {
        "status": "OK",
        "routes": [
            {
                "duration": f"{live_seconds}s",
                "legs": [{"staticDuration": f"{static_seconds}s"}],
            }
        ],
    }


def geocode_payload(locality: str) -> dict[str, Any]:
    return {
        "results": [
            {
                "address_components": [
                    {"long_name": locality, "types": ["locality", "political"]},
                ],
                "formatted_address": f"{locality}, Somewhere",
            }
        ]
    }


@dataclass
class FakeCollaborators:
    """In-memory stand-in for the weather, traffic, geocode and alternatives services.

    Unknown locations get calm weather, unknown routes a clear 10 minute drive
    and unknown coordinates an empty geocoding result.
    """

    weather: dict[str, dict[str, Any]] = field(default_factory=dict)
    weather_status: dict[str, int] = field(default_factory=dict)
    routes: dict[tuple[str, str], dict[str, Any]] = field(default_factory=dict)
    route_status: dict[tuple[str, str], int] = field(default_factory=dict)
    places: dict[str, str] = field(default_factory=dict)
    alternatives: list[dict[str, Any]] = field(default_factory=list)
    alternatives_status: int = 200
    requests: list[httpx.Request] = field(default_factory=list)

    def set_weather(self, location: str, **conditions: Any) -> None:
        self.weather[location] = weather_payload(**conditions)

    def set_route(self, origin: str, destination: str, live: int, static: int) -> None:
        self.routes[(origin, destination)] = route_payload(live, static)

    def calls(self, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/weather-data"):
            location = json.loads(request.content)["location"]
            status = self.weather_status.get(location, 200)
            if status != 200:
                return httpx.Response(status, json={"error": "upstream failure"})
            return httpx.Response(200, json=self.weather.get(location, weather_payload()))

        if path.endswith("/traffic-data"):
            body = json.loads(request.content)
            pair = (body["origin"], body["destination"])
            status = self.route_status.get(pair, 200)
            if status != 200:
                return httpx.Response(status, json={"error": "no route"})
            return httpx.Response(200, json=self.routes.get(pair, route_payload(600, 600)))

        if path.endswith("/geocode/json"):
            latlng = request.url.params["latlng"]
            if latlng in self.places:
                return httpx.Response(200, json=geocode_payload(self.places[latlng]))
            return httpx.Response(200, json={"results": []})

        if path.endswith("/weather-alternatives"):
            if self.alternatives_status != 200:
                return httpx.Response(self.alternatives_status, json={"error": "unavailable"})
            return httpx.Response(200, json={"alternatives": self.alternatives})

        return httpx.Response(404)


@pytest.fixture
def settings() -> Settings:
    """Settings pointing every collaborator at the fake services."""
    return Settings(
        google_maps_api_key="test-key",
        weather_api_url=WEATHER_URL,
        traffic_api_url=TRAFFIC_URL,
        alternatives_api_url=ALTERNATIVES_URL,
        geocode_api_url=GEOCODE_URL,
        check_interval_minutes=60,
        collaborator_hard_timeout_ms=1000,
        collaborator_retry_count=0,
    )


@pytest.fixture
def collaborators() -> FakeCollaborators:
    return FakeCollaborators()


@pytest_asyncio.fixture
async def http_client(
    collaborators: FakeCollaborators,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """httpx client routed to the fake collaborators."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(collaborators.handler))
    yield client
    await client.aclose()


def build_service(settings: Settings, client: httpx.AsyncClient) -> MonitoringService:
    """Monitoring service wired to the given client instead of the environment."""
    scheduler = MonitoringScheduler(settings=settings, client=client)
    engine = AdjustmentRecommendationEngine(settings=settings)
    engine.attach(scheduler)
    return MonitoringService(scheduler, engine)


@pytest.fixture
def service_factory(http_client: httpx.AsyncClient) -> Callable[[Settings], MonitoringService]:
    return lambda settings: build_service(settings, http_client)


@pytest_asyncio.fixture
async def monitoring_service(
    settings: Settings, http_client: httpx.AsyncClient
) -> AsyncGenerator[MonitoringService, None]:
    service = build_service(settings, http_client)
    yield service
    await service.aclose()


@pytest_asyncio.fixture
async def api_client(
    monitoring_service: MonitoringService,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """ASGI client whose routes use the test monitoring service."""
    app.dependency_overrides[get_monitoring_service] = lambda: monitoring_service
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
