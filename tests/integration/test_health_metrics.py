"""Integration tests for /health, /healthz and /metrics endpoints."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio

from backend.tripwatch.api.service import MonitoringService, get_monitoring_service
from backend.tripwatch.config import Settings
from backend.tripwatch.main import app
from backend.tripwatch.models.itinerary import Itinerary


@pytest_asyncio.fixture
async def unconfigured_client(
    settings: Settings, service_factory: Callable[[Settings], MonitoringService]
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """ASGI client backed by a service with no maps API key."""
    service = service_factory(settings.model_copy(update={"google_maps_api_key": ""}))
    app.dependency_overrides[get_monitoring_service] = lambda: service
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
    await service.aclose()


class TestHealthEndpoint:
    """Test /health and /healthz endpoints."""

    @pytest.mark.asyncio
    async def test_health_always_ok(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_healthz_returns_200_when_configured(
        self, api_client: httpx.AsyncClient
    ) -> None:
        """Test /healthz returns 200 with an API key and an idle monitor."""
        response = await api_client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["components"]["config"] == "ok"
        assert data["components"]["monitoring"] == "idle"

    @pytest.mark.asyncio
    async def test_healthz_returns_503_without_api_key(
        self, unconfigured_client: httpx.AsyncClient
    ) -> None:
        """Test /healthz returns 503 when the maps API key is missing."""
        response = await unconfigured_client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["config"] == "missing_api_key"
        assert data["components"]["monitoring"] == "idle"

    @pytest.mark.asyncio
    async def test_healthz_returns_503_when_monitoring_failing(
        self,
        api_client: httpx.AsyncClient,
        monitoring_service: MonitoringService,
        collaborators: Any,
    ) -> None:
        """Test /healthz returns 503 after a cycle where every check failed."""
        collaborators.weather_status["Hotel Mandovi"] = 503
        await monitoring_service.scheduler.start_monitoring(
            Itinerary.model_validate(
                {
                    "itinerary": [
                        {"day": 1, "activities": [{"name": "Stay", "location": "Hotel Mandovi"}]}
                    ]
                }
            )
        )

        response = await api_client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["config"] == "ok"
        assert data["components"]["monitoring"] == "error"

    @pytest.mark.asyncio
    async def test_root(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.get("/")

        assert response.json() == {"message": "Tripwatch Monitoring API", "version": "0.1.0"}


class TestMetricsEndpoint:
    """Test /metrics endpoint."""

    @pytest.mark.asyncio
    async def test_metrics_returns_prometheus_format(self, api_client: httpx.AsyncClient) -> None:
        """Test /metrics returns Prometheus text format."""
        response = await api_client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "# HELP" in response.text or "# TYPE" in response.text

    @pytest.mark.asyncio
    async def test_metrics_includes_collaborator_metrics(
        self, api_client: httpx.AsyncClient
    ) -> None:
        """Test /metrics includes collaborator and monitoring metrics."""
        from backend.tripwatch.utils.metrics import (
            PrometheusCallMetrics,
            PrometheusMonitoringMetrics,
        )

        PrometheusCallMetrics().record_latency("weather", "success", 120)
        PrometheusCallMetrics().inc_error("traffic", "timeout")
        PrometheusMonitoringMetrics().record_cycle("ok")

        response = await api_client.get("/metrics")

        assert response.status_code == 200
        text = response.text
        assert "collaborator_latency_ms" in text
        assert "collaborator_errors_total" in text
        assert "monitoring_cycles_total" in text
        assert "monitoring_active_sessions" in text
