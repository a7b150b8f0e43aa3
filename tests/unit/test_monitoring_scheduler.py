"""Tests for the monitoring scheduler lifecycle."""

import asyncio
import json
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio

from backend.tripwatch.config import Settings
from backend.tripwatch.models.common import MonitoringState
from backend.tripwatch.models.disruptions import Disruption
from backend.tripwatch.models.itinerary import Itinerary
from backend.tripwatch.models.status import MonitoringStatus
from backend.tripwatch.monitoring.scheduler import (
    MonitoringConfigurationError,
    MonitoringScheduler,
)

NOW = datetime(2026, 5, 1, 9, 0, tzinfo=UTC)


class ControlledSleep:
    """Sleep stand-in: the first `free` calls return at once, later ones block."""

    def __init__(self, free: int = 0) -> None:
        self.free = free
        self.calls: list[float] = []
        self.blocked = asyncio.Event()
        self._release = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if len(self.calls) <= self.free:
            await asyncio.sleep(0)
            return
        self.blocked.set()
        await self._release.wait()


def make_itinerary(itinerary_id: str, locations: list[str]) -> Itinerary:
    return Itinerary.model_validate(
        {
            "id": itinerary_id,
            "itinerary": [
                {
                    "day": 1,
                    "activities": [
                        {"name": f"Stop {i}", "location": location}
                        for i, location in enumerate(locations)
                    ],
                }
            ],
        }
    )


def make_scheduler(
    settings: Settings, handler: Any, sleeper: ControlledSleep
) -> tuple[MonitoringScheduler, httpx.AsyncClient]:
    """Scheduler whose collaborators are served by `handler`."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    scheduler = MonitoringScheduler(
        settings=settings, client=client, sleep_fn=sleeper, clock=lambda: NOW
    )
    return scheduler, client


@pytest.fixture
def sleeper() -> ControlledSleep:
    return ControlledSleep()


@pytest_asyncio.fixture
async def scheduler(
    settings: Settings, http_client: httpx.AsyncClient, sleeper: ControlledSleep
) -> AsyncGenerator[MonitoringScheduler, None]:
    scheduler = MonitoringScheduler(
        settings=settings, client=http_client, sleep_fn=sleeper, clock=lambda: NOW
    )
    yield scheduler
    await scheduler.aclose()


class TestStartMonitoring:
    """Test session start."""

    @pytest.mark.asyncio
    async def test_requires_api_key(
        self, http_client: httpx.AsyncClient, collaborators: Any
    ) -> None:
        scheduler = MonitoringScheduler(
            settings=Settings(google_maps_api_key=""), client=http_client
        )

        with pytest.raises(MonitoringConfigurationError):
            await scheduler.start_monitoring(make_itinerary("trip", ["Goa"]))

        assert scheduler.is_active is False
        assert scheduler.get_status().state == MonitoringState.idle
        assert collaborators.requests == []

    @pytest.mark.asyncio
    async def test_active_status_published_before_network(
        self, scheduler: MonitoringScheduler, collaborators: Any
    ) -> None:
        statuses: list[MonitoringStatus] = []
        weather_calls_seen: list[int] = []

        def on_status(status: MonitoringStatus) -> None:
            statuses.append(status)
            weather_calls_seen.append(len(collaborators.calls("/weather-data")))

        scheduler.subscribe_to_status(on_status)
        await scheduler.start_monitoring(make_itinerary("trip", ["Panjim Market", "Old Goa"]))

        # Replayed idle snapshot, then active before any weather call
        assert statuses[0].state == MonitoringState.idle
        assert statuses[1].state == MonitoringState.active
        assert statuses[1].is_active is True
        assert statuses[1].total_checks == 0
        assert statuses[1].checked_locations == ["Panjim Market", "Old Goa"]
        assert weather_calls_seen[1] == 0

    @pytest.mark.asyncio
    async def test_is_active_visible_to_first_cycle(
        self, settings: Settings, sleeper: ControlledSleep, collaborators: Any
    ) -> None:
        seen_active: list[bool] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_active.append(scheduler.is_active)
            return collaborators.handler(request)

        scheduler, client = make_scheduler(settings, handler, sleeper)

        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))

        assert seen_active == [True]
        await scheduler.aclose()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_first_cycle_runs_inline(self, scheduler: MonitoringScheduler) -> None:
        await scheduler.start_monitoring(make_itinerary("trip", ["Panjim Market", "Old Goa"]))
        status = scheduler.get_status()

        assert status.total_checks == 1
        assert status.weather_checks == 2
        assert status.traffic_checks == 1
        assert status.last_check_time == NOW
        assert status.next_check_time == datetime(2026, 5, 1, 10, 0, tzinfo=UTC)
        assert len(status.traffic_data) == 1
        assert status.state == MonitoringState.active

    @pytest.mark.asyncio
    async def test_zero_disruption_cycle_still_publishes_status(
        self, scheduler: MonitoringScheduler
    ) -> None:
        disruption_events: list[list[Disruption]] = []
        statuses: list[MonitoringStatus] = []
        scheduler.subscribe(disruption_events.append)
        scheduler.subscribe_to_status(statuses.append)

        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))

        assert disruption_events == []
        assert statuses[-1].total_checks == 1

    @pytest.mark.asyncio
    async def test_disruptions_published_before_status(
        self, scheduler: MonitoringScheduler, collaborators: Any
    ) -> None:
        collaborators.set_weather("Old Goa", wind=15.0)
        events: list[str] = []
        scheduler.subscribe(lambda disruptions: events.append(f"disruptions:{len(disruptions)}"))
        scheduler.subscribe_to_status(lambda status: events.append(f"status:{status.total_checks}"))

        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))

        assert events == ["status:0", "status:0", "disruptions:1", "status:1"]

    @pytest.mark.asyncio
    async def test_nearby_coordinates_are_polled_separately_without_route(
        self, scheduler: MonitoringScheduler, collaborators: Any
    ) -> None:
        # ~80 m apart: distinct keys, but too close for a route lookup
        await scheduler.start_monitoring(
            make_itinerary("trip", ["48.8566,2.3522", "48.85732,2.3522"])
        )

        assert scheduler.locations == ["48.8566,2.3522", "48.8573,2.3522"]
        polled = [json.loads(r.content)["location"] for r in collaborators.calls("/weather-data")]
        assert polled == ["48.8566,2.3522", "48.8573,2.3522"]
        assert collaborators.calls("/traffic-data") == []

    @pytest.mark.asyncio
    async def test_coordinate_names_resolved_in_background(
        self, scheduler: MonitoringScheduler, collaborators: Any
    ) -> None:
        collaborators.places["15.5527,73.7517"] = "Calangute"

        await scheduler.start_monitoring(make_itinerary("trip", ["15.5527,73.7517", "Old Goa"]))
        await scheduler.context.names.drain()

        names = scheduler.get_status().location_names
        assert names == {"15.5527,73.7517": "Calangute", "Old Goa": "Old Goa"}

    @pytest.mark.asyncio
    async def test_restart_replaces_session(self, scheduler: MonitoringScheduler) -> None:
        await scheduler.start_monitoring(make_itinerary("first", ["Old Goa"]))
        await scheduler.start_monitoring(make_itinerary("second", ["Panjim Market"]))
        status = scheduler.get_status()

        assert status.session_id == 2
        assert status.itinerary_id == "second"
        assert status.checked_locations == ["Panjim Market"]
        assert status.total_checks == 1


class TestStopMonitoring:
    """Test session stop."""

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, scheduler: MonitoringScheduler) -> None:
        scheduler.stop_monitoring()  # Idle: no-op

        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))
        scheduler.stop_monitoring()
        scheduler.stop_monitoring()
        await asyncio.sleep(0)
        status = scheduler.get_status()

        assert scheduler.is_active is False
        assert status.state == MonitoringState.idle
        assert status.is_active is False
        assert status.next_check_time is None
        assert status.total_checks == 1

    @pytest.mark.asyncio
    async def test_stop_publishes_idle_status(self, scheduler: MonitoringScheduler) -> None:
        statuses: list[MonitoringStatus] = []
        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))
        scheduler.subscribe_to_status(statuses.append)

        scheduler.stop_monitoring()
        for _ in range(3):
            await asyncio.sleep(0)

        assert statuses[-1].state == MonitoringState.idle

    @pytest.mark.asyncio
    async def test_stop_during_cycle_drops_result(
        self, settings: Settings, sleeper: ControlledSleep, collaborators: Any
    ) -> None:
        collaborators.set_weather("Old Goa", wind=22.0)

        def handler(request: httpx.Request) -> httpx.Response:
            # The user stops monitoring while the first weather call is in flight
            scheduler.stop_monitoring()
            return collaborators.handler(request)

        scheduler, client = make_scheduler(settings, handler, sleeper)
        disruption_events: list[list[Disruption]] = []
        scheduler.subscribe(disruption_events.append)

        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa", "Panjim Market"]))
        status = scheduler.get_status()

        assert disruption_events == []
        assert status.total_checks == 0
        assert status.state == MonitoringState.idle

        await scheduler.aclose()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_stale_session_result_is_dropped(
        self, settings: Settings, sleeper: ControlledSleep
    ) -> None:
        gate = asyncio.Event()
        entered = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            location = json.loads(request.content).get("location")
            if location == "Stormy Beach":
                entered.set()
                await gate.wait()
                return httpx.Response(
                    200,
                    json={
                        "main": {"temp": 25},
                        "weather": [{"main": "Squall"}],
                        "wind": {"speed": 25},
                    },
                )
            return httpx.Response(
                200, json={"main": {"temp": 25}, "weather": [{"main": "Clear"}]}
            )

        scheduler, client = make_scheduler(settings, handler, sleeper)
        disruption_events: list[list[Disruption]] = []
        scheduler.subscribe(disruption_events.append)

        first = asyncio.create_task(
            scheduler.start_monitoring(make_itinerary("first", ["Stormy Beach"]))
        )
        await asyncio.wait_for(entered.wait(), timeout=1)

        await scheduler.start_monitoring(make_itinerary("second", ["Calm Town"]))
        gate.set()
        await asyncio.wait_for(first, timeout=1)
        status = scheduler.get_status()

        assert disruption_events == []
        assert status.session_id == 2
        assert status.itinerary_id == "second"
        assert status.total_checks == 1
        assert status.checked_locations == ["Calm Town"]

        await scheduler.aclose()
        await client.aclose()


class TestPeriodicCycles:
    """Test the background polling loop."""

    @pytest.mark.asyncio
    async def test_cycles_repeat_every_interval(
        self, settings: Settings, http_client: httpx.AsyncClient
    ) -> None:
        sleeper = ControlledSleep(free=2)
        scheduler = MonitoringScheduler(
            settings=settings, client=http_client, sleep_fn=sleeper, clock=lambda: NOW
        )

        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))
        await asyncio.wait_for(sleeper.blocked.wait(), timeout=1)

        assert scheduler.get_status().total_checks == 3
        assert sleeper.calls == [3600.0, 3600.0, 3600.0]

        scheduler.stop_monitoring()
        await asyncio.sleep(0)

        assert scheduler.get_status().total_checks == 3
        assert scheduler.get_status().state == MonitoringState.idle
        await scheduler.aclose()

    @pytest.mark.asyncio
    async def test_crashed_cycle_marks_error(self, scheduler: MonitoringScheduler) -> None:
        with patch.object(
            scheduler.context.detector, "detect", side_effect=RuntimeError("boom")
        ):
            await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))

        status = scheduler.get_status()
        assert status.state == MonitoringState.error
        assert status.last_error == "RuntimeError: boom"
        assert status.is_active is True
        assert status.total_checks == 0
        assert status.next_check_time == datetime(2026, 5, 1, 10, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_all_checks_failing_keeps_session_alive(
        self, scheduler: MonitoringScheduler, collaborators: Any, sleeper: ControlledSleep
    ) -> None:
        collaborators.weather_status["Old Goa"] = 503

        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))
        await asyncio.wait_for(sleeper.blocked.wait(), timeout=1)
        status = scheduler.get_status()

        assert status.state == MonitoringState.error
        assert status.last_error == "All 1 checks failed in the last cycle"
        assert status.total_checks == 1
        assert scheduler.is_active is True


class TestManualCheck:
    """Test check_now."""

    @pytest.mark.asyncio
    async def test_idle_scheduler_skips_check(
        self, scheduler: MonitoringScheduler, collaborators: Any
    ) -> None:
        assert await scheduler.check_now() is False
        assert collaborators.requests == []

    @pytest.mark.asyncio
    async def test_runs_extra_cycle(
        self, scheduler: MonitoringScheduler, collaborators: Any, sleeper: ControlledSleep
    ) -> None:
        collaborators.set_weather("Old Goa", wind=22.0)
        disruption_events: list[list[Disruption]] = []
        scheduler.subscribe(disruption_events.append)
        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))
        await asyncio.wait_for(sleeper.blocked.wait(), timeout=1)

        assert await scheduler.check_now() is True

        assert scheduler.get_status().total_checks == 2
        assert len(disruption_events) == 2
        assert len(collaborators.calls("/weather-data")) == 2

    @pytest.mark.asyncio
    async def test_skipped_while_cycle_in_flight(
        self, settings: Settings, sleeper: ControlledSleep, collaborators: Any
    ) -> None:
        gate = asyncio.Event()
        entered = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            entered.set()
            await gate.wait()
            return collaborators.handler(request)

        scheduler, client = make_scheduler(settings, handler, sleeper)

        first = asyncio.create_task(scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"])))
        await asyncio.wait_for(entered.wait(), timeout=1)

        assert await scheduler.check_now() is False
        gate.set()
        await asyncio.wait_for(first, timeout=1)

        assert scheduler.get_status().total_checks == 1
        assert len(collaborators.calls("/weather-data")) == 1

        await scheduler.aclose()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_stopped_scheduler_skips_check(
        self, scheduler: MonitoringScheduler, collaborators: Any
    ) -> None:
        await scheduler.start_monitoring(make_itinerary("trip", ["Old Goa"]))
        scheduler.stop_monitoring()

        assert await scheduler.check_now() is False
        assert len(collaborators.calls("/weather-data")) == 1


class TestIsolation:
    """Test that schedulers share nothing."""

    def test_contexts_are_independent(self, settings: Settings) -> None:
        first = MonitoringScheduler(settings=settings)
        second = MonitoringScheduler(settings=settings)

        assert first.context is not second.context
        assert first.context.breakers is not second.context.breakers
        assert first.context.tracker is not second.context.tracker
        assert first.context.names.cache is not second.context.names.cache
