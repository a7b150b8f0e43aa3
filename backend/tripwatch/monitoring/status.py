"""Monitoring status tracker - mutable state behind immutable snapshots."""

import asyncio
import inspect
import logging
from datetime import datetime

from backend.tripwatch.detection.detector import DetectionResult
from backend.tripwatch.models.common import GeoKey, MonitoringState
from backend.tripwatch.models.disruptions import TrafficSnapshot
from backend.tripwatch.models.status import MonitoringStatus
from backend.tripwatch.monitoring.channel import Callback, EventChannel, Subscription

logger = logging.getLogger(__name__)


class MonitoringStatusTracker:
    """Holds one scheduler's monitoring state.

    Only the owning scheduler mutates the tracker. Readers get frozen
    `MonitoringStatus` copies from `get_status()` or the status channel.
    """

    def __init__(self, check_interval_minutes: int = 60) -> None:
        self.channel: EventChannel[MonitoringStatus] = EventChannel("status")
        self._default_interval = check_interval_minutes
        self._replays: set[asyncio.Task[None]] = set()
        self._reset_fields()

    def _reset_fields(self) -> None:
        self._state = MonitoringState.idle
        self._is_active = False
        self._session_id = 0
        self._itinerary_id: str | None = None
        self._last_check_time: datetime | None = None
        self._next_check_time: datetime | None = None
        self._checked_locations: list[GeoKey] = []
        self._location_names: dict[GeoKey, str] = {}
        self._check_interval_minutes = self._default_interval
        self._total_checks = 0
        self._weather_checks = 0
        self._traffic_checks = 0
        self._traffic_data: list[TrafficSnapshot] = []
        self._last_error: str | None = None

    def get_status(self) -> MonitoringStatus:
        """Snapshot of the current state; later changes never reach it."""
        return MonitoringStatus(
            state=self._state,
            is_active=self._is_active,
            session_id=self._session_id,
            itinerary_id=self._itinerary_id,
            last_check_time=self._last_check_time,
            next_check_time=self._next_check_time,
            checked_locations=list(self._checked_locations),
            location_names=dict(self._location_names),
            check_interval_minutes=self._check_interval_minutes,
            total_checks=self._total_checks,
            weather_checks=self._weather_checks,
            traffic_checks=self._traffic_checks,
            traffic_data=list(self._traffic_data),
            last_error=self._last_error,
        )

    def subscribe_to_status(
        self, callback: Callback[MonitoringStatus]
    ) -> Subscription[MonitoringStatus]:
        """Subscribe to status updates, replaying the current snapshot first.

        Returns:
            Subscription handle; call `unsubscribe()` to stop updates
        """
        subscription = self.channel.subscribe(callback)
        try:
            outcome = callback(self.get_status())
        except Exception:
            logger.exception("Status subscriber failed on replay")
            return subscription

        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._replays.add(task)
            task.add_done_callback(self._replays.discard)
        return subscription

    async def publish(self) -> None:
        await self.channel.publish(self.get_status())

    # Mutations, scheduler only

    def activate(
        self,
        session_id: int,
        itinerary_id: str,
        check_interval_minutes: int,
        location_names: dict[GeoKey, str] | None = None,
    ) -> None:
        """Start a fresh session: counters reset, state active."""
        self._reset_fields()
        self._state = MonitoringState.active
        self._is_active = True
        self._session_id = session_id
        self._itinerary_id = itinerary_id
        self._check_interval_minutes = check_interval_minutes
        if location_names:
            self._location_names.update(location_names)

    def deactivate(self) -> None:
        """Back to idle, keeping the last session's counters readable."""
        self._state = MonitoringState.idle
        self._is_active = False
        self._next_check_time = None

    def set_checked_locations(self, locations: list[GeoKey]) -> None:
        self._checked_locations = list(locations)

    def set_location_name(self, key: GeoKey, name: str) -> None:
        self._location_names[key] = name

    def location_name(self, key: GeoKey) -> str | None:
        return self._location_names.get(key)

    def set_next_check_time(self, when: datetime | None) -> None:
        self._next_check_time = when

    def record_cycle(
        self,
        result: DetectionResult,
        checked_at: datetime,
        next_check_time: datetime | None,
    ) -> None:
        """Fold one completed detection cycle into the counters."""
        self._total_checks += 1
        self._weather_checks += result.weather_checks
        self._traffic_checks += result.traffic_checks
        self._traffic_data = list(result.traffic_data)
        self._last_check_time = checked_at
        self._next_check_time = next_check_time

        if result.all_failed:
            self._state = MonitoringState.error
            self._last_error = f"All {result.attempts} checks failed in the last cycle"
        else:
            self._state = MonitoringState.active
            self._last_error = None

    def mark_error(self, message: str, next_check_time: datetime | None) -> None:
        """Record a cycle that could not complete. Counters are untouched."""
        self._state = MonitoringState.error
        self._last_error = message
        self._next_check_time = next_check_time
