"""Monitoring scheduler - owns the polling loop for one itinerary.

Lifecycle:
    idle --start_monitoring--> active --stop_monitoring--> idle

`start_monitoring` flips the status to active and publishes it before any
network call, runs the first detection cycle inline, then hands over to a
background loop that repeats every `check_interval_minutes`. Cycles of one
session run one at a time, including checks requested through `check_now`.
Each session carries a SessionToken; results from a stopped or superseded
session are dropped before they touch the tracker.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import httpx

from backend.tripwatch.config import Settings
from backend.tripwatch.geo.extractor import extract_locations
from backend.tripwatch.models.common import GeoKey
from backend.tripwatch.models.disruptions import Disruption
from backend.tripwatch.models.itinerary import Itinerary, TravelDates
from backend.tripwatch.models.status import MonitoringStatus
from backend.tripwatch.monitoring.channel import Callback, Subscription
from backend.tripwatch.monitoring.context import MonitoringContext
from backend.tripwatch.tools.executor import SessionCancelledError, SessionToken

logger = logging.getLogger(__name__)


class MonitoringConfigurationError(Exception):
    """Monitoring cannot start with the current configuration."""


class MonitoringScheduler:
    """Runs detection cycles for one itinerary at a time."""

    def __init__(
        self,
        context: MonitoringContext | None = None,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            context: Pre-built context (built from settings/client when omitted)
            settings: Settings for a new context
            client: Shared httpx client for a new context
            sleep_fn: Sleep between cycles (default: asyncio.sleep)
            clock: Current time source (default: UTC now)
        """
        self.context = context or MonitoringContext.create(settings=settings, client=client)
        self._sleep = sleep_fn or asyncio.sleep
        self._clock = clock or (lambda: datetime.now(UTC))

        self._session_id = 0
        self._token: SessionToken | None = None
        self._itinerary: Itinerary | None = None
        self._travel_dates: TravelDates | None = None
        self._locations: list[GeoKey] = []
        self._last_disruptions: list[Disruption] = []
        self._loop_task: asyncio.Task[None] | None = None
        self._sleeping = False
        self._cycle_lock = asyncio.Lock()
        self._background: set[asyncio.Task[None]] = set()

    @property
    def is_active(self) -> bool:
        return self._token is not None and not self._token.cancelled

    @property
    def itinerary(self) -> Itinerary | None:
        return self._itinerary

    @property
    def token(self) -> SessionToken | None:
        return self._token

    @property
    def locations(self) -> list[GeoKey]:
        return list(self._locations)

    @property
    def last_disruptions(self) -> list[Disruption]:
        """Disruptions found by the latest cycle of the current session."""
        return list(self._last_disruptions)

    def get_status(self) -> MonitoringStatus:
        return self.context.tracker.get_status()

    def subscribe(self, callback: Callback[list[Disruption]]) -> Subscription[list[Disruption]]:
        """Subscribe to non-empty disruption lists, one per cycle."""
        return self.context.disruptions.subscribe(callback)

    def subscribe_to_status(
        self, callback: Callback[MonitoringStatus]
    ) -> Subscription[MonitoringStatus]:
        """Subscribe to status snapshots; the current one is replayed first."""
        return self.context.tracker.subscribe_to_status(callback)

    async def start_monitoring(
        self,
        itinerary: Itinerary,
        travel_dates: TravelDates | None = None,
    ) -> None:
        """Start monitoring an itinerary, replacing any running session.

        Args:
            itinerary: Itinerary to monitor
            travel_dates: Trip window (defaults to the itinerary's own dates)

        Raises:
            MonitoringConfigurationError: If no maps API key is configured
        """
        settings = self.context.settings
        if not settings.google_maps_api_key:
            raise MonitoringConfigurationError(
                "GOOGLE_MAPS_API_KEY is not configured; monitoring is disabled"
            )

        self._teardown()

        self._session_id += 1
        token = SessionToken(session_id=self._session_id)
        self._token = token
        self._cycle_lock = asyncio.Lock()
        self._itinerary = itinerary
        self._travel_dates = travel_dates or itinerary.resolve_travel_dates()
        self._last_disruptions = []

        tracker = self.context.tracker
        self.context.normalizer.reset()
        self._locations = extract_locations(itinerary, self.context.normalizer)

        tracker.activate(token.session_id, itinerary.id, settings.check_interval_minutes)
        tracker.set_checked_locations(self._locations)
        self.context.names.schedule(self._locations, token)
        self.context.metrics.session_started()

        logger.info(
            "Monitoring session %d started for itinerary %s (%d locations)",
            token.session_id,
            itinerary.id,
            len(self._locations),
        )
        lock = self._cycle_lock
        async with lock:
            await tracker.publish()
            await self._run_cycle(token)

        if self._is_current(token):
            self._loop_task = asyncio.create_task(self._run_loop(token, lock))

    async def check_now(self) -> bool:
        """Run one detection cycle for the current session right away.

        Returns:
            False without checking when idle or while a cycle is in flight
        """
        token = self._token
        if token is None or token.cancelled:
            return False
        lock = self._cycle_lock
        if lock.locked():
            logger.info("Cycle already running for session %d; check skipped", token.session_id)
            return False

        logger.info("Manual check for session %d", token.session_id)
        async with lock:
            await self._run_cycle(token)
        return True

    def stop_monitoring(self) -> None:
        """Stop scheduling cycles. Safe to call in any state.

        A cycle already in flight finishes but its result is dropped.
        """
        token = self._token
        if token is None or token.cancelled:
            return

        logger.info("Monitoring session %d stopped", token.session_id)
        token.cancel()
        if self._loop_task is not None and self._sleeping:
            self._loop_task.cancel()
        self._loop_task = None
        self.context.names.cancel()
        self.context.metrics.session_stopped()

        tracker = self.context.tracker
        tracker.deactivate()
        self._publish_in_background()

    async def aclose(self) -> None:
        """Stop monitoring and release the context's resources."""
        self.stop_monitoring()
        for task in list(self._background):
            await asyncio.gather(task, return_exceptions=True)
        await self.context.aclose()

    def _teardown(self) -> None:
        """Drop the previous session without notifying subscribers."""
        if self._token is not None and not self._token.cancelled:
            self._token.cancel()
            self.context.metrics.session_stopped()
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        self._sleeping = False
        self.context.names.cancel()

    def _is_current(self, token: SessionToken) -> bool:
        return token is self._token and not token.cancelled

    def _publish_in_background(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; idle status not published")
            return
        task = loop.create_task(self.context.tracker.publish())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_loop(self, token: SessionToken, lock: asyncio.Lock) -> None:
        while self._is_current(token):
            next_check = self.context.tracker.get_status().next_check_time
            delay = 0.0
            if next_check is not None:
                delay = max(0.0, (next_check - self._clock()).total_seconds())

            self._sleeping = True
            try:
                await self._sleep(delay)
            finally:
                self._sleeping = False

            async with lock:
                if not self._is_current(token):
                    return
                await self._run_cycle(token)

    async def _run_cycle(self, token: SessionToken) -> None:
        """Run one detection cycle and publish its results.

        Publishes the disruption list (when non-empty) before the status
        snapshot, which is always published for the current session.
        """
        tracker = self.context.tracker
        started = self._clock()
        next_check = started + timedelta(minutes=self.context.settings.check_interval_minutes)

        try:
            result = await self.context.detector.detect(self._locations, self._travel_dates, token)
        except SessionCancelledError:
            logger.info("Session %d cancelled mid-cycle; result dropped", token.session_id)
            return
        except Exception as e:
            if not self._is_current(token):
                return
            logger.exception("Detection cycle failed for session %d", token.session_id)
            self.context.metrics.record_cycle("error")
            tracker.mark_error(f"{type(e).__name__}: {e}", next_check)
            await tracker.publish()
            return

        if not self._is_current(token):
            logger.info("Dropping result of stale session %d", token.session_id)
            return

        tracker.record_cycle(result, checked_at=self._clock(), next_check_time=next_check)
        self._last_disruptions = list(result.disruptions)
        self.context.metrics.record_cycle("error" if result.all_failed else "ok")

        if result.disruptions:
            for disruption in result.disruptions:
                self.context.metrics.record_disruption(disruption.type.value)
            await self.context.disruptions.publish(list(result.disruptions))

        if self._is_current(token):
            await tracker.publish()
