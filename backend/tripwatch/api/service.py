"""Process-level monitoring service behind the HTTP routes."""

import asyncio
import logging
from functools import lru_cache

from backend.tripwatch.config import Settings, get_settings
from backend.tripwatch.models.adjustments import AdjustmentRecommendation, ItineraryImpact
from backend.tripwatch.models.itinerary import Itinerary, TravelDates
from backend.tripwatch.models.status import MonitoringStatus
from backend.tripwatch.monitoring.scheduler import (
    MonitoringConfigurationError,
    MonitoringScheduler,
)
from backend.tripwatch.recommendation.engine import AdjustmentRecommendationEngine
from backend.tripwatch.recommendation.impact import analyze_itinerary_impact

logger = logging.getLogger(__name__)


class MonitoringService:
    """One scheduler plus the recommendation engine listening to it."""

    def __init__(
        self, scheduler: MonitoringScheduler, engine: AdjustmentRecommendationEngine
    ) -> None:
        self.scheduler = scheduler
        self.engine = engine
        self._start_task: asyncio.Task[None] | None = None

    @classmethod
    def create(cls, settings: Settings | None = None) -> "MonitoringService":
        settings = settings or get_settings()
        scheduler = MonitoringScheduler(settings=settings)
        engine = AdjustmentRecommendationEngine(settings=settings)
        engine.attach(scheduler)
        return cls(scheduler, engine)

    @property
    def settings(self) -> Settings:
        return self.scheduler.context.settings

    def check_configuration(self) -> None:
        """Raise MonitoringConfigurationError if monitoring cannot run."""
        if not self.settings.google_maps_api_key:
            raise MonitoringConfigurationError(
                "GOOGLE_MAPS_API_KEY is not configured; monitoring is disabled"
            )

    async def start(
        self, itinerary: Itinerary, travel_dates: TravelDates | None = None
    ) -> MonitoringStatus:
        """Start monitoring without waiting for the first cycle to finish.

        Returns:
            Status snapshot taken once the session is active

        Raises:
            MonitoringConfigurationError: If monitoring cannot run
        """
        self.check_configuration()
        self.engine.latest = None
        self._start_task = asyncio.create_task(
            self.scheduler.start_monitoring(itinerary, travel_dates)
        )
        self._start_task.add_done_callback(self._log_start_failure)
        # Let the session activate before reporting status
        await asyncio.sleep(0)
        return self.scheduler.get_status()

    async def check_now(self) -> bool:
        """Run one detection cycle now; False if idle or a cycle is in flight."""
        return await self.scheduler.check_now()

    def stop(self) -> MonitoringStatus:
        self.scheduler.stop_monitoring()
        return self.scheduler.get_status()

    def status(self) -> MonitoringStatus:
        return self.scheduler.get_status()

    def latest_recommendation(self) -> AdjustmentRecommendation | None:
        return self.engine.latest

    def itinerary_impact(self) -> list[ItineraryImpact]:
        """Per-day impact of the disruptions found by the latest cycle."""
        itinerary = self.scheduler.itinerary
        if itinerary is None:
            return []
        return analyze_itinerary_impact(
            self.scheduler.last_disruptions, itinerary, self.scheduler.context.normalizer
        )

    async def aclose(self) -> None:
        self.engine.detach()
        await self.scheduler.aclose()

    @staticmethod
    def _log_start_failure(task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Monitoring start failed: %s", error, exc_info=error)


@lru_cache
def get_monitoring_service() -> MonitoringService:
    """Get the cached process-wide monitoring service."""
    return MonitoringService.create()
