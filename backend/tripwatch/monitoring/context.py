"""Per-scheduler monitoring context.

Everything one monitoring scheduler shares between its components lives
here: the HTTP client, status tracker, session normalizer, breaker registry,
collaborator executor, place-name cache and the disruption channel. Two
schedulers never share a context.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from backend.tripwatch.config import Settings, get_settings
from backend.tripwatch.detection.detector import DisruptionDetector
from backend.tripwatch.geo.normalizer import GeoKeyNormalizer
from backend.tripwatch.models.disruptions import Disruption
from backend.tripwatch.monitoring.channel import EventChannel
from backend.tripwatch.monitoring.names import LocationNameResolver
from backend.tripwatch.monitoring.status import MonitoringStatusTracker
from backend.tripwatch.tools.executor import BreakerRegistry, CallConfig, CollaboratorExecutor
from backend.tripwatch.utils.logging import StructuredCallLogger
from backend.tripwatch.utils.metrics import PrometheusCallMetrics, PrometheusMonitoringMetrics


@dataclass
class MonitoringContext:
    """Shared state of one monitoring scheduler."""

    settings: Settings
    client: httpx.AsyncClient
    tracker: MonitoringStatusTracker
    normalizer: GeoKeyNormalizer
    breakers: BreakerRegistry
    executor: CollaboratorExecutor
    names: LocationNameResolver
    detector: DisruptionDetector
    disruptions: EventChannel[list[Disruption]]
    metrics: PrometheusMonitoringMetrics
    owns_client: bool = False

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        retry_sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> "MonitoringContext":
        """Wire a context from settings.

        Args:
            settings: Settings (defaults to the cached environment settings)
            client: Shared httpx client (created and owned here when omitted)
            retry_sleep_fn: Sleep used between collaborator retries

        Returns:
            A fresh context with its own breakers, normalizer and name cache
        """
        settings = settings or get_settings()
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=settings.collaborator_hard_timeout_ms / 1000)

        tracker = MonitoringStatusTracker(settings.check_interval_minutes)
        breakers = BreakerRegistry()
        executor = CollaboratorExecutor(
            config=CallConfig.from_settings(settings),
            breakers=breakers,
            metrics=PrometheusCallMetrics(),
            logger=StructuredCallLogger(),
            sleep_fn=retry_sleep_fn,
        )
        names = LocationNameResolver(executor, tracker, settings, client)

        return cls(
            settings=settings,
            client=client,
            tracker=tracker,
            normalizer=GeoKeyNormalizer(settings.geokey_merge_radius_km),
            breakers=breakers,
            executor=executor,
            names=names,
            detector=DisruptionDetector(executor, settings, client, label_for=names.label_for),
            disruptions=EventChannel("disruptions"),
            metrics=PrometheusMonitoringMetrics(),
            owns_client=owns_client,
        )

    async def aclose(self) -> None:
        self.names.cancel()
        if self.owns_client:
            await self.client.aclose()
