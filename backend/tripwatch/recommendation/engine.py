"""Adjustment recommendation engine.

Turns one cycle's disruptions into an AdjustmentRecommendation:
1. Find the itinerary days each disruption touches
2. Weather: replace outdoor activities (live alternatives, rule table fallback)
3. Traffic/transportation: one reschedule suggestion per day past a delay threshold
4. Aggregate impact, risk and generic options
"""

import logging
import uuid
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING

import httpx

from backend.tripwatch.adapters.alternatives import fetch_alternatives
from backend.tripwatch.config import Settings, get_settings
from backend.tripwatch.geo.extractor import extract_locations
from backend.tripwatch.geo.normalizer import GeoKeyNormalizer, is_coordinate
from backend.tripwatch.models.adjustments import AdjustmentRecommendation, SmartAdjustment
from backend.tripwatch.models.common import (
    AdjustmentPriority,
    AdjustmentType,
    DisruptionSeverity,
    DisruptionType,
)
from backend.tripwatch.models.disruptions import Disruption
from backend.tripwatch.models.itinerary import Activity, Day, Itinerary
from backend.tripwatch.models.tool_results import AlternativesRequest, PlaceAlternative
from backend.tripwatch.monitoring.channel import Callback, EventChannel, Subscription
from backend.tripwatch.recommendation.rules import (
    SEVERITY_TO_PRIORITY,
    alternative_options,
    assess_weather_impact,
    categorize_activity,
    fallback_alternative,
    names_match,
    overall_impact,
    risk_level,
    weather_type_for,
)
from backend.tripwatch.tools.executor import (
    CallConfig,
    CallContext,
    CallExecutionError,
    CallTimeoutError,
    CircuitOpenError,
    CollaboratorExecutor,
    SessionCancelledError,
    SessionToken,
)
from backend.tripwatch.utils.metrics import PrometheusMonitoringMetrics

if TYPE_CHECKING:
    from backend.tripwatch.monitoring.scheduler import MonitoringScheduler

logger = logging.getLogger(__name__)

TRAFFIC_RESCHEDULE_MINUTES = 60
TRAFFIC_HIGH_PRIORITY_MINUTES = 120
TRANSPORT_RESCHEDULE_MINUTES = 30
TRANSPORT_COST_CHANGE = 500.0


def _now() -> datetime:
    return datetime.now(UTC)


class AdjustmentRecommendationEngine:
    """Builds one recommendation bundle per disruption list."""

    def __init__(
        self,
        settings: Settings | None = None,
        executor: CollaboratorExecutor | None = None,
        client: httpx.AsyncClient | None = None,
        normalizer: GeoKeyNormalizer | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            settings: Settings with the alternatives URL
            executor: Collaborator executor for alternatives lookups
            client: Shared httpx client
            normalizer: Session normalizer used to map day locations to GeoKeys
        """
        self._settings = settings or get_settings()
        self._executor = executor or CollaboratorExecutor(CallConfig.from_settings(self._settings))
        self._client = client
        self._normalizer = normalizer
        self._itinerary: Itinerary | None = None
        self._scheduler: MonitoringScheduler | None = None
        self._subscription: Subscription[list[Disruption]] | None = None
        self._metrics = PrometheusMonitoringMetrics()
        self.channel: EventChannel[AdjustmentRecommendation] = EventChannel("recommendations")
        self.latest: AdjustmentRecommendation | None = None

    def bind(self, itinerary: Itinerary) -> None:
        """Use this itinerary instead of the attached scheduler's."""
        self._itinerary = itinerary

    def attach(self, scheduler: "MonitoringScheduler") -> Subscription[list[Disruption]]:
        """Listen to a scheduler's disruption stream.

        Adopts the scheduler's executor, client and normalizer so lookups
        share its breakers and GeoKeys.
        """
        self.detach()
        self._scheduler = scheduler
        self._executor = scheduler.context.executor
        self._client = scheduler.context.client
        self._normalizer = scheduler.context.normalizer
        self._subscription = scheduler.subscribe(self._handle_disruptions)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._scheduler = None

    def subscribe(
        self, callback: Callback[AdjustmentRecommendation]
    ) -> Subscription[AdjustmentRecommendation]:
        """Subscribe to recommendation bundles."""
        return self.channel.subscribe(callback)

    async def _handle_disruptions(self, disruptions: list[Disruption]) -> None:
        if not disruptions:
            return
        token = self._token()
        recommendation = await self.on_disruptions(disruptions, token)
        if not self._is_current(token):
            logger.info("Session %d ended; dropping recommendation", token.session_id)
            return
        self.latest = recommendation
        self._metrics.record_recommendation(recommendation.overall_impact.value)
        await self.channel.publish(recommendation)

    def _current_itinerary(self) -> Itinerary | None:
        if self._itinerary is not None:
            return self._itinerary
        if self._scheduler is not None:
            return self._scheduler.itinerary
        return None

    def _token(self) -> SessionToken:
        if self._scheduler is not None and self._scheduler.token is not None:
            return self._scheduler.token
        return SessionToken(session_id=0)

    def _is_current(self, token: SessionToken) -> bool:
        if token.cancelled:
            return False
        return self._scheduler is None or self._scheduler.token is token

    async def on_disruptions(
        self, disruptions: list[Disruption], token: SessionToken | None = None
    ) -> AdjustmentRecommendation:
        """Build the recommendation bundle for one cycle's disruptions.

        Args:
            disruptions: Disruptions published by one detection cycle
            token: Session the lookups run under (default: the scheduler's current one)

        Returns:
            AdjustmentRecommendation, possibly with no adjustments
        """
        token = token or self._token()
        itinerary = self._current_itinerary()
        adjustments: list[SmartAdjustment] = []

        if itinerary is not None:
            normalizer = self._normalizer_for(itinerary)
            for disruption in disruptions:
                for day in find_affected_days(disruption, itinerary, normalizer):
                    adjustments.extend(await self._day_adjustments(disruption, day, token))

        recommendation = AdjustmentRecommendation(
            itinerary_id=itinerary.id if itinerary is not None else "current",
            adjustments=adjustments,
            overall_impact=overall_impact(adjustments),
            total_cost_change=sum(a.estimated_cost_change for a in adjustments),
            risk_level=risk_level(disruptions),
            alternative_options=alternative_options(adjustments),
            timestamp=_now(),
        )
        logger.info(
            "Recommendation for %s: %d adjustments, impact %s, risk %s",
            recommendation.itinerary_id,
            len(adjustments),
            recommendation.overall_impact.value,
            recommendation.risk_level.value,
        )
        return recommendation

    def _normalizer_for(self, itinerary: Itinerary) -> GeoKeyNormalizer:
        if self._normalizer is not None:
            return self._normalizer
        # Register every coordinate in itinerary order so merges match extraction
        normalizer = GeoKeyNormalizer(self._settings.geokey_merge_radius_km)
        extract_locations(itinerary, normalizer)
        return normalizer

    async def _day_adjustments(
        self, disruption: Disruption, day: Day, token: SessionToken
    ) -> list[SmartAdjustment]:
        if disruption.type == DisruptionType.weather:
            return await self._weather_adjustments(disruption, day, token)
        if disruption.type == DisruptionType.traffic:
            return traffic_adjustments(disruption, day)
        if disruption.type == DisruptionType.transportation:
            return transport_adjustments(disruption, day)
        return []

    async def _weather_adjustments(
        self, disruption: Disruption, day: Day, token: SessionToken
    ) -> list[SmartAdjustment]:
        weather_type = weather_type_for(disruption)
        adjustments: list[SmartAdjustment] = []

        for activity in day.activities:
            impact = assess_weather_impact(activity, weather_type)
            if not impact.needs_adjustment:
                continue

            alternative = await self.find_alternative(activity, weather_type, disruption, token)
            critical = impact.severity == DisruptionSeverity.critical
            adjustments.append(
                SmartAdjustment(
                    id=f"weather_{day.day}_{uuid.uuid4().hex[:8]}",
                    type=AdjustmentType.automatic if critical else AdjustmentType.suggested,
                    priority=SEVERITY_TO_PRIORITY[impact.severity],
                    title=f"Weather Adjustment: {activity.name}",
                    description=(
                        f"{weather_type} weather makes {activity.name} unsuitable. "
                        f"Suggested alternative: {alternative.name}"
                    ),
                    affected_day=day.day,
                    original_activity=activity.name,
                    suggested_alternative=alternative.name,
                    reason=f"Weather condition: {weather_type}. {impact.reason}",
                    estimated_cost_change=alternative.cost - activity.cost,
                    confidence=impact.confidence,
                    requires_approval=not critical,
                    timestamp=_now(),
                )
            )

        return adjustments

    async def find_alternative(
        self,
        activity: Activity,
        weather_type: str,
        disruption: Disruption | None = None,
        token: SessionToken | None = None,
    ) -> PlaceAlternative:
        """Best replacement for an activity: live lookup, then rule table.

        Args:
            activity: Activity being replaced
            weather_type: rain, storm, snow, fog, heat or cold
            disruption: Disruption supplying a fallback location label
            token: Session the lookup runs under

        Returns:
            First live alternative, or the rule-table alternative when the
            lookup fails or returns nothing
        """
        location = activity.location
        if not location and disruption is not None and disruption.location_names:
            location = disruption.location_names[0]

        request = AlternativesRequest(
            location=location or "",
            weather_type=weather_type,
            activity_type=categorize_activity(activity),
            original_activity=activity.name,
            budget=activity.cost,
        )
        lookup = partial(
            fetch_alternatives, base_url=self._settings.alternatives_api_url, client=self._client
        )
        token = token or self._token()
        ctx = CallContext(
            trace_id=uuid.uuid4().hex, session_id=token.session_id, collaborator="alternatives"
        )

        try:
            alternatives = await self._executor.execute(ctx, lookup, request, token)
        except (
            CallTimeoutError,
            CallExecutionError,
            CircuitOpenError,
            SessionCancelledError,
        ) as e:
            logger.info("Alternatives lookup failed for %s: %s", activity.name, e)
            alternatives = []

        if alternatives:
            return alternatives[0]
        return fallback_alternative(activity, weather_type)


def find_affected_days(
    disruption: Disruption,
    itinerary: Itinerary,
    normalizer: GeoKeyNormalizer,
) -> list[Day]:
    """Days touched by a disruption.

    A day is affected when an activity name fuzzily matches an affected
    location or its label, or when one of the day's own locations normalizes
    to an affected GeoKey.
    """
    keys = set(disruption.affected_locations)
    labels = [*disruption.affected_locations, *disruption.location_names]
    affected: list[Day] = []

    for day in itinerary.days:
        names = [a.name for a in day.activities if a.name]
        by_name = any(names_match(name, label) for name in names for label in labels)
        by_key = any(
            (normalizer.normalize(raw) if is_coordinate(raw) else raw) in keys
            for raw in day.locations()
        )
        if by_name or by_key:
            affected.append(day)

    return affected


def traffic_adjustments(disruption: Disruption, day: Day) -> list[SmartAdjustment]:
    """Reschedule suggestion when a traffic delay exceeds an hour."""
    delay = disruption.estimated_duration_minutes
    if delay <= TRAFFIC_RESCHEDULE_MINUTES:
        return []

    priority = AdjustmentPriority.medium
    if delay > TRAFFIC_HIGH_PRIORITY_MINUTES:
        priority = AdjustmentPriority.high
    return [
        SmartAdjustment(
            id=f"traffic_{day.day}_{uuid.uuid4().hex[:8]}",
            type=AdjustmentType.suggested,
            priority=priority,
            title="Traffic Delay: Reschedule Activities",
            description=(
                f"Traffic delay of {delay} minutes. Consider rescheduling outdoor activities."
            ),
            affected_day=day.day,
            original_activity="Outdoor activities",
            suggested_alternative="Indoor alternatives or later timing",
            reason=f"Traffic disruption: {disruption.description}",
            estimated_cost_change=0.0,
            confidence=85,
            requires_approval=True,
            timestamp=_now(),
        )
    ]


def transport_adjustments(disruption: Disruption, day: Day) -> list[SmartAdjustment]:
    """Alternative transport suggestion when a delay exceeds half an hour."""
    delay = disruption.estimated_duration_minutes
    if delay <= TRANSPORT_RESCHEDULE_MINUTES:
        return []

    return [
        SmartAdjustment(
            id=f"transport_{day.day}_{uuid.uuid4().hex[:8]}",
            type=AdjustmentType.suggested,
            priority=AdjustmentPriority.medium,
            title="Transportation Delay: Alternative Arrangements",
            description=(
                f"Transportation delay of {delay} minutes. "
                "Consider alternative transportation or reschedule."
            ),
            affected_day=day.day,
            original_activity="Scheduled transportation",
            suggested_alternative="Alternative transportation or reschedule",
            reason=f"Transportation disruption: {disruption.description}",
            estimated_cost_change=TRANSPORT_COST_CHANGE,
            confidence=80,
            requires_approval=True,
            timestamp=_now(),
        )
    ]
