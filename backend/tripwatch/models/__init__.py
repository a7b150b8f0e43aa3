"""Models package - re-exports for convenience."""

from backend.tripwatch.models.adjustments import (
    AdjustmentRecommendation,
    ItineraryImpact,
    SmartAdjustment,
)
from backend.tripwatch.models.common import (
    AdjustmentPriority,
    AdjustmentType,
    AlertImpact,
    AlertSeverity,
    DisruptionSeverity,
    DisruptionType,
    GeoKey,
    MonitoringState,
    OverallImpact,
    RiskLevel,
    TrafficCondition,
    WeatherAlertType,
)
from backend.tripwatch.models.disruptions import Disruption, TrafficSnapshot, WeatherAlert
from backend.tripwatch.models.itinerary import (
    Accommodation,
    Activity,
    Day,
    Itinerary,
    TravelDates,
)
from backend.tripwatch.models.status import MonitoringStatus
from backend.tripwatch.models.tool_results import (
    AlternativesRequest,
    PlaceAlternative,
    ReverseGeocodeRequest,
    RouteRequest,
    RouteTiming,
    WeatherReading,
    WeatherRequest,
)

__all__ = [
    # Common
    "GeoKey",
    "DisruptionType",
    "DisruptionSeverity",
    "WeatherAlertType",
    "AlertSeverity",
    "AlertImpact",
    "TrafficCondition",
    "AdjustmentType",
    "AdjustmentPriority",
    "OverallImpact",
    "RiskLevel",
    "MonitoringState",
    # Itinerary
    "Itinerary",
    "Day",
    "Accommodation",
    "Activity",
    "TravelDates",
    # Collaborator shapes
    "WeatherRequest",
    "WeatherReading",
    "RouteRequest",
    "RouteTiming",
    "ReverseGeocodeRequest",
    "AlternativesRequest",
    "PlaceAlternative",
    # Disruptions
    "WeatherAlert",
    "Disruption",
    "TrafficSnapshot",
    # Adjustments
    "SmartAdjustment",
    "AdjustmentRecommendation",
    "ItineraryImpact",
    # Status
    "MonitoringStatus",
]
