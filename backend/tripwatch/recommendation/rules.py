"""Deterministic adjustment rules - activity classification and fallbacks."""

import math
from dataclasses import dataclass

from backend.tripwatch.models.adjustments import SmartAdjustment
from backend.tripwatch.models.common import (
    AdjustmentPriority,
    DisruptionSeverity,
    OverallImpact,
    RiskLevel,
    WeatherAlertType,
)
from backend.tripwatch.models.disruptions import Disruption
from backend.tripwatch.models.itinerary import Activity
from backend.tripwatch.models.tool_results import PlaceAlternative

OUTDOOR_KEYWORDS = ("hiking", "beach", "outdoor", "park", "garden", "monument")
DEFAULT_ACTIVITY_COST = 500.0

WEATHER_TITLE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "rain": ("rain", "rainy", "precipitation"),
    "storm": ("storm", "stormy", "thunderstorm"),
    "snow": ("snow", "snowy", "blizzard"),
    "fog": ("fog", "foggy", "mist"),
    "heat": ("heat", "hot", "extreme heat"),
    "cold": ("cold", "freezing", "extreme cold"),
}

ALERT_TO_WEATHER: dict[WeatherAlertType, str] = {
    WeatherAlertType.rain: "rain",
    WeatherAlertType.storm: "storm",
    WeatherAlertType.snow: "snow",
    WeatherAlertType.fog: "fog",
    WeatherAlertType.extreme_heat: "heat",
    WeatherAlertType.extreme_cold: "cold",
}

SEVERITY_TO_PRIORITY: dict[DisruptionSeverity, AdjustmentPriority] = {
    DisruptionSeverity.low: AdjustmentPriority.low,
    DisruptionSeverity.moderate: AdjustmentPriority.medium,
    DisruptionSeverity.high: AdjustmentPriority.high,
    DisruptionSeverity.critical: AdjustmentPriority.urgent,
}

HIGH_PRIORITIES = frozenset({AdjustmentPriority.high, AdjustmentPriority.urgent})
HIGH_SEVERITIES = frozenset({DisruptionSeverity.high, DisruptionSeverity.critical})


@dataclass(frozen=True)
class WeatherImpact:
    """How one weather type affects an outdoor activity."""

    needs_adjustment: bool
    severity: DisruptionSeverity
    reason: str
    confidence: int


WEATHER_IMPACT: dict[str, WeatherImpact] = {
    "rain": WeatherImpact(
        True, DisruptionSeverity.high, "Rain makes outdoor activities unsafe", 95
    ),
    "storm": WeatherImpact(
        True, DisruptionSeverity.critical, "Storms are dangerous for outdoor activities", 100
    ),
    "snow": WeatherImpact(
        True, DisruptionSeverity.moderate, "Snow may affect outdoor activities", 80
    ),
    "fog": WeatherImpact(True, DisruptionSeverity.low, "Fog reduces visibility", 70),
    "heat": WeatherImpact(True, DisruptionSeverity.moderate, "Extreme heat is uncomfortable", 85),
    "cold": WeatherImpact(True, DisruptionSeverity.moderate, "Extreme cold is uncomfortable", 85),
}

INDOOR = WeatherImpact(False, DisruptionSeverity.low, "Indoor activity", 90)
NO_IMPACT = WeatherImpact(False, DisruptionSeverity.low, "No significant impact", 50)


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def extract_weather_type(title: str) -> str:
    """Weather type named in a disruption title, or "unknown"."""
    lower = title.lower()
    for weather, keywords in WEATHER_TITLE_KEYWORDS.items():
        if any(keyword in lower for keyword in keywords):
            return weather
    return "unknown"


def weather_type_for(disruption: Disruption) -> str:
    if disruption.weather_type is not None:
        return ALERT_TO_WEATHER[disruption.weather_type]
    return extract_weather_type(disruption.title)


def is_outdoor(activity: Activity) -> bool:
    name = activity.name.lower()
    description = activity.description.lower()
    return any(keyword in name or keyword in description for keyword in OUTDOOR_KEYWORDS)


def assess_weather_impact(activity: Activity, weather_type: str) -> WeatherImpact:
    """Decide whether an activity needs replacing under a weather type.

    Indoor activities are never adjusted.
    """
    if not is_outdoor(activity):
        return INDOOR
    return WEATHER_IMPACT.get(weather_type, NO_IMPACT)


def categorize_activity(activity: Activity) -> str:
    """Coarse activity category sent to the alternatives lookup."""
    name = activity.name.lower()
    if "museum" in name or "gallery" in name:
        return "cultural"
    if "beach" in name or "park" in name:
        return "outdoor"
    if "tour" in name or "visit" in name:
        return "sightseeing"
    if "adventure" in name or "hiking" in name:
        return "adventure"
    if "shopping" in name or "mall" in name:
        return "shopping"
    if "food" in name or "restaurant" in name:
        return "dining"
    return "general"


def fallback_alternative(activity: Activity, weather_type: str) -> PlaceAlternative:
    """Rule-table replacement used when the live lookup has nothing.

    Args:
        activity: Activity being replaced
        weather_type: rain, storm, snow, fog, heat or cold

    Returns:
        Alternative priced relative to the activity (500 when it has no cost)
    """
    name = activity.name.lower()
    base = activity.cost or DEFAULT_ACTIVITY_COST
    wet = weather_type in ("rain", "storm")

    if wet and any(k in name for k in ("tour", "visit", "monument")):
        return PlaceAlternative(
            name="Indoor Heritage Museum",
            cost=round_half_up(base * 0.8),
            description="Educational indoor museum experience",
            duration=activity.duration or 2,
            location=activity.location,
        )

    if wet and any(k in name for k in ("beach", "outdoor", "park")):
        return PlaceAlternative(
            name="Shopping Mall & Entertainment Center",
            cost=round_half_up(base * 1.1),
            description="Indoor shopping and entertainment experience",
            duration=activity.duration or 3,
            location=activity.location,
        )

    if "adventure" in name or "hiking" in name:
        return PlaceAlternative(
            name="Indoor Adventure Park",
            cost=round_half_up(base * 1.2),
            description="Weather-protected adventure activities",
            duration=activity.duration or 2,
            location=activity.location,
        )

    return PlaceAlternative(
        name="Cultural Center & Museum",
        cost=round_half_up(base * 0.9),
        description="Indoor cultural experience",
        duration=activity.duration or 2,
        location=activity.location,
    )


def names_match(activity_name: str, location: str) -> bool:
    """Fuzzy activity-to-location match.

    Case-insensitive equality or containment either way, or both mentioning
    "tour", or both mentioning "visit".
    """
    activity_lower = activity_name.lower()
    location_lower = location.lower()
    if not activity_lower or not location_lower:
        return False
    return (
        activity_lower == location_lower
        or location_lower in activity_lower
        or activity_lower in location_lower
        or ("tour" in activity_lower and "tour" in location_lower)
        or ("visit" in activity_lower and "visit" in location_lower)
    )


def overall_impact(adjustments: list[SmartAdjustment]) -> OverallImpact:
    if not adjustments:
        return OverallImpact.minimal

    high_count = sum(1 for a in adjustments if a.priority in HIGH_PRIORITIES)
    total_cost = abs(sum(a.estimated_cost_change for a in adjustments))

    if high_count > 2 or total_cost > 2000:
        return OverallImpact.significant
    if high_count > 0 or total_cost > 500:
        return OverallImpact.moderate
    return OverallImpact.minimal


def risk_level(disruptions: list[Disruption]) -> RiskLevel:
    severe = sum(1 for d in disruptions if d.severity in HIGH_SEVERITIES)
    if severe > 2:
        return RiskLevel.high
    if severe > 0:
        return RiskLevel.medium
    return RiskLevel.low


def alternative_options(adjustments: list[SmartAdjustment]) -> list[str]:
    """Ordered, de-duplicated generic options for the bundle."""
    options: dict[str, None] = {}
    for adjustment in adjustments:
        options.setdefault(f"Reschedule to {adjustment.suggested_alternative}", None)
        options.setdefault("Find indoor alternatives", None)
        options.setdefault("Adjust timing for better conditions", None)
        options.setdefault("Consider flexible booking options", None)
    return list(options)
