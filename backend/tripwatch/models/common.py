"""Common types and enums shared across all models."""

from enum import Enum

# Canonical location identifier: a rounded "lat,lng" string or a raw place name.
GeoKey = str


class DisruptionType(str, Enum):
    """Kind of real-world condition."""

    weather = "weather"
    traffic = "traffic"
    transportation = "transportation"
    venue_closed = "venue_closed"


class DisruptionSeverity(str, Enum):
    """Severity of a surfaced disruption."""

    low = "low"
    moderate = "moderate"
    high = "high"
    critical = "critical"


class WeatherAlertType(str, Enum):
    """Weather alert categories."""

    rain = "rain"
    storm = "storm"
    snow = "snow"
    fog = "fog"
    extreme_heat = "extreme_heat"
    extreme_cold = "extreme_cold"


class AlertSeverity(str, Enum):
    """Severity of a raw weather alert."""

    low = "low"
    moderate = "moderate"
    high = "high"
    extreme = "extreme"


class AlertImpact(str, Enum):
    """Expected impact of a raw weather alert."""

    minimal = "minimal"
    moderate = "moderate"
    significant = "significant"
    severe = "severe"


class TrafficCondition(str, Enum):
    """Traffic condition derived from route delay."""

    clear = "clear"
    slow = "slow"
    congested = "congested"
    blocked = "blocked"


class AdjustmentType(str, Enum):
    """How an adjustment should be applied."""

    automatic = "automatic"
    suggested = "suggested"
    critical = "critical"


class AdjustmentPriority(str, Enum):
    """Adjustment priority."""

    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class OverallImpact(str, Enum):
    """Aggregate impact of a recommendation bundle."""

    minimal = "minimal"
    moderate = "moderate"
    significant = "significant"


class RiskLevel(str, Enum):
    """Aggregate risk of a recommendation bundle."""

    low = "low"
    medium = "medium"
    high = "high"


class MonitoringState(str, Enum):
    """Consumer-facing monitoring state."""

    idle = "idle"
    active = "active"
    error = "error"
