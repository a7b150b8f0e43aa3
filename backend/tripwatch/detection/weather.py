"""Weather classification - readings to alerts, alerts to disruptions."""

from datetime import UTC, datetime

from backend.tripwatch.models.common import (
    AlertImpact,
    AlertSeverity,
    DisruptionSeverity,
    DisruptionType,
    GeoKey,
    WeatherAlertType,
)
from backend.tripwatch.models.disruptions import Disruption, WeatherAlert
from backend.tripwatch.models.tool_results import WeatherReading

FOG_KEYWORDS = ("fog", "mist", "haze")
RAIN_KEYWORDS = ("rain", "drizzle", "shower", "thunderstorm")
SNOW_KEYWORDS = ("snow", "sleet")

STORM_WIND_MS = 10.0
EXTREME_WIND_MS = 20.0
HEAT_THRESHOLD_C = 35.0
COLD_THRESHOLD_C = 0.0
FOG_VISIBILITY_KM = 1.0
HEAVY_RAIN_MM = 20.0
LIKELY_RAIN_PCT = 60.0
VERY_LIKELY_RAIN_PCT = 80.0

# Expected duration (minutes) per alert type
WEATHER_DURATION_MINUTES: dict[WeatherAlertType, int] = {
    WeatherAlertType.rain: 360,
    WeatherAlertType.storm: 180,
    WeatherAlertType.snow: 720,
    WeatherAlertType.fog: 120,
    WeatherAlertType.extreme_heat: 480,
    WeatherAlertType.extreme_cold: 480,
}

WEATHER_ALTERNATIVES: dict[WeatherAlertType, list[str]] = {
    WeatherAlertType.rain: [
        "Indoor activities",
        "Museum visits",
        "Shopping centers",
        "Restaurants",
    ],
    WeatherAlertType.storm: ["Indoor attractions", "Hotel activities", "Spa services"],
    WeatherAlertType.snow: ["Winter sports", "Indoor activities", "Hot springs"],
    WeatherAlertType.fog: ["Indoor activities", "Delayed outdoor activities"],
    WeatherAlertType.extreme_heat: [
        "Air-conditioned venues",
        "Early morning activities",
        "Evening activities",
    ],
    WeatherAlertType.extreme_cold: ["Indoor activities", "Warm clothing recommendations"],
}

SURFACED_IMPACTS = frozenset({AlertImpact.moderate, AlertImpact.significant, AlertImpact.severe})

SEVERITY_MAP: dict[AlertSeverity, DisruptionSeverity] = {
    AlertSeverity.low: DisruptionSeverity.low,
    AlertSeverity.moderate: DisruptionSeverity.moderate,
    AlertSeverity.high: DisruptionSeverity.high,
    AlertSeverity.extreme: DisruptionSeverity.critical,
}


def _matches(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def _rain_alert(reading: WeatherReading) -> WeatherAlert:
    precip = reading.precipitation_mm
    probability = reading.precipitation_probability

    if precip is not None and precip > HEAVY_RAIN_MM:
        return WeatherAlert(
            type=WeatherAlertType.rain,
            severity=AlertSeverity.high,
            impact=AlertImpact.significant,
            message=f"Heavy rain ({precip:.2f}mm) detected",
        )
    if precip is not None and precip > 0:
        return WeatherAlert(
            type=WeatherAlertType.rain,
            severity=AlertSeverity.moderate,
            impact=AlertImpact.moderate,
            message=f"Rain ({precip:.2f}mm) detected",
        )
    if probability is not None and probability > VERY_LIKELY_RAIN_PCT:
        return WeatherAlert(
            type=WeatherAlertType.rain,
            severity=AlertSeverity.high,
            impact=AlertImpact.significant,
            message=f"Heavy rain likely ({probability:.0f}% chance)",
        )
    if probability is not None and probability > LIKELY_RAIN_PCT:
        return WeatherAlert(
            type=WeatherAlertType.rain,
            severity=AlertSeverity.moderate,
            impact=AlertImpact.moderate,
            message=f"Rain likely ({probability:.0f}% chance)",
        )
    return WeatherAlert(
        type=WeatherAlertType.rain,
        severity=AlertSeverity.moderate,
        impact=AlertImpact.moderate,
        message=f"Rain reported: {reading.description or reading.condition}",
    )


def classify_weather(reading: WeatherReading) -> list[WeatherAlert]:
    """Classify one reading into zero or more simultaneous alerts.

    Args:
        reading: Current conditions at one location

    Returns:
        Alerts in a stable order: fog, rain, snow, storm, heat, cold
    """
    alerts: list[WeatherAlert] = []
    text = reading.condition_text

    if _matches(text, FOG_KEYWORDS) or reading.visibility_km < FOG_VISIBILITY_KM:
        alerts.append(
            WeatherAlert(
                type=WeatherAlertType.fog,
                severity=AlertSeverity.moderate,
                impact=AlertImpact.moderate,
                message=f"Reduced visibility ({reading.visibility_km:.1f}km) due to fog",
            )
        )

    precip = reading.precipitation_mm
    probability = reading.precipitation_probability
    if (
        _matches(text, RAIN_KEYWORDS)
        or (precip is not None and precip > 0)
        or (probability is not None and probability > LIKELY_RAIN_PCT)
    ):
        alerts.append(_rain_alert(reading))

    if _matches(text, SNOW_KEYWORDS):
        alerts.append(
            WeatherAlert(
                type=WeatherAlertType.snow,
                severity=AlertSeverity.moderate,
                impact=AlertImpact.moderate,
                message=f"Snow reported: {reading.description or reading.condition}",
            )
        )

    wind = reading.wind_speed_ms
    if wind > STORM_WIND_MS:
        extreme = wind > EXTREME_WIND_MS
        alerts.append(
            WeatherAlert(
                type=WeatherAlertType.storm,
                severity=AlertSeverity.extreme if extreme else AlertSeverity.high,
                impact=AlertImpact.severe if extreme else AlertImpact.significant,
                message=f"Strong winds ({wind} m/s) detected",
            )
        )

    temp = reading.temperature_c
    if temp is not None and temp > HEAT_THRESHOLD_C:
        alerts.append(
            WeatherAlert(
                type=WeatherAlertType.extreme_heat,
                severity=AlertSeverity.high,
                impact=AlertImpact.significant,
                message=f"Extreme heat ({temp}°C) detected",
            )
        )
    elif temp is not None and temp < COLD_THRESHOLD_C:
        alerts.append(
            WeatherAlert(
                type=WeatherAlertType.extreme_cold,
                severity=AlertSeverity.moderate,
                impact=AlertImpact.moderate,
                message=f"Extreme cold ({temp}°C) detected",
            )
        )

    return alerts


def is_surfaced(alert: WeatherAlert) -> bool:
    """Only moderate-or-worse impact alerts become disruptions."""
    return alert.impact in SURFACED_IMPACTS


def alert_to_disruption(
    alert: WeatherAlert,
    location: GeoKey,
    location_name: str | None = None,
    now: datetime | None = None,
) -> Disruption:
    """Promote a surfaced alert to a weather Disruption for one location."""
    now = now or datetime.now(UTC)
    return Disruption(
        id=f"weather_{alert.type.value}_{location}_{int(now.timestamp() * 1000)}",
        type=DisruptionType.weather,
        severity=SEVERITY_MAP[alert.severity],
        title=f"Weather Alert: {alert.type.value.upper()}",
        description=alert.message,
        affected_locations=[location],
        location_names=[location_name or location],
        estimated_duration_minutes=WEATHER_DURATION_MINUTES.get(alert.type, 180),
        suggested_alternatives=list(WEATHER_ALTERNATIVES.get(alert.type, ["Indoor alternatives"])),
        weather_type=alert.type,
        alert_severity=alert.severity,
        timestamp=now,
    )
