"""Disruption models - conditions detected during a monitoring cycle."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from backend.tripwatch.models.common import (
    AlertImpact,
    AlertSeverity,
    DisruptionSeverity,
    DisruptionType,
    GeoKey,
    TrafficCondition,
    WeatherAlertType,
)


class WeatherAlert(BaseModel):
    """Raw weather alert for one location, before promotion to a disruption."""

    model_config = ConfigDict(frozen=True)

    type: WeatherAlertType
    severity: AlertSeverity
    impact: AlertImpact
    message: str


class Disruption(BaseModel):
    """A detected condition that may invalidate part of an itinerary.

    `affected_locations` carries GeoKeys; `location_names` carries the matching
    human-readable labels in the same order.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: DisruptionType
    severity: DisruptionSeverity
    title: str
    description: str
    affected_locations: list[GeoKey]
    location_names: list[str] = Field(default_factory=list)
    estimated_duration_minutes: int = Field(..., ge=0)
    suggested_alternatives: list[str] = Field(default_factory=list)
    weather_type: WeatherAlertType | None = None
    alert_severity: AlertSeverity | None = None
    timestamp: datetime


class TrafficSnapshot(BaseModel):
    """Traffic reading for one consecutive pair of itinerary locations."""

    model_config = ConfigDict(frozen=True)

    route: str
    origin: GeoKey
    destination: GeoKey
    delay_minutes: float = Field(..., ge=0)
    condition: TrafficCondition
    live_duration_seconds: int
    static_duration_seconds: int
    timestamp: datetime
