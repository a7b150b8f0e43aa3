"""Monitoring status snapshot model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from backend.tripwatch.models.common import GeoKey, MonitoringState
from backend.tripwatch.models.disruptions import TrafficSnapshot


class MonitoringStatus(BaseModel):
    """Immutable snapshot of one scheduler's monitoring state.

    Snapshots are copies: mutating `location_names` on a received snapshot
    never reaches the tracker.
    """

    model_config = ConfigDict(frozen=True)

    state: MonitoringState = MonitoringState.idle
    is_active: bool = False
    session_id: int = 0
    itinerary_id: str | None = None
    last_check_time: datetime | None = None
    next_check_time: datetime | None = None
    checked_locations: list[GeoKey] = Field(default_factory=list)
    location_names: dict[GeoKey, str] = Field(default_factory=dict)
    check_interval_minutes: int = 60
    total_checks: int = 0
    weather_checks: int = 0
    traffic_checks: int = 0
    traffic_data: list[TrafficSnapshot] = Field(default_factory=list)
    last_error: str | None = None
