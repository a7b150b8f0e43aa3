"""Traffic classification - consecutive routes, delay and condition."""

from datetime import UTC, datetime

from backend.tripwatch.geo.normalizer import coordinate_distance_km
from backend.tripwatch.models.common import (
    DisruptionSeverity,
    DisruptionType,
    GeoKey,
    TrafficCondition,
)
from backend.tripwatch.models.disruptions import Disruption, TrafficSnapshot
from backend.tripwatch.models.tool_results import RouteTiming

DEFAULT_MIN_ROUTE_KM = 0.1
MAJOR_DELAY_MINUTES = 60.0


def build_route_pairs(
    locations: list[GeoKey],
    min_distance_km: float = DEFAULT_MIN_ROUTE_KM,
) -> list[tuple[GeoKey, GeoKey]]:
    """Consecutive (origin, destination) pairs worth a route lookup.

    Skips identical endpoints and coordinate pairs closer than
    `min_distance_km`.
    """
    pairs: list[tuple[GeoKey, GeoKey]] = []
    for origin, destination in zip(locations, locations[1:], strict=False):
        if origin == destination:
            continue
        distance = coordinate_distance_km(origin, destination)
        if distance is not None and distance < min_distance_km:
            continue
        pairs.append((origin, destination))
    return pairs


def delay_minutes(live_seconds: int, static_seconds: int) -> float:
    return max(0, live_seconds - static_seconds) / 60


def classify_delay(delay: float) -> TrafficCondition:
    """Map a delay in minutes to a traffic condition."""
    if delay == 0:
        return TrafficCondition.clear
    if delay < 15:
        return TrafficCondition.slow
    if delay < 60:
        return TrafficCondition.congested
    return TrafficCondition.blocked


def route_label(origin: str, destination: str) -> str:
    return f"{origin} to {destination}"


def build_snapshot(timing: RouteTiming, now: datetime | None = None) -> TrafficSnapshot:
    """Turn one route timing into a traffic snapshot."""
    delay = delay_minutes(timing.duration_seconds, timing.static_duration_seconds)
    return TrafficSnapshot(
        route=route_label(timing.origin, timing.destination),
        origin=timing.origin,
        destination=timing.destination,
        delay_minutes=delay,
        condition=classify_delay(delay),
        live_duration_seconds=timing.duration_seconds,
        static_duration_seconds=timing.static_duration_seconds,
        timestamp=now or datetime.now(UTC),
    )


def is_disruptive(snapshot: TrafficSnapshot) -> bool:
    if snapshot.condition == TrafficCondition.blocked:
        return True
    return snapshot.delay_minutes > MAJOR_DELAY_MINUTES


def snapshot_to_disruption(
    snapshot: TrafficSnapshot,
    origin_name: str | None = None,
    destination_name: str | None = None,
    now: datetime | None = None,
) -> Disruption:
    """Build a traffic Disruption from a disruptive snapshot."""
    now = now or datetime.now(UTC)
    delay = round(snapshot.delay_minutes)
    blocked = snapshot.condition == TrafficCondition.blocked
    return Disruption(
        id=f"traffic_{snapshot.route}_{int(now.timestamp() * 1000)}",
        type=DisruptionType.traffic,
        severity=DisruptionSeverity.high if blocked else DisruptionSeverity.moderate,
        title=f"Traffic Disruption: {snapshot.route}",
        description=f"Major delay of {delay} minutes due to traffic congestion",
        affected_locations=[snapshot.origin, snapshot.destination],
        location_names=[origin_name or snapshot.origin, destination_name or snapshot.destination],
        estimated_duration_minutes=delay,
        suggested_alternatives=["Leave earlier", "Use public transport", "Reschedule to later"],
        timestamp=now,
    )
