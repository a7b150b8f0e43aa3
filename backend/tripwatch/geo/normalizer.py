"""GeoKey normalization - collapse near-duplicate coordinates into one key."""

import math
import re

from backend.tripwatch.models.common import GeoKey

EARTH_RADIUS_KM = 6371.0
DEFAULT_MERGE_RADIUS_KM = 0.05  # 50 m

COORDINATE_PATTERN = re.compile(r"^\s*([+-]?\d+(?:\.\d+)?)\s*,\s*([+-]?\d+(?:\.\d+)?)\s*$")


def parse_coordinates(value: str) -> tuple[float, float] | None:
    """Parse a "lat,lng" string.

    Returns:
        (lat, lng) or None if value is not a coordinate pair
    """
    match = COORDINATE_PATTERN.match(value)
    if not match:
        return None
    return float(match.group(1)), float(match.group(2))


def is_coordinate(value: str) -> bool:
    return COORDINATE_PATTERN.match(value) is not None


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def coordinate_distance_km(a: str, b: str) -> float | None:
    """Distance between two coordinate strings, None if either is a place name."""
    first = parse_coordinates(a)
    second = parse_coordinates(b)
    if first is None or second is None:
        return None
    return haversine_km(first[0], first[1], second[0], second[1])


def round_key(lat: float, lng: float) -> GeoKey:
    """Round to 4 decimals (~11 m)."""
    return f"{lat:.4f},{lng:.4f}"


def normalize(
    candidate: str,
    seen: dict[GeoKey, GeoKey],
    merge_radius_km: float = DEFAULT_MERGE_RADIUS_KM,
) -> GeoKey:
    """Map a raw location onto its canonical GeoKey.

    Args:
        candidate: Raw location string ("lat,lng" or a place name)
        seen: Rounded key -> canonical key registry, updated in place
        merge_radius_km: Keys closer than this collapse onto the earlier key

    Returns:
        The candidate unchanged for place names; otherwise the canonical key
    """
    coords = parse_coordinates(candidate)
    if coords is None:
        return candidate

    rounded = round_key(*coords)
    if rounded in seen:
        return seen[rounded]

    lat, lng = parse_coordinates(rounded)  # type: ignore[misc]
    for canonical in dict.fromkeys(seen.values()):
        existing = parse_coordinates(canonical)
        if existing is None:
            continue
        if haversine_km(lat, lng, existing[0], existing[1]) <= merge_radius_km:
            seen[rounded] = canonical
            return canonical

    seen[rounded] = rounded
    return rounded


class GeoKeyNormalizer:
    """Session-scoped normalizer.

    Two coordinates within the merge radius resolve to the same key for the
    lifetime of one instance.
    """

    def __init__(self, merge_radius_km: float = DEFAULT_MERGE_RADIUS_KM) -> None:
        self.merge_radius_km = merge_radius_km
        self._seen: dict[GeoKey, GeoKey] = {}

    def normalize(self, candidate: str) -> GeoKey:
        return normalize(candidate, self._seen, self.merge_radius_km)

    def keys(self) -> list[GeoKey]:
        """Canonical keys registered so far, in registration order."""
        return list(dict.fromkeys(self._seen.values()))

    def reset(self) -> None:
        self._seen.clear()
