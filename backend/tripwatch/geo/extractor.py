"""Extract the pollable locations of an itinerary."""

from backend.tripwatch.geo.normalizer import GeoKeyNormalizer, is_coordinate
from backend.tripwatch.models.common import GeoKey
from backend.tripwatch.models.itinerary import Itinerary

ACTIVITY_KEYWORDS = (
    "explore",
    "visit",
    "tour",
    "experience",
    "enjoy",
    "discover",
    "adventure",
    "activity",
    "attraction",
    "excursion",
    "outing",
    "market",
    "cuisine",
    "food",
    "shopping",
    "sightseeing",
)


def looks_like_activity_description(text: str) -> bool:
    """True for free text that reads like "Explore the local market".

    Needs at least 3 words and an activity keyword anywhere in the text.
    Legitimate names such as "Chandni Chowk Market" are caught too.
    """
    if not text:
        return False
    lower = text.lower()
    if len(lower.split()) < 3:
        return False
    return any(keyword in lower for keyword in ACTIVITY_KEYWORDS)


def is_pollable(location: str) -> bool:
    return is_coordinate(location) or not looks_like_activity_description(location)


def extract_locations(itinerary: Itinerary, normalizer: GeoKeyNormalizer) -> list[GeoKey]:
    """Unique pollable locations in order of first appearance.

    Args:
        itinerary: Itinerary to walk (accommodation first, then activities, per day)
        normalizer: Session normalizer; coordinates are merged through it

    Returns:
        GeoKeys for coordinates, exact strings for place names
    """
    ordered: dict[GeoKey, None] = {}

    for day in itinerary.days:
        for raw in day.locations():
            if not is_pollable(raw):
                continue
            key = normalizer.normalize(raw) if is_coordinate(raw) else raw
            ordered.setdefault(key, None)

    return list(ordered)
