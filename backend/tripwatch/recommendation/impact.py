"""Per-day impact summary for a set of disruptions."""

from backend.tripwatch.geo.extractor import extract_locations
from backend.tripwatch.geo.normalizer import GeoKeyNormalizer, is_coordinate
from backend.tripwatch.models.adjustments import ItineraryImpact
from backend.tripwatch.models.common import DisruptionSeverity
from backend.tripwatch.models.disruptions import Disruption
from backend.tripwatch.models.itinerary import Itinerary

SEVERITY_ORDER = [
    DisruptionSeverity.low,
    DisruptionSeverity.moderate,
    DisruptionSeverity.high,
    DisruptionSeverity.critical,
]

SEVERITY_TO_IMPACT = {
    DisruptionSeverity.low: "minor",
    DisruptionSeverity.moderate: "moderate",
    DisruptionSeverity.high: "major",
    DisruptionSeverity.critical: "major",
}


def analyze_itinerary_impact(
    disruptions: list[Disruption],
    itinerary: Itinerary,
    normalizer: GeoKeyNormalizer | None = None,
) -> list[ItineraryImpact]:
    """Summarize which days a set of disruptions touches.

    A day is affected when its accommodation or any activity location maps to
    one of a disruption's affected GeoKeys.

    Args:
        disruptions: Disruptions from one or more cycles
        itinerary: Itinerary to summarize
        normalizer: Session normalizer (a fresh one seeded from the itinerary otherwise)

    Returns:
        One ItineraryImpact per affected day, in itinerary order
    """
    if normalizer is None:
        normalizer = GeoKeyNormalizer()
        extract_locations(itinerary, normalizer)

    impacts: list[ItineraryImpact] = []

    for day in itinerary.days:
        keys = {
            normalizer.normalize(raw) if is_coordinate(raw) else raw for raw in day.locations()
        }
        touching = [d for d in disruptions if keys.intersection(d.affected_locations)]
        if not touching:
            continue

        worst = max((d.severity for d in touching), key=SEVERITY_ORDER.index)
        suggestions = [alt for d in touching for alt in d.suggested_alternatives]

        impacts.append(
            ItineraryImpact(
                day=day.day,
                affected_activities=[a.name for a in day.activities],
                impact_level=SEVERITY_TO_IMPACT[worst],
                suggestions=suggestions,
                alternative_activities=list(dict.fromkeys(suggestions)),
            )
        )

    return impacts
