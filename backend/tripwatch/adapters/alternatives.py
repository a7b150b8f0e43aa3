"""Weather alternatives adapter - indoor replacements for sensitive activities."""

import httpx

from backend.tripwatch.models.tool_results import AlternativesRequest, PlaceAlternative


async def fetch_alternatives(
    request: AlternativesRequest,
    base_url: str,
    client: httpx.AsyncClient | None = None,
) -> list[PlaceAlternative]:
    """Look up weather-appropriate alternatives for one activity.

    Args:
        request: Location, weather type, activity category and budget
        base_url: Alternatives endpoint URL
        client: Optional httpx client (for testing with mocks)

    Returns:
        Candidate alternatives in the order the service ranked them

    Raises:
        httpx.HTTPError: On network or HTTP errors
    """
    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=4.0)
        close_client = True

    try:
        response = await client.post(
            base_url,
            json={
                "location": request.location,
                "weatherType": request.weather_type,
                "activityType": request.activity_type,
                "originalActivity": request.original_activity,
                "budget": request.budget,
            },
        )
        response.raise_for_status()
        data = response.json()
        return [PlaceAlternative.model_validate(a) for a in data.get("alternatives") or []]
    finally:
        if close_client:
            await client.aclose()
