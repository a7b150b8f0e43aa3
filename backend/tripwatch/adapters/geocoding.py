"""Reverse geocoding adapter - coordinate to human-readable place name."""

from typing import Any

import httpx

from backend.tripwatch.models.tool_results import ReverseGeocodeRequest

PLACE_COMPONENT_TYPES = ("locality", "sublocality")


def pick_place_name(data: dict[str, Any]) -> str | None:
    """Choose the best label from a geocoding response.

    Prefers a locality or sublocality component of the first result, then its
    formatted address.
    """
    results = data.get("results") or []
    if not results:
        return None

    first = results[0]
    for component in first.get("address_components") or []:
        types = component.get("types") or []
        if any(t in types for t in PLACE_COMPONENT_TYPES):
            name = component.get("long_name")
            if name:
                return str(name)

    formatted = first.get("formatted_address")
    return str(formatted) if formatted else None


async def reverse_geocode(
    request: ReverseGeocodeRequest,
    api_key: str,
    base_url: str,
    client: httpx.AsyncClient | None = None,
) -> str | None:
    """Resolve a coordinate pair to a place name.

    Args:
        request: Latitude and longitude
        api_key: Geocoding API key
        base_url: Geocoding endpoint URL
        client: Optional httpx client (for testing with mocks)

    Returns:
        Locality or formatted address, None when the response has neither

    Raises:
        httpx.HTTPError: On network or HTTP errors
    """
    latlng = f"{request.lat},{request.lng}"

    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=4.0)
        close_client = True

    try:
        response = await client.get(base_url, params={"latlng": latlng, "key": api_key})
        response.raise_for_status()
        return pick_place_name(response.json())
    finally:
        if close_client:
            await client.aclose()
