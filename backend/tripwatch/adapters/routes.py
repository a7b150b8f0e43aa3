"""Route timing adapter for the traffic proxy endpoint."""

import logging
from typing import Any

import httpx

from backend.tripwatch.models.tool_results import RouteRequest, RouteTiming

logger = logging.getLogger(__name__)


def parse_duration(value: Any) -> int | None:
    """Parse a protobuf-style duration string ("700s") into whole seconds."""
    if value is None:
        return None
    if isinstance(value, int | float):
        return int(value)
    text = str(value).strip()
    if text.endswith("s"):
        text = text[:-1]
    try:
        return int(float(text))
    except ValueError:
        return None


def parse_route_payload(request: RouteRequest, data: dict[str, Any]) -> RouteTiming | None:
    """Extract live and static durations from the first route.

    Returns:
        RouteTiming, or None when the payload carries no usable route
    """
    if data.get("status") not in (None, "OK"):
        return None

    routes = data.get("routes") or []
    if not routes:
        return None

    route = routes[0]
    live = parse_duration(route.get("duration"))
    if live is None:
        return None

    static = None
    legs = route.get("legs") or []
    if legs:
        static = parse_duration(legs[0].get("staticDuration"))
    if static is None:
        static = parse_duration(route.get("staticDuration"))
    if static is None:
        static = live

    return RouteTiming(
        origin=request.origin,
        destination=request.destination,
        duration_seconds=max(0, live),
        static_duration_seconds=max(0, static),
    )


async def fetch_route(
    request: RouteRequest,
    api_key: str,
    base_url: str,
    client: httpx.AsyncClient | None = None,
) -> RouteTiming | None:
    """Fetch live and historical route durations between two locations.

    A 4xx response (route too short, unknown place) means "no data" and is
    not an error.

    Args:
        request: Origin and destination
        api_key: Maps platform API key forwarded to the proxy
        base_url: Traffic proxy URL
        client: Optional httpx client (for testing with mocks)

    Returns:
        RouteTiming, or None when no route data is available

    Raises:
        httpx.HTTPError: On network errors or 5xx responses
    """
    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=4.0)
        close_client = True

    try:
        response = await client.post(
            base_url,
            json={
                "origin": request.origin,
                "destination": request.destination,
                "apiKey": api_key,
            },
        )
        if 400 <= response.status_code < 500:
            logger.info(
                "No route data for %s -> %s (HTTP %s)",
                request.origin,
                request.destination,
                response.status_code,
            )
            return None
        response.raise_for_status()
        return parse_route_payload(request, response.json())
    finally:
        if close_client:
            await client.aclose()
