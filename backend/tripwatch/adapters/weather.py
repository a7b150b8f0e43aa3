"""Weather adapter for the current-conditions proxy endpoint."""

from typing import Any

import httpx

from backend.tripwatch.models.tool_results import WeatherReading, WeatherRequest


class WeatherPayloadError(ValueError):
    """Weather response is missing the `main` or `weather` sections."""


def parse_weather_payload(location: str, data: dict[str, Any]) -> WeatherReading:
    """Build a WeatherReading from the proxy's OpenWeather-shaped payload.

    Args:
        location: Location the reading was requested for
        data: Decoded JSON response

    Returns:
        WeatherReading

    Raises:
        WeatherPayloadError: If `main` or a non-empty `weather` list is missing
    """
    main = data.get("main")
    weather = data.get("weather")
    if not isinstance(main, dict) or not weather:
        raise WeatherPayloadError(f"Invalid weather data structure for {location}")

    first = weather[0] or {}
    wind = data.get("wind") or {}

    # `rain` is only present when there was measurable rain
    rain = data.get("rain") or {}
    precipitation_mm = rain.get("1h")

    visibility = data.get("visibility")

    return WeatherReading(
        location=location,
        temperature_c=main.get("temp"),
        feels_like_c=main.get("feels_like"),
        humidity=main.get("humidity"),
        pressure=main.get("pressure"),
        condition=first.get("main") or "unknown",
        description=first.get("description") or "",
        precipitation_mm=precipitation_mm,
        precipitation_probability=data.get("precipitationProbability"),
        wind_speed_ms=wind.get("speed") or 0.0,
        # The proxy already converts visibility to kilometres
        visibility_km=visibility if visibility is not None else 10.0,
    )


async def fetch_weather(
    request: WeatherRequest,
    api_key: str,
    base_url: str,
    client: httpx.AsyncClient | None = None,
) -> WeatherReading:
    """Fetch current conditions for one location.

    Args:
        request: Location to look up (coordinate pair or place name)
        api_key: Maps platform API key forwarded to the proxy
        base_url: Weather proxy URL
        client: Optional httpx client (for testing with mocks)

    Returns:
        WeatherReading for the location

    Raises:
        httpx.HTTPError: On network or HTTP errors
        WeatherPayloadError: On a malformed payload
    """
    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=4.0)
        close_client = True

    try:
        response = await client.post(
            base_url, json={"location": request.location, "apiKey": api_key}
        )
        response.raise_for_status()
        return parse_weather_payload(request.location, response.json())
    finally:
        if close_client:
            await client.aclose()
