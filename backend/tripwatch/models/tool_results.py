"""Collaborator request and result models - external data shapes."""

from pydantic import BaseModel, Field


class WeatherRequest(BaseModel):
    """Current-conditions lookup for one location."""

    location: str


class WeatherReading(BaseModel):
    """Current weather conditions at one location."""

    location: str
    temperature_c: float | None = None
    feels_like_c: float | None = None
    humidity: float | None = None
    pressure: float | None = None
    condition: str = "unknown"
    description: str = ""
    precipitation_mm: float | None = None
    precipitation_probability: float | None = None
    wind_speed_ms: float = 0.0
    visibility_km: float = 10.0

    @property
    def condition_text(self) -> str:
        """Lowercased condition and description used for keyword matching."""
        return f"{self.condition} {self.description}".replace("_", " ").lower()


class RouteRequest(BaseModel):
    """Route timing lookup between two locations."""

    origin: str
    destination: str


class RouteTiming(BaseModel):
    """Live and historical durations for one route."""

    origin: str
    destination: str
    duration_seconds: int = Field(..., ge=0)
    static_duration_seconds: int = Field(..., ge=0)


class ReverseGeocodeRequest(BaseModel):
    """Coordinate to place-name lookup."""

    lat: float
    lng: float


class AlternativesRequest(BaseModel):
    """Weather-appropriate alternative lookup for one activity."""

    location: str
    weather_type: str
    activity_type: str
    original_activity: str
    budget: float


class PlaceAlternative(BaseModel):
    """Candidate replacement for a weather-sensitive activity."""

    name: str
    cost: float
    description: str = ""
    duration: float | None = None
    location: str | None = None
    rating: float | None = None
