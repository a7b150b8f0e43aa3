"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Monitoring engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # External APIs
    google_maps_api_key: str = ""
    weather_api_url: str = "http://localhost:3000/api/weather-data"
    traffic_api_url: str = "http://localhost:3000/api/traffic-data"
    alternatives_api_url: str = "http://localhost:3000/api/weather-alternatives"
    geocode_api_url: str = "https://maps.googleapis.com/maps/api/geocode/json"

    # Polling
    check_interval_minutes: int = 60

    # Location normalization (kilometres)
    geokey_merge_radius_km: float = 0.05
    min_route_distance_km: float = 0.1

    # Timeouts (milliseconds)
    collaborator_hard_timeout_ms: int = 4000

    # Retries - the next scheduled cycle is the retry mechanism
    collaborator_retry_count: int = 0
    retry_jitter_min_ms: int = 200
    retry_jitter_max_ms: int = 500

    # Circuit breaker
    circuit_breaker_failures: int = 5
    circuit_breaker_window_sec: int = 60
    circuit_breaker_half_open_sec: int = 30

    # SSE heartbeat (seconds)
    sse_heartbeat_sec: float = 15.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
