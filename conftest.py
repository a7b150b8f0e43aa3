"""Global pytest configuration."""

import os

# Collaborator credentials and endpoints for tests, set before any imports
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-key")
os.environ.setdefault("WEATHER_API_URL", "http://collaborators.test/api/weather-data")
os.environ.setdefault("TRAFFIC_API_URL", "http://collaborators.test/api/traffic-data")
os.environ.setdefault("ALTERNATIVES_API_URL", "http://collaborators.test/api/weather-alternatives")
os.environ.setdefault("GEOCODE_API_URL", "http://collaborators.test/maps/api/geocode/json")
