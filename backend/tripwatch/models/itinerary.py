"""Itinerary models - the read-only document being monitored."""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN_LOCATION = "Unknown Location"


def _coerce_location(value: Any) -> str | None:
    """Flatten a location value into a pollable string.

    Object-shaped locations become "lat,lng" when they carry coordinates,
    otherwise their name, address or city.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        lat = value.get("lat", value.get("latitude"))
        lng = value.get("lng", value.get("lon", value.get("longitude")))
        if lat is not None and lng is not None:
            return f"{lat},{lng}"
        for field_name in ("name", "address", "city"):
            if value.get(field_name):
                return str(value[field_name])
        return None

    text = str(value).strip()
    if not text or text == UNKNOWN_LOCATION:
        return None
    return text


class Place(BaseModel):
    """Anything on the itinerary that sits at a location."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    description: str = ""
    cost: float = 0.0
    location: str | None = None

    @field_validator("location", mode="before")
    @classmethod
    def flatten_location(cls, value: Any) -> str | None:
        return _coerce_location(value)

    @field_validator("description", mode="before")
    @classmethod
    def none_description(cls, value: Any) -> str:
        return value or ""

    @field_validator("cost", mode="before")
    @classmethod
    def none_cost(cls, value: Any) -> float:
        return value or 0.0


class Accommodation(Place):
    """Where the traveller sleeps on a given day."""


class Activity(Place):
    """Single planned activity."""

    duration: float | None = None


class Day(BaseModel):
    """One itinerary day. `day` is an opaque identifier, not a date."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    day: int | str
    accommodation: Accommodation | None = None
    activities: list[Activity] = Field(default_factory=list)

    def locations(self) -> list[str]:
        """Raw locations in itinerary order: accommodation first."""
        raw: list[str] = []
        if self.accommodation and self.accommodation.location:
            raw.append(self.accommodation.location)
        raw.extend(a.location for a in self.activities if a.location)
        return raw


class TravelDates(BaseModel):
    """Trip date window."""

    model_config = ConfigDict(populate_by_name=True)

    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")


class Itinerary(BaseModel):
    """Itinerary document as produced by the planning flow."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = "current"
    days: list[Day] = Field(default_factory=list, alias="itinerary")
    travel_dates: TravelDates | None = Field(default=None, alias="travelDates")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> str:
        return str(value) if value is not None else "current"

    def resolve_travel_dates(self) -> TravelDates:
        """Travel dates from the document, or today for both ends."""
        if self.travel_dates is not None:
            return self.travel_dates
        today = date.today()
        return TravelDates(start_date=today, end_date=today)
