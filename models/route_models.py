"""
Internal model definitions for the route search.
These models are built once per request and never mutated.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Coordinate:
    """A parsed latitude/longitude pair."""
    latitude: float
    longitude: float

    def to_lat_lng(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"


@dataclass(frozen=True)
class RouteQuery:
    """One route search as requested by a client."""
    origin: Coordinate
    destination: Coordinate
    target_arrival_time: Optional[str] = None


@dataclass(frozen=True)
class ExtractedRoute:
    """The first bus and pickup time of one upstream route."""
    bus_number: Optional[str]
    pickup_time: Optional[datetime]
    arrival_time: Optional[datetime]
    duration_seconds: Optional[int]

    @property
    def duration_minutes(self) -> Optional[int]:
        if self.duration_seconds is None:
            return None
        return round(self.duration_seconds / 60)
