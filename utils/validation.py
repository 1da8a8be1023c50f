"""
Input validation utilities for the route API.
Provides validation functions for coordinates, wall-clock times and query parameters.
"""

import math
import re
from typing import List, Optional

from models.route_models import Coordinate


class CoordinateValidationError(ValueError):
    """Raised when coordinate parsing fails."""
    pass


class TimeValidationError(ValueError):
    """Raised when time format validation fails."""
    pass


def _parse_component(raw: str, name: str, source: str) -> float:
    text = raw.strip()
    if not text:
        raise CoordinateValidationError(f'Invalid lat,lng: "{source}" (missing {name})')
    try:
        value = float(text)
    except ValueError:
        raise CoordinateValidationError(f'Invalid lat,lng: "{source}" ({name} is not a number)')
    if not math.isfinite(value):
        raise CoordinateValidationError(f'Invalid lat,lng: "{source}" ({name} is not finite)')
    return value


def parse_coordinate(value: str) -> Coordinate:
    """
    Parse a "lat,lng" string into a Coordinate.

    No range check is applied; only presence, numeric form and finiteness.

    Args:
        value: Coordinate string such as "43.65,-79.38"

    Returns:
        Parsed Coordinate

    Raises:
        CoordinateValidationError: If either component is missing, non-numeric or non-finite
    """
    if not isinstance(value, str):
        raise CoordinateValidationError(f"Coordinate must be a string, got {type(value)}")

    parts = value.split(",")
    if len(parts) != 2:
        raise CoordinateValidationError(f'Invalid lat,lng: "{value}" (expected exactly two components)')

    latitude = _parse_component(parts[0], "latitude", value)
    longitude = _parse_component(parts[1], "longitude", value)
    return Coordinate(latitude=latitude, longitude=longitude)


def validate_arrival_time(time_str: Optional[str]) -> Optional[str]:
    """
    Validate an optional wall-clock arrival time in H:MM or HH:MM format.

    Returns:
        The stripped time string, or None when no time was given

    Raises:
        TimeValidationError: If the time format is invalid
    """
    if time_str is None or not time_str.strip():
        return None

    time_str = time_str.strip()
    match = re.match(r'^([0-9]{1,2}):([0-9]{2})$', time_str)
    if not match:
        raise TimeValidationError(f"Invalid time format. Expected HH:MM, got: {time_str}")

    hours, minutes = map(int, match.groups())
    if hours > 23 or minutes > 59:
        raise TimeValidationError(f"Invalid time values in: {time_str}")

    return time_str


def validate_search_query(query: str, min_length: int = 1, max_length: int = 200) -> str:
    """
    Validate a free-text address query.

    Args:
        query: Search query to validate
        min_length: Minimum query length
        max_length: Maximum query length

    Returns:
        Stripped query

    Raises:
        ValueError: If query is invalid
    """
    if not isinstance(query, str):
        raise ValueError(f"Search query must be a string, got {type(query)}")

    query = query.strip()

    if len(query) < min_length:
        raise ValueError(f"Search query too short (minimum {min_length} characters)")

    if len(query) > max_length:
        raise ValueError(f"Search query too long (maximum {max_length} characters)")

    return query


def parse_bus_filter(buses: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated bus number filter; None when no filter was given."""
    if not buses:
        return None
    wanted = [b.strip() for b in buses.split(",") if b.strip()]
    return wanted or None
