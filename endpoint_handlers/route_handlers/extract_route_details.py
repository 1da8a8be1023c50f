from datetime import timedelta
from typing import Optional

from models.route_models import ExtractedRoute
from models.upstream_models import RawUpstreamRoute
from utils.time_translation import parse_duration, parse_timestamp


def extract_route_details(route: RawUpstreamRoute) -> ExtractedRoute:
    """
    Reduce an upstream route to its first bus and pickup time.

    Legs and their steps are walked in order. The first step with a named transit
    line gives the bus number (short name, else full name), and the first stop
    departure time found gives the pickup time. Arrival at the destination is
    pickup plus total duration, and is only known when both are.

    Args:
        route: One route from the upstream response

    Returns:
        ExtractedRoute with any unknown field left as None
    """
    bus_number: Optional[str] = None
    pickup_raw: Optional[str] = None

    for leg in route.legs:
        for step in leg.steps:
            details = step.transit_details
            if details is None:
                continue

            if bus_number is None and details.transit_line is not None:
                bus_number = details.transit_line.name_short or details.transit_line.name or None

            if pickup_raw is None and details.stop_details is not None:
                pickup_raw = details.stop_details.departure_time or None

    pickup_time = parse_timestamp(pickup_raw)
    duration_seconds = parse_duration(route.duration)

    arrival_time = None
    if pickup_time is not None and duration_seconds is not None:
        arrival_time = pickup_time + timedelta(seconds=duration_seconds)

    return ExtractedRoute(
        bus_number=bus_number,
        pickup_time=pickup_time,
        arrival_time=arrival_time,
        duration_seconds=duration_seconds,
    )
