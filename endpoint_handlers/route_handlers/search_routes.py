"""
Route search over the upstream routing service.

The upstream transit mode only accepts a departure time, so an arrival-time search
is approximated by querying a few departure times ahead of the target and ranking
what comes back by how close each route arrives to it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from models.route_models import Coordinate, ExtractedRoute, RouteQuery
from models.upstream_models import RawUpstreamRoute
from routes_api_connector import RoutesApiConnector, UpstreamServiceError
from endpoint_handlers.route_handlers.extract_route_details import extract_route_details
from utils.time_translation import local_now, to_absolute, to_display
from utils.validation import TimeValidationError

logger = logging.getLogger(__name__)

MAX_RESULTS = 3

# Departure times queried ahead of a target arrival, in addition to "now".
# A fixed approximation: buses leaving between these points can be missed.
ARRIVAL_QUERY_OFFSETS = (timedelta(minutes=60), timedelta(minutes=30))


@dataclass
class QueryOutcome:
    """Result of one upstream query: either routes or the error that replaced them."""
    departure_time: datetime
    routes: List[RawUpstreamRoute] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_departure_candidates(now: datetime, target: datetime) -> List[datetime]:
    """
    Departure times to query for a target arrival.

    Candidates are now, target - 60 min and target - 30 min; only those at or after
    now and strictly before the target are kept. A target in the past yields none.
    """
    candidates = [now] + [target - offset for offset in ARRIVAL_QUERY_OFFSETS]

    kept: List[datetime] = []
    for candidate in sorted(candidates):
        if now <= candidate < target and candidate not in kept:
            kept.append(candidate)
    return kept


def _has_departed(route: ExtractedRoute, now: datetime) -> bool:
    return route.pickup_time is None or route.pickup_time <= now


def _select_upcoming(
    routes: Iterable[ExtractedRoute],
    now: datetime,
    wanted_buses: Optional[List[str]] = None
) -> List[ExtractedRoute]:
    upcoming = []
    for route in routes:
        if not route.bus_number or _has_departed(route, now):
            continue
        if wanted_buses and route.bus_number not in wanted_buses:
            continue
        upcoming.append(route)
    return upcoming


def deduplicate_departures(routes: Iterable[ExtractedRoute]) -> List[ExtractedRoute]:
    """Keep the first route for each (bus number, pickup time) pair."""
    seen = set()
    unique = []
    for route in routes:
        key = (route.bus_number, route.pickup_time)
        if key in seen:
            continue
        seen.add(key)
        unique.append(route)
    return unique


def rank_by_arrival(routes: Iterable[ExtractedRoute], target: datetime, limit: int = MAX_RESULTS) -> List[ExtractedRoute]:
    """
    Pick the routes arriving closest to the target and return them in arrival order.

    Routes without an arrival time are dropped. Ties in closeness keep their input order.
    """
    timed = [r for r in routes if r.arrival_time is not None]
    closest = sorted(timed, key=lambda r: abs(r.arrival_time - target))[:limit]
    return sorted(closest, key=lambda r: r.arrival_time)


async def _query_departure(
    connector: RoutesApiConnector,
    origin: Coordinate,
    destination: Coordinate,
    departure_time: datetime
) -> QueryOutcome:
    try:
        routes = await connector.compute_routes(origin, destination, departure_time)
        logger.info("Query departing %s returned %d routes", to_display(departure_time), len(routes))
        return QueryOutcome(departure_time=departure_time, routes=routes)
    except UpstreamServiceError as e:
        logger.warning("Query departing %s failed: %s", to_display(departure_time), e)
        return QueryOutcome(departure_time=departure_time, error=e)
    except Exception as e:
        # Any failure stays confined to its own query
        logger.error("Query departing %s raised unexpectedly: %s", to_display(departure_time), e, exc_info=True)
        return QueryOutcome(departure_time=departure_time, error=e)


async def find_soonest_departures(
    connector: RoutesApiConnector,
    origin: Coordinate,
    destination: Coordinate,
    now: datetime,
    wanted_buses: Optional[List[str]] = None
) -> List[ExtractedRoute]:
    """
    Routes with the earliest upcoming pickup, from a single query departing now.

    Raises:
        UpstreamServiceError: If the query fails
    """
    raw_routes = await connector.compute_routes(origin, destination, now)
    extracted = [extract_route_details(r) for r in raw_routes]

    upcoming = _select_upcoming(extracted, now, wanted_buses)
    upcoming.sort(key=lambda r: r.pickup_time)

    logger.info("Soonest search: %d raw, %d upcoming", len(raw_routes), len(upcoming))
    return upcoming[:MAX_RESULTS]


async def find_closest_arrivals(
    connector: RoutesApiConnector,
    origin: Coordinate,
    destination: Coordinate,
    target: datetime,
    now: datetime,
    wanted_buses: Optional[List[str]] = None
) -> List[ExtractedRoute]:
    """
    Routes arriving closest to the target, queried at several departure times.

    Queries run concurrently; a failed query is logged and left out. If every query
    fails, or the target is already past, the result is empty.
    """
    departures = build_departure_candidates(now, target)
    if not departures:
        logger.info("No departure times to query before %s", to_display(target))
        return []

    logger.info("Querying departures %s for arrival at %s",
                ", ".join(to_display(d) for d in departures), to_display(target))

    outcomes = await asyncio.gather(
        *(_query_departure(connector, origin, destination, d) for d in departures)
    )

    extracted: List[ExtractedRoute] = []
    for outcome in outcomes:
        if outcome.ok:
            extracted.extend(extract_route_details(r) for r in outcome.routes)

    failed = sum(1 for o in outcomes if not o.ok)
    if failed == len(outcomes):
        logger.warning("All %d departure queries failed", failed)

    upcoming = deduplicate_departures(_select_upcoming(extracted, now, wanted_buses))
    return rank_by_arrival(upcoming, target)


async def search_routes(
    connector: RoutesApiConnector,
    query: RouteQuery,
    now: Optional[datetime] = None,
    wanted_buses: Optional[List[str]] = None
) -> List[ExtractedRoute]:
    """
    Find up to three bus routes for a query.

    Without a target arrival time the soonest departures are returned; with one,
    the routes arriving closest to it, in arrival order.

    Args:
        connector: Upstream routing connector
        query: Origin, destination and optional HH:MM arrival time
        now: Reference instant, defaults to the current local time
        wanted_buses: Optional bus numbers to restrict results to

    Returns:
        At most three routes, each with a bus number

    Raises:
        TimeValidationError: If the arrival time cannot be resolved
        UpstreamServiceError: If the single soonest-departure query fails
    """
    now = now or local_now()

    if not query.target_arrival_time:
        return await find_soonest_departures(connector, query.origin, query.destination, now, wanted_buses)

    target = to_absolute(query.target_arrival_time, now)
    if target is None:
        raise TimeValidationError(f"Invalid time format. Expected HH:MM, got: {query.target_arrival_time}")

    return await find_closest_arrivals(connector, query.origin, query.destination, target, now, wanted_buses)
