import logging
from pathlib import Path
from typing import List, Optional

from starlette.concurrency import run_in_threadpool

from models.pydantic_models import PersistedRouteBatch, RankedRouteResult, RouteSearchResponse
from models.route_models import ExtractedRoute, RouteQuery
from routes_api_connector import RoutesApiConnector, UpstreamServiceError
from endpoint_handlers.route_handlers.search_routes import search_routes
from utils.error_handling import ErrorCode, error_handler
from utils.route_store import RouteStoreError, persist_route_batch
from utils.time_translation import local_now, to_display
from utils.validation import (
    CoordinateValidationError,
    TimeValidationError,
    parse_bus_filter,
    parse_coordinate,
    validate_arrival_time,
)

logger = logging.getLogger(__name__)


def to_ranked_result(route: ExtractedRoute) -> RankedRouteResult:
    return RankedRouteResult(
        bus_number=route.bus_number,
        pickup_arrival_time=to_display(route.pickup_time),
        duration_min=route.duration_minutes,
    )


async def get_routes_handler(
    connector: RoutesApiConnector,
    routes_dir: Path,
    origin: Optional[str],
    destination: Optional[str],
    arrival_time: Optional[str] = None,
    buses: Optional[str] = None
) -> RouteSearchResponse:
    """
    Search bus routes between two coordinates and persist the result.

    The persisted file holds exactly the routes returned in the response.
    """
    missing = [name for name, value in (("origin", origin), ("destination", destination)) if not value]
    if missing:
        error_handler.handle_missing_parameters(missing)

    try:
        query = RouteQuery(
            origin=parse_coordinate(origin),
            destination=parse_coordinate(destination),
            target_arrival_time=validate_arrival_time(arrival_time),
        )
    except CoordinateValidationError as e:
        error_handler.handle_validation_error("origin/destination", f"{origin} / {destination}", str(e),
                                              code=ErrorCode.INVALID_COORDINATES)
    except TimeValidationError as e:
        error_handler.handle_validation_error("arrivalTime", arrival_time, str(e),
                                              code=ErrorCode.INVALID_TIME_FORMAT)

    now = local_now()
    try:
        found = await search_routes(connector, query, now=now, wanted_buses=parse_bus_filter(buses))
    except UpstreamServiceError as e:
        error_handler.handle_upstream_error("route search", e)

    results: List[RankedRouteResult] = [to_ranked_result(r) for r in found]

    batch = PersistedRouteBatch(
        origin=origin,
        destination=destination,
        arrival_time=query.target_arrival_time,
        generated_at=now.isoformat(),
        routes=results,
    )
    try:
        await run_in_threadpool(persist_route_batch, routes_dir, batch, generated_at=now)
    except RouteStoreError as e:
        error_handler.handle_system_error("route store", e)

    return RouteSearchResponse(count=len(results), routes=results)
