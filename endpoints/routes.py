from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from config import get_settings
from models.pydantic_models import RouteSearchResponse
from routes_api_connector import RoutesApiConnector, get_connector
from endpoint_handlers.route_handlers.get_routes import get_routes_handler

route_routes = APIRouter(prefix="/api", tags=["routes"])


def get_routes_dir() -> Path:
    return get_settings().routes_dir


@route_routes.get("/routes", response_model=RouteSearchResponse)
async def get_routes(
    response: Response,
    origin: Optional[str] = Query(None, description="Origin as 'lat,lng'"),
    destination: Optional[str] = Query(None, description="Destination as 'lat,lng'"),
    arrival_time: Optional[str] = Query(None, alias="arrivalTime", description="Desired arrival time today, HH:MM"),
    buses: Optional[str] = Query(None, description="Comma-separated bus numbers to restrict results to"),
    connector: RoutesApiConnector = Depends(get_connector),
    routes_dir: Path = Depends(get_routes_dir)
):
    """
    Find the top three bus routes between two coordinates.

    Without arrivalTime, routes are ordered by soonest pickup. With it, the routes
    arriving closest to that time are returned in arrival order.
    """
    # Results depend on the current time
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"

    return await get_routes_handler(connector, routes_dir, origin, destination, arrival_time, buses)
