from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from models.pydantic_models import GeocodeResult
from routes_api_connector import RoutesApiConnector, get_connector
from endpoint_handlers.place_handlers.autocomplete import autocomplete_handler
from endpoint_handlers.place_handlers.geocode import geocode_handler

place_routes = APIRouter(prefix="/api", tags=["places"])


@place_routes.get("/autocomplete", response_model=Dict[str, Any])
async def autocomplete(
    input: Optional[str] = Query(None, description="Partial address typed by the user"),
    connector: RoutesApiConnector = Depends(get_connector)
):
    """Address suggestions, passed through from the upstream (`predictions[]`)."""
    return await autocomplete_handler(connector, input)


@place_routes.get("/geocode", response_model=GeocodeResult)
async def geocode(
    address: Optional[str] = Query(None, description="Address to resolve"),
    connector: RoutesApiConnector = Depends(get_connector)
):
    """Coordinates of an address."""
    return await geocode_handler(connector, address)
