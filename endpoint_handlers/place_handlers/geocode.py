from typing import Optional

from models.pydantic_models import GeocodeResult
from routes_api_connector import RoutesApiConnector, UpstreamServiceError
from utils.error_handling import ErrorCode, error_handler
from utils.validation import validate_search_query


async def geocode_handler(connector: RoutesApiConnector, address: Optional[str]) -> GeocodeResult:
    """
    Resolve an address to coordinates.

    Args:
        connector: Upstream connector instance
        address: Free-text address

    Returns:
        GeocodeResult with lat and lng

    Raises:
        HTTPException: 400 if address is missing, 404 if nothing matches, 500 on upstream failure
    """
    if not address:
        error_handler.handle_missing_parameters(["address"])

    try:
        address = validate_search_query(address)
    except ValueError as e:
        error_handler.handle_validation_error("address", address, str(e), code=ErrorCode.INVALID_SEARCH_QUERY)

    try:
        location = await connector.geocode(address)
    except UpstreamServiceError as e:
        error_handler.handle_upstream_error("geocode", e)

    if location is None:
        error_handler.handle_not_found("address", address)

    return GeocodeResult(lat=location["lat"], lng=location["lng"])
