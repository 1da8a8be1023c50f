from typing import Any, Dict, Optional

from routes_api_connector import RoutesApiConnector, UpstreamServiceError
from utils.error_handling import ErrorCode, error_handler
from utils.validation import validate_search_query


async def autocomplete_handler(connector: RoutesApiConnector, text: Optional[str]) -> Dict[str, Any]:
    """Address suggestions for partial input; the upstream payload is passed through as is."""
    if not text:
        error_handler.handle_missing_parameters(["input"])

    try:
        text = validate_search_query(text)
    except ValueError as e:
        error_handler.handle_validation_error("input", text, str(e), code=ErrorCode.INVALID_SEARCH_QUERY)

    try:
        return await connector.autocomplete(text)
    except UpstreamServiceError as e:
        error_handler.handle_upstream_error("autocomplete", e)
