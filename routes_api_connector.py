import logging
from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from config import Settings, get_settings
from models.route_models import Coordinate
from models.upstream_models import ComputeRoutesResponse, RawUpstreamRoute
from utils.time_translation import to_rfc3339

logger = logging.getLogger(__name__)

COMPUTE_ROUTES_URL = "https://routes.googleapis.com/directions/v2:computeRoutes"
AUTOCOMPLETE_URL = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Only request what the extractor reads
ROUTES_FIELD_MASK = ",".join([
    "routes.duration",
    "routes.legs.steps.travelMode",
    "routes.legs.steps.transitDetails",
])


class UpstreamServiceError(Exception):
    """Exception raised when a call to the mapping service fails."""
    pass


def _describe_http_error(service: str, exc: httpx.HTTPError) -> str:
    prefix = f"{service} request failed"
    if isinstance(exc, httpx.TimeoutException):
        return f"{prefix}: request timed out"
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        reason = exc.response.reason_phrase or ""
        if reason:
            return f"{prefix}: HTTP {status} {reason}"
        return f"{prefix}: HTTP {status}"
    return f"{prefix}: {exc.__class__.__name__}: {exc}"


class RoutesApiConnector:
    """A class to query the Google Maps routing, autocomplete and geocoding services."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        """Initializes the RoutesApiConnector.

        Args:
            settings (Settings): Process configuration carrying the API key and timeout.
            client (httpx.AsyncClient, optional): A client to issue requests with.
                Defaults to None, in which case one is created on first use and owned
                by this connector.
        """
        self.settings = settings
        self.client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.upstream_timeout_s))
        return self.client

    def _require_api_key(self) -> str:
        if not self.settings.google_maps_api_key:
            raise UpstreamServiceError("GOOGLE_MAPS_API_KEY not set in environment")
        return self.settings.google_maps_api_key

    async def compute_routes(
        self,
        origin: Coordinate,
        destination: Coordinate,
        departure_time: Optional[datetime] = None
    ) -> List[RawUpstreamRoute]:
        """Requests bus-only transit routes between two coordinates.

        Args:
            origin (Coordinate): Where the trip starts.
            destination (Coordinate): Where the trip ends.
            departure_time (datetime, optional): Forward departure time. The transit
                mode used here only accepts departure-anchored queries.

        Returns:
            list: The candidate routes, possibly empty.

        Raises:
            UpstreamServiceError: If the key is missing, the call fails or the payload is malformed.
        """
        api_key = self._require_api_key()

        body: Dict[str, Any] = {
            "origin": {"location": {"latLng": origin.to_lat_lng()}},
            "destination": {"location": {"latLng": destination.to_lat_lng()}},
            "travelMode": "TRANSIT",
            "computeAlternativeRoutes": True,
            "transitPreferences": {"allowedTravelModes": ["BUS"]},
        }
        if departure_time is not None:
            body["departureTime"] = to_rfc3339(departure_time)

        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": api_key,
            "X-Goog-FieldMask": ROUTES_FIELD_MASK,
        }

        logger.debug("computeRoutes %s -> %s departing %s", origin, destination, body.get("departureTime", "now"))
        data = await self._send("Routes API", "POST", COMPUTE_ROUTES_URL, json=body, headers=headers)

        try:
            return ComputeRoutesResponse.model_validate(data or {}).routes
        except ValidationError as e:
            raise UpstreamServiceError(f"Routes API returned an unexpected payload: {e}") from e

    async def autocomplete(self, text: str) -> Dict[str, Any]:
        """Returns the upstream place autocomplete payload unchanged."""
        api_key = self._require_api_key()
        return await self._send("Places Autocomplete API", "GET", AUTOCOMPLETE_URL,
                                params={"input": text, "key": api_key})

    async def geocode(self, address: str) -> Optional[Dict[str, float]]:
        """Resolves an address to {'lat', 'lng'}, or None when the upstream has no result."""
        api_key = self._require_api_key()
        data = await self._send("Geocoding API", "GET", GEOCODE_URL,
                                params={"address": address, "key": api_key})

        # Failures arrive as HTTP 200 with a non-OK status
        status = data.get("status")
        if status == "ZERO_RESULTS":
            logger.info("No geocoding result for %r", address)
            return None
        if status not in (None, "OK"):
            message = data.get("error_message", "")
            raise UpstreamServiceError(f"Geocoding API error: {status} {message}".strip())

        results = data.get("results") or []
        if not results:
            logger.info("No geocoding result for %r", address)
            return None
        try:
            location = results[0]["geometry"]["location"]
            return {"lat": float(location["lat"]), "lng": float(location["lng"])}
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamServiceError(f"Geocoding API returned an unexpected payload: {e}") from e

    async def _send(self, service: str, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._get_client().request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise UpstreamServiceError(_describe_http_error(service, e)) from e
        except ValueError as e:
            raise UpstreamServiceError(f"{service} returned invalid JSON") from e

    async def aclose(self) -> None:
        """Closes the HTTP client if this connector created it."""
        if self.client is not None and self._owns_client:
            await self.client.aclose()
            self.client = None


async def get_connector() -> AsyncGenerator[RoutesApiConnector, None]:
    connector = RoutesApiConnector(get_settings())
    try:
        yield connector
    finally:
        await connector.aclose()
