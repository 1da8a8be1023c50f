from datetime import datetime
from typing import Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import app
from models.upstream_models import RawUpstreamRoute
from routes_api_connector import RoutesApiConnector, UpstreamServiceError, get_connector
from endpoints.routes import get_routes_dir
from utils.time_translation import to_rfc3339


def build_upstream_route(bus: Optional[str], pickup: Optional[datetime], duration_min: Optional[int] = 30,
                         name: Optional[str] = None) -> dict:
    """An upstream route with a walk step then one bus step."""
    transit = {}
    if bus is not None or name is not None:
        transit["transitLine"] = {"nameShort": bus, "name": name}
    if pickup is not None:
        transit["stopDetails"] = {"departureTime": to_rfc3339(pickup)}

    route = {"legs": [{"steps": [{"travelMode": "WALK"}, {"travelMode": "TRANSIT", "transitDetails": transit}]}]}
    if duration_min is not None:
        route["duration"] = f"{duration_min * 60}s"
    return route


class FakeConnector:
    """Stands in for RoutesApiConnector; answers per departure time and records calls."""

    def __init__(self, responses: Optional[Dict[datetime, List[dict]]] = None, failures=(), crashes=()):
        self.responses = responses or {}
        self.failures = set(failures)
        self.crashes = set(crashes)
        self.calls: List[Optional[datetime]] = []

    async def compute_routes(self, origin, destination, departure_time=None):
        self.calls.append(departure_time)
        if departure_time in self.failures:
            raise UpstreamServiceError("Routes API request failed: HTTP 503")
        if departure_time in self.crashes:
            raise ValueError("malformed departure time")
        return [RawUpstreamRoute.model_validate(r) for r in self.responses.get(departure_time, [])]


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 7, 0).astimezone()


@pytest.fixture
def upstream_route():
    return build_upstream_route


@pytest.fixture
def fake_connector():
    return FakeConnector


@pytest.fixture
def routes_dir(tmp_path):
    return tmp_path / "routes"


@pytest.fixture
def make_client(routes_dir):
    """Builds a TestClient whose upstream calls are answered by `handler`."""
    def _make(handler, api_key: Optional[str] = "test-key"):
        settings = Settings(google_maps_api_key=api_key, routes_dir=routes_dir)
        connector = RoutesApiConnector(settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        app.dependency_overrides[get_connector] = lambda: connector
        app.dependency_overrides[get_routes_dir] = lambda: routes_dir
        return TestClient(app)

    yield _make

    app.dependency_overrides.clear()

