import json
import os

import pytest

from models.pydantic_models import PersistedRouteBatch, RankedRouteResult
from utils.route_store import (
    RouteStoreError,
    build_routes_filename,
    get_latest_routes_file,
    is_routes_file,
    load_route_batch,
    persist_route_batch,
)


def _batch(now, routes=None, arrival_time=None):
    return PersistedRouteBatch(
        origin="43.65,-79.38",
        destination="43.70,-79.40",
        arrival_time=arrival_time,
        generated_at=now.isoformat(),
        routes=routes if routes is not None else [
            RankedRouteResult(bus_number="504", pickup_arrival_time="07:05", duration_min=32),
        ],
    )


def test_filename_sorts_by_time(now):
    earlier = build_routes_filename(now)
    later = build_routes_filename(now.replace(second=1))
    assert earlier == "routes_20261019T070000000000.json"
    assert earlier < later
    assert build_routes_filename(now, 2) == "routes_20261019T070000000000_2.json"


def test_is_routes_file():
    assert is_routes_file("routes_20261019T070000000000.json")
    assert is_routes_file("/tmp/x/routes_1.json")
    assert not is_routes_file(".routes_20261019T070000000000.json.tmp")
    assert not is_routes_file("notes.json")
    assert not is_routes_file("routes_old.txt")


def test_persist_and_load(routes_dir, now):
    path = persist_route_batch(routes_dir, _batch(now, arrival_time="08:30"))

    assert path.parent == routes_dir
    assert path.name == build_routes_filename(now)

    data = load_route_batch(path)
    assert data == {
        "origin": "43.65,-79.38",
        "destination": "43.70,-79.40",
        "arrivalTime": "08:30",
        "generatedAt": now.isoformat(),
        "routes": [{"busNumber": "504", "pickupArrivalTime": "07:05", "durationMin": 32}],
    }


def test_persist_empty_batch(routes_dir, now):
    path = persist_route_batch(routes_dir, _batch(now, routes=[]))
    data = load_route_batch(path)
    assert data["routes"] == []
    assert data["arrivalTime"] is None


def test_persist_never_overwrites(routes_dir, now):
    first = persist_route_batch(routes_dir, _batch(now), generated_at=now)
    second = persist_route_batch(routes_dir, _batch(now, routes=[]), generated_at=now)

    assert first != second
    assert load_route_batch(first)["routes"]
    assert load_route_batch(second)["routes"] == []
    assert sorted(p.name for p in routes_dir.iterdir()) == [first.name, second.name]


def test_persist_leaves_no_temp_files(routes_dir, now):
    persist_route_batch(routes_dir, _batch(now))
    assert all(is_routes_file(p) for p in routes_dir.iterdir())


def test_persist_unwritable_dir(tmp_path, now):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    with pytest.raises(RouteStoreError):
        persist_route_batch(blocker / "routes", _batch(now))


def test_latest_by_modification_time(routes_dir, now):
    older = persist_route_batch(routes_dir, _batch(now.replace(minute=30)))
    newer = persist_route_batch(routes_dir, _batch(now.replace(minute=5)))
    # Names would say otherwise; mtime decides
    os.utime(older, (1_000_000, 1_000_000))
    os.utime(newer, (2_000_000, 2_000_000))

    assert get_latest_routes_file(routes_dir) == newer


def test_latest_ignores_other_files(routes_dir, now):
    path = persist_route_batch(routes_dir, _batch(now))
    os.utime(path, (1_000_000, 1_000_000))
    (routes_dir / "notes.json").write_text("{}")
    (routes_dir / ".routes_x.json.tmp").write_text("{")

    assert get_latest_routes_file(routes_dir) == path


def test_latest_missing_or_empty_dir(routes_dir):
    assert get_latest_routes_file(routes_dir) is None
    routes_dir.mkdir()
    assert get_latest_routes_file(routes_dir) is None


def test_load_corrupt_file(routes_dir):
    routes_dir.mkdir()
    path = routes_dir / "routes_bad.json"
    path.write_text("{not json")
    with pytest.raises(RouteStoreError):
        load_route_batch(path)


def test_file_is_plain_json(routes_dir, now):
    path = persist_route_batch(routes_dir, _batch(now))
    with open(path, encoding="utf-8") as f:
        assert json.load(f)["origin"] == "43.65,-79.38"
