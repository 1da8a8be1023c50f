import json
import threading
from types import SimpleNamespace

import pytest

import display_bridge
from display_bridge import DisplayLink, RoutesFileHandler, encode_batch, is_device_noise
from models.pydantic_models import PersistedRouteBatch, RankedRouteResult
from utils.route_store import persist_route_batch


class FakePort:
    """Serial port double: records writes and replays queued device lines."""

    def __init__(self, lines=()):
        self.written = []
        self.flushed = 0
        self.closed = False
        self.drained = threading.Event()
        self._lines = list(lines)

    def write(self, data):
        self.written.append(data)
        return len(data)

    def flush(self):
        self.flushed += 1

    def readline(self):
        if self._lines:
            return self._lines.pop(0)
        self.drained.set()
        return b""

    def close(self):
        self.closed = True


def _persist(routes_dir, now, bus="504"):
    batch = PersistedRouteBatch(
        origin="43.65,-79.38",
        destination="43.70,-79.40",
        generated_at=now.isoformat(),
        routes=[RankedRouteResult(bus_number=bus, pickup_arrival_time="07:05", duration_min=32)],
    )
    return persist_route_batch(routes_dir, batch)


@pytest.mark.parametrize("line, noisy", [
    ("start measure", True),
    ("GET DATA from sensor 2", True),
    ("grove adc 512", True),
    ("Routes received: 1", False),
    ("", False),
])
def test_is_device_noise(line, noisy):
    assert is_device_noise(line) is noisy


def test_encode_batch_is_one_compact_line():
    encoded = encode_batch({"routes": [{"busNumber": "504", "durationMin": 32}], "origin": "a,b"})

    assert encoded.endswith(b"\n")
    assert encoded.count(b"\n") == 1
    assert b", " not in encoded and b": " not in encoded
    assert json.loads(encoded) == {"routes": [{"busNumber": "504", "durationMin": 32}], "origin": "a,b"}


def test_send_latest_writes_newest_file(routes_dir, now):
    _persist(routes_dir, now, bus="29")
    latest = _persist(routes_dir, now.replace(minute=5), bus="504")
    port = FakePort()

    sent = DisplayLink(port).send_latest(routes_dir)

    assert sent == latest
    assert len(port.written) == 1
    assert port.flushed == 1
    assert json.loads(port.written[0])["routes"][0]["busNumber"] == "504"


def test_send_latest_with_nothing_to_send(routes_dir):
    port = FakePort()
    assert DisplayLink(port).send_latest(routes_dir) is None
    assert port.written == []


def test_reader_logs_filtered_device_output(caplog):
    port = FakePort([b"start measure\r\n", b"Routes received: 3\r\n", b"\r\n"])
    link = DisplayLink(port)

    with caplog.at_level("INFO", logger="display_bridge"):
        link.start_reader()
        assert port.drained.wait(timeout=2)
        link.close()

    messages = [r.getMessage() for r in caplog.records]
    assert "Display: Routes received: 3" in messages
    assert not any("start measure" in m for m in messages)
    assert port.closed


class RecordingLink:
    def __init__(self):
        self.sent = threading.Event()
        self.dirs = []

    def send_latest(self, routes_dir):
        self.dirs.append(routes_dir)
        self.sent.set()


def test_handler_sends_after_new_routes_file(routes_dir):
    link = RecordingLink()
    handler = RoutesFileHandler(link, routes_dir, settle_delay=0)

    handler.on_created(SimpleNamespace(is_directory=False, src_path=str(routes_dir / "routes_1.json")))

    assert link.sent.wait(timeout=2)
    assert link.dirs == [routes_dir]


def test_handler_reacts_to_rename_into_place(routes_dir):
    link = RecordingLink()
    handler = RoutesFileHandler(link, routes_dir, settle_delay=0)

    handler.on_moved(SimpleNamespace(
        is_directory=False,
        src_path=str(routes_dir / ".routes_1.json.tmp"),
        dest_path=str(routes_dir / "routes_1.json"),
    ))

    assert link.sent.wait(timeout=2)


def test_handler_ignores_other_files(routes_dir):
    link = RecordingLink()
    handler = RoutesFileHandler(link, routes_dir, settle_delay=0)

    handler.on_created(SimpleNamespace(is_directory=False, src_path=str(routes_dir / ".routes_1.json.tmp")))
    handler.on_created(SimpleNamespace(is_directory=False, src_path=str(routes_dir / "notes.txt")))
    handler.on_created(SimpleNamespace(is_directory=True, src_path=str(routes_dir / "routes_dir.json")))

    assert not link.sent.wait(timeout=0.2)


def test_handler_coalesces_bursts(routes_dir):
    link = RecordingLink()
    handler = RoutesFileHandler(link, routes_dir, settle_delay=0.3)

    for n in range(3):
        handler.on_created(SimpleNamespace(is_directory=False, src_path=str(routes_dir / f"routes_{n}.json")))

    assert link.sent.wait(timeout=2)
    handler.cancel()
    assert link.dirs == [routes_dir]


def test_main_without_routes_files(tmp_path, monkeypatch):
    def refuse(*args, **kwargs):
        raise AssertionError("serial port should not be opened")

    monkeypatch.setattr(display_bridge.serial, "Serial", refuse)

    assert display_bridge.main(["--routes-dir", str(tmp_path / "empty")]) == 1


def test_main_one_shot(routes_dir, now, monkeypatch):
    _persist(routes_dir, now)
    port = FakePort()
    opened = {}

    def fake_serial(name, baudrate, timeout):
        opened.update(name=name, baudrate=baudrate)
        return port

    monkeypatch.setattr(display_bridge.serial, "Serial", fake_serial)
    monkeypatch.setattr(display_bridge, "BOARD_RESET_DELAY_S", 0)

    code = display_bridge.main(["--routes-dir", str(routes_dir), "--port", "/dev/ttyUSB0", "--baud", "115200", "--linger", "0"])

    assert code == 0
    assert opened == {"name": "/dev/ttyUSB0", "baudrate": 115200}
    assert len(port.written) == 1
    assert port.closed


def test_main_reports_busy_port(routes_dir, now, monkeypatch):
    _persist(routes_dir, now)

    def busy(*args, **kwargs):
        raise display_bridge.serial.SerialException("could not open port COM10: Access is denied")

    monkeypatch.setattr(display_bridge.serial, "Serial", busy)

    assert display_bridge.main(["--routes-dir", str(routes_dir)]) == 1
