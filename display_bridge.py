"""
Forward the latest persisted route set to the bus display over a serial link.

Usage:
    python display_bridge.py                 # send the newest routes file once
    python display_bridge.py --watch         # keep the port open and resend on every new file

The display receives one line of compact JSON per route set and answers with
human-readable status lines, which are logged.
"""

import argparse
import json
import logging
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

import serial
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from config import get_settings
from utils.route_store import RouteStoreError, get_latest_routes_file, is_routes_file, load_route_batch

logger = logging.getLogger("display_bridge")

# Lines the board prints for its own sensors; not worth logging
NOISE_MARKERS = ("start measure", "GET DATA", "sensor", "grove adc")

BOARD_RESET_DELAY_S = 2.0
SETTLE_DELAY_S = 0.5


def is_device_noise(line: str) -> bool:
    return any(marker in line for marker in NOISE_MARKERS)


def encode_batch(data: Dict[str, Any]) -> bytes:
    """One newline-terminated line of compact JSON."""
    return (json.dumps(data, separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")


class DisplayLink:
    """Serial connection to the display, with a background reader that logs device output."""

    def __init__(self, port: serial.Serial, filter_noise: bool = True):
        self.port = port
        self.filter_noise = filter_noise
        self._write_lock = threading.Lock()
        self._stop = threading.Event()
        self._reader: Optional[threading.Thread] = None

    def start_reader(self) -> None:
        self._reader = threading.Thread(target=self._read_loop, name="display-reader", daemon=True)
        self._reader.start()

    def _read_loop(self) -> None:
        while not self._stop.is_set():
            try:
                raw = self.port.readline()
            except serial.SerialException as e:
                logger.error("Serial port error: %s", e)
                return
            if not raw:
                continue
            message = raw.decode("utf-8", errors="replace").strip()
            if not message or (self.filter_noise and is_device_noise(message)):
                continue
            logger.info("Display: %s", message)

    def send_file(self, path: Path) -> None:
        data = load_route_batch(path)
        logger.info("Sending routes from %s", path)
        with self._write_lock:
            self.port.write(encode_batch(data))
            self.port.flush()
        logger.info("Routes sent")

    def send_latest(self, routes_dir: Path) -> Optional[Path]:
        """Send the newest routes file; returns its path, or None if there was nothing to send."""
        latest = get_latest_routes_file(routes_dir)
        if latest is None:
            logger.error("No routes files found in %s", routes_dir)
            return None
        self.send_file(latest)
        return latest

    def close(self) -> None:
        self._stop.set()
        if self._reader is not None:
            self._reader.join(timeout=2)
        self.port.close()


class RoutesFileHandler(FileSystemEventHandler):
    """Resends the latest routes file shortly after a new one appears."""

    def __init__(self, link: DisplayLink, routes_dir: Path, settle_delay: float = SETTLE_DELAY_S):
        super().__init__()
        self.link = link
        self.routes_dir = routes_dir
        self.settle_delay = settle_delay
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._maybe_schedule(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._maybe_schedule(event.dest_path)

    def _maybe_schedule(self, path: str) -> None:
        if not is_routes_file(path):
            return
        logger.info("New routes file detected: %s", Path(path).name)
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.settle_delay, self._send)
            self._timer.daemon = True
            self._timer.start()

    def _send(self) -> None:
        try:
            self.link.send_latest(self.routes_dir)
        except (RouteStoreError, serial.SerialException) as e:
            logger.error("Error sending routes: %s", e)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()


def open_display(port_name: str, baud: int) -> DisplayLink:
    logger.info("Connecting to display on %s at %d baud", port_name, baud)
    port = serial.Serial(port_name, baudrate=baud, timeout=1)
    logger.info("Port opened")
    # Opening the port resets most boards
    time.sleep(BOARD_RESET_DELAY_S)
    return DisplayLink(port)


def run_once(routes_dir: Path, port_name: str, baud: int, linger: float) -> int:
    if get_latest_routes_file(routes_dir) is None:
        logger.error("No routes files found in %s", routes_dir)
        return 1

    link = open_display(port_name, baud)
    link.start_reader()
    try:
        link.send_latest(routes_dir)
        # Give the display time to answer
        time.sleep(linger)
    finally:
        link.close()
    return 0


def run_watch(routes_dir: Path, port_name: str, baud: int) -> int:
    routes_dir.mkdir(parents=True, exist_ok=True)

    link = open_display(port_name, baud)
    link.start_reader()
    handler = RoutesFileHandler(link, routes_dir)
    observer = Observer()
    observer.schedule(handler, str(routes_dir), recursive=False)

    try:
        link.send_latest(routes_dir)
        observer.start()
        logger.info("Watching %s for new route files, press Ctrl+C to exit", routes_dir)
        while observer.is_alive():
            observer.join(timeout=1)
    except KeyboardInterrupt:
        logger.info("Stopping")
    finally:
        handler.cancel()
        observer.stop()
        if observer.is_alive():
            observer.join()
        link.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Send the latest bus routes to the serial display.")
    parser.add_argument("--watch", action="store_true",
                        help="Stay connected and resend whenever a new routes file appears.")
    parser.add_argument("--port", default=settings.serial_port,
                        help=f"Serial port of the display (default: {settings.serial_port}).")
    parser.add_argument("--baud", type=int, default=settings.serial_baud,
                        help=f"Baud rate, must match the board (default: {settings.serial_baud}).")
    parser.add_argument("--routes-dir", type=Path, default=settings.routes_dir,
                        help="Directory holding persisted routes files.")
    parser.add_argument("--linger", type=float, default=3.0,
                        help="Seconds to keep logging display output after a one-shot send.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=get_settings().log_level, format="%(asctime)s %(levelname)s %(message)s")

    try:
        if args.watch:
            return run_watch(args.routes_dir, args.port, args.baud)
        return run_once(args.routes_dir, args.port, args.baud, args.linger)
    except serial.SerialException as e:
        logger.error("Serial port error: %s", e)
        logger.error("The port may be in use by another program, such as a serial monitor.")
        return 1
    except RouteStoreError as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
