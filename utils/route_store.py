"""
Persistence of computed route sets.
Each successful search is written once to a fresh, sortable file name; the newest
file by modification time is what the display bridge forwards.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from models.pydantic_models import PersistedRouteBatch

logger = logging.getLogger(__name__)

ROUTES_FILE_PREFIX = "routes_"
ROUTES_FILE_SUFFIX = ".json"


class RouteStoreError(Exception):
    """Exception raised when a route batch cannot be written or read."""
    pass


def is_routes_file(name: Union[str, Path]) -> bool:
    name = Path(name).name
    return name.startswith(ROUTES_FILE_PREFIX) and name.endswith(ROUTES_FILE_SUFFIX)


def build_routes_filename(generated_at: datetime, attempt: int = 0) -> str:
    stamp = generated_at.strftime("%Y%m%dT%H%M%S%f")
    if attempt:
        stamp = f"{stamp}_{attempt}"
    return f"{ROUTES_FILE_PREFIX}{stamp}{ROUTES_FILE_SUFFIX}"


def persist_route_batch(routes_dir: Path, batch: PersistedRouteBatch, generated_at: Optional[datetime] = None) -> Path:
    """
    Write a route batch to a new file under routes_dir.

    The file is written to a temporary name and renamed into place, so readers never
    see a partial file. Existing files are never overwritten.

    Args:
        routes_dir: Directory holding persisted batches, created if missing
        batch: The batch to write
        generated_at: Timestamp used for the file name, defaults to batch.generated_at

    Returns:
        Path of the written file

    Raises:
        RouteStoreError: If the file cannot be written
    """
    if generated_at is None:
        generated_at = datetime.fromisoformat(batch.generated_at)

    payload = batch.model_dump(by_alias=True)

    try:
        routes_dir.mkdir(parents=True, exist_ok=True)

        attempt = 0
        path = routes_dir / build_routes_filename(generated_at, attempt)
        while path.exists():
            attempt += 1
            path = routes_dir / build_routes_filename(generated_at, attempt)

        tmp_path = routes_dir / f".{path.name}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except OSError as e:
        raise RouteStoreError(f"Could not write routes file in {routes_dir}: {e}") from e

    logger.info("Saved %d routes to %s", len(batch.routes), path)
    return path


def get_latest_routes_file(routes_dir: Path) -> Optional[Path]:
    """Most recently modified routes file in routes_dir, or None if there is none."""
    if not routes_dir.is_dir():
        return None

    candidates = [p for p in routes_dir.iterdir() if p.is_file() and is_routes_file(p)]
    if not candidates:
        return None
    return max(candidates, key=lambda p: (p.stat().st_mtime, p.name))


def load_route_batch(path: Path) -> Dict[str, Any]:
    """Read a persisted batch back as plain JSON data."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RouteStoreError(f"Could not read routes file {path}: {e}") from e
