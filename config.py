import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load .env from repo root
ROOT_DIR = Path(__file__).resolve().parent
env_path = ROOT_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once at startup and passed to the components that need it."""
    google_maps_api_key: Optional[str] = None
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    routes_dir: Path = ROOT_DIR / "routes"
    upstream_timeout_s: float = 5.0
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    serial_port: str = "COM10"
    serial_baud: int = 115200

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY") or None,
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("PORT", "3000")),
            routes_dir=Path(os.getenv("ROUTES_DIR", str(ROOT_DIR / "routes"))),
            upstream_timeout_s=float(os.getenv("UPSTREAM_TIMEOUT_S", "5.0")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            serial_port=os.getenv("SERIAL_PORT", "COM10"),
            serial_baud=int(os.getenv("SERIAL_BAUD", "115200")),
        )


def get_settings() -> Settings:
    return Settings.from_env()
