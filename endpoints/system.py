"""
System status endpoints router.
"""

from fastapi import APIRouter

from config import get_settings
from models.pydantic_models import HealthResponse

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health():
    """Service liveness and whether the upstream credential is configured."""
    configured = bool(get_settings().google_maps_api_key)
    return HealthResponse(status="ok" if configured else "degraded", upstream_configured=configured)
