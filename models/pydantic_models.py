from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Route Models
class RankedRouteResult(BaseModel):
    """One route as shown to clients and persisted for the display."""
    model_config = ConfigDict(populate_by_name=True)

    bus_number: Optional[str] = Field(None, alias="busNumber", description="Short name of the first bus line")
    pickup_arrival_time: Optional[str] = Field(None, alias="pickupArrivalTime", description="Bus time at the pickup stop, HH:MM")
    duration_min: Optional[int] = Field(None, alias="durationMin", ge=0, description="Total route duration in minutes")


class RouteSearchResponse(BaseModel):
    """Response body of a route search."""
    count: int = Field(..., ge=0, description="Number of routes returned")
    routes: List[RankedRouteResult] = Field(default_factory=list, description="At most three routes")


class PersistedRouteBatch(BaseModel):
    """Contents of one persisted route file."""
    model_config = ConfigDict(populate_by_name=True)

    origin: str = Field(..., description="Origin as requested, 'lat,lng'")
    destination: str = Field(..., description="Destination as requested, 'lat,lng'")
    arrival_time: Optional[str] = Field(None, alias="arrivalTime", description="Requested arrival time, HH:MM")
    generated_at: str = Field(..., alias="generatedAt", description="ISO 8601 generation timestamp")
    routes: List[RankedRouteResult] = Field(default_factory=list)


# Place Models
class GeocodeResult(BaseModel):
    """Coordinates of a geocoded address."""
    lat: float = Field(..., description="Latitude")
    lng: float = Field(..., description="Longitude")


# System Models
class HealthResponse(BaseModel):
    status: str = Field(..., description="Service status")
    upstream_configured: bool = Field(..., description="Whether the upstream API key is set")


# Error Models
class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Human readable error message")
    code: Optional[str] = Field(None, description="Machine readable error code")
    request_id: Optional[str] = Field(None, description="Request identifier")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "origin and destination required",
                "code": "MISSING_PARAMETER",
                "request_id": "req_123456789",
            }
        }
    )
