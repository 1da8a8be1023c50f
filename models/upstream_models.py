"""
Models for the Google Routes API `computeRoutes` payload.
Only the fields requested through the field mask are modelled; every field is optional
because the upstream omits whatever does not apply to a route or step.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UpstreamModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class TransitLine(UpstreamModel):
    name: Optional[str] = Field(None, description="Full line name")
    name_short: Optional[str] = Field(None, alias="nameShort", description="Short line name, e.g. the bus number")


class StopDetails(UpstreamModel):
    departure_time: Optional[str] = Field(None, alias="departureTime", description="RFC 3339 departure time at the boarding stop")
    arrival_time: Optional[str] = Field(None, alias="arrivalTime", description="RFC 3339 arrival time at the alighting stop")


class TransitDetails(UpstreamModel):
    transit_line: Optional[TransitLine] = Field(None, alias="transitLine")
    stop_details: Optional[StopDetails] = Field(None, alias="stopDetails")


class RouteStep(UpstreamModel):
    travel_mode: Optional[str] = Field(None, alias="travelMode")
    transit_details: Optional[TransitDetails] = Field(None, alias="transitDetails")


class RouteLeg(UpstreamModel):
    steps: List[RouteStep] = Field(default_factory=list)


class RawUpstreamRoute(UpstreamModel):
    """One candidate route as returned by the upstream."""
    duration: Optional[str] = Field(None, description="Total duration, e.g. '1834s'")
    legs: List[RouteLeg] = Field(default_factory=list)


class ComputeRoutesResponse(UpstreamModel):
    routes: List[RawUpstreamRoute] = Field(default_factory=list)
