"""Pydantic models for API requests and responses."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class CrossingQueryParams(BaseModel):
    """Validated query parameters for the ``/crossings`` endpoint."""

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")
    date_utc: date = Field(..., alias="date", description="UTC calendar date (YYYY-MM-DD)")
    altitude_deg: float = Field(
        0.0, ge=-90.0, le=90.0, description="Threshold altitude of the Sun's center"
    )
    offset_hours: Optional[float] = Field(
        None,
        ge=-24.0,
        le=24.0,
        description="Fixed UTC offset in hours anchoring the local day",
    )
    use_limb: bool = Field(False, description="Correct the threshold for the solar radius")
    use_refraction: bool = Field(False, description="Correct the threshold for refraction")


class CrossingResponse(BaseModel):
    """Rise/set times for one day, or the ``always`` classification."""

    ok: bool = True
    date_utc: date = Field(..., description="Requested UTC date")
    latitude: float = Field(..., description="Latitude in degrees")
    longitude: float = Field(..., description="Longitude in degrees")
    altitude_deg: float = Field(..., description="Requested threshold altitude")
    threshold_deg: float = Field(..., description="Threshold after limb/refraction corrections")
    always: Optional[Literal["up", "down"]] = Field(
        None, description="Set when the Sun does not cross the threshold"
    )
    rising_utc: Optional[str] = Field(None, description="Rising time in UTC (ISO-8601)")
    setting_utc: Optional[str] = Field(None, description="Setting time in UTC (ISO-8601)")
    offset_hours: Optional[float] = Field(None, description="User-specified offset in hours")
    rising_local: Optional[str] = Field(
        None, description="Rising time in local time when offset provided"
    )
    setting_local: Optional[str] = Field(
        None, description="Setting time in local time when offset provided"
    )
    oracle: Literal["erfa", "spice"] = Field(..., description="Ephemeris source identifier")


class PositionQueryParams(BaseModel):
    """Validated query parameters for the ``/position`` endpoint."""

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")
    time: datetime = Field(..., description="Timezone-aware instant (ISO-8601)")


class PositionResponse(BaseModel):
    """Apparent Sun position in degrees."""

    ok: bool = True
    time_utc: str
    julian_date: float
    altitude_deg: float
    azimuth_deg: float
    declination_deg: float
    right_ascension_deg: float


class HealthResponse(BaseModel):
    """Health-check response."""

    ok: bool = True
    oracle: Literal["erfa", "spice"]
    files: List[str]


class ErrorResponse(BaseModel):
    """Error payload."""

    ok: bool = False
    code: str
    error: str
