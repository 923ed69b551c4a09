"""
RouteLog Backend - Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract with the mobile client.
How:   FastAPI uses these models to validate request bodies, serialize
       responses, and generate the OpenAPI documentation.

Wire naming:
    The route submission body keeps the client's camelCase keys
    (tripData, wayPoints, imageBase64, ...) through field aliases; Python
    code works with snake_case attribute names. Stored rows are returned with
    their column names.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, model_validator


# ══════════════════════════════════════════════════════════════════════════
# Request Models: route submission (POST /route)
# ══════════════════════════════════════════════════════════════════════════


class LatLng(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class WaypointIn(BaseModel):
    """One recorded GPS point as sent by the client: {"location": {"lat", "lng"}}."""

    location: LatLng

    model_config = {"extra": "ignore"}


class TripData(BaseModel):
    """Trip geometry and ownership, the `tripData` half of a submission."""

    user_id: Optional[int] = Field(default=None, alias="userId")
    route_title: Optional[str] = Field(default=None, alias="routeTitle")
    way_points: Optional[List[WaypointIn]] = Field(default=None, alias="wayPoints")
    # Human-readable distance such as "5.2 km"; a bare number is accepted too
    distance: Optional[Union[float, str]] = None
    route_preview: Optional[Any] = None

    model_config = {"populate_by_name": True, "extra": "ignore"}


class TripStats(BaseModel):
    """Trip statistics and media, the `tripStats` half of a submission."""

    avg_speed: Optional[float] = Field(default=None, alias="avgSpeed")
    rating: Optional[float] = None
    speed_counter: Optional[Any] = Field(default=None, alias="speedCounter")
    image_base64: Optional[str] = Field(default=None, alias="imageBase64")
    route_name: Optional[str] = Field(default=None, alias="routeName")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class RouteSubmission(BaseModel):
    """
    Body of POST /route.

    Both halves default to empty so that a submission without waypoints
    reaches the service and is rejected with `waypoints_required` instead of
    a schema error.
    """

    trip_data: TripData = Field(default_factory=TripData, alias="tripData")
    trip_stats: TripStats = Field(default_factory=TripStats, alias="tripStats")

    model_config = {"populate_by_name": True}


# ══════════════════════════════════════════════════════════════════════════
# Filter Models: validated replacements for the free-form filter header
# ══════════════════════════════════════════════════════════════════════════


class RouteFilter(BaseModel):
    """
    Column/value equality filter over the route table.

    Only the listed columns are accepted; any other key is rejected. An
    explicit null matches rows where the column IS NULL.
    """

    id: Optional[int] = None
    display_name: Optional[str] = None
    route_name: Optional[str] = None
    id_user_account: Optional[int] = None
    type: Optional[str] = None
    favorite_count: Optional[int] = None
    current_rating: Optional[float] = None
    photo_url: Optional[str] = None
    distance: Optional[float] = None

    model_config = {"extra": "forbid"}

    def conditions(self) -> Dict[str, Any]:
        """Returns only the keys the client actually supplied."""
        return self.model_dump(exclude_unset=True)

    def is_empty(self) -> bool:
        return not self.model_fields_set


class NearbyFilter(BaseModel):
    """
    Center and half-width (degrees) of the nearby-waypoint search box.

    Missing values fall back to the configured defaults; a distance of 0 is
    treated as missing and also falls back.
    """

    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    distance: Optional[float] = Field(default=None, ge=0)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def require_both_coordinates(self) -> "NearbyFilter":
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be given together")
        return self


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class RouteResponse(BaseModel):
    """A stored route row."""

    id: int
    display_name: Optional[str] = None
    route_name: Optional[str] = None
    id_user_account: Optional[int] = None
    type: Optional[str] = None
    favorite_count: int = 0
    current_rating: Optional[float] = None
    photo_url: Optional[str] = None
    route_preview: Optional[Any] = None
    distance: Optional[float] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class WaypointResponse(BaseModel):
    """A stored waypoint row."""

    id: int
    id_route: int
    lat: float
    lng: float
    count: int
    street: Optional[str] = None

    model_config = {"from_attributes": True}


class RouteCreatedResponse(BaseModel):
    """
    Returned by POST /route.

    `result` holds the persisted waypoints, `route` the persisted route row.
    """

    type: str = Field(default="Success!")
    result: List[WaypointResponse]
    route_id: int = Field(alias="routeId")
    route: RouteResponse

    model_config = {"populate_by_name": True}


class WaypointPoint(BaseModel):
    lat: float
    lng: float
    count: int


class MergedRouteResponse(BaseModel):
    """A route with its geometry folded into an ordered `waypoints` list."""

    id: int
    route_name: Optional[str] = None
    type: Optional[str] = None
    current_rating: Optional[float] = None
    favorite_count: int = 0
    waypoints: List[WaypointPoint] = Field(default_factory=list)


class NearbyWaypointResponse(BaseModel):
    """A waypoint inside the search box, flattened together with its parent route."""

    id: int
    id_route: int
    lat: float
    lng: float
    count: int
    street: Optional[str] = None
    display_name: Optional[str] = None
    route_name: Optional[str] = None
    id_user_account: Optional[int] = None
    type: Optional[str] = None
    favorite_count: int = 0
    current_rating: Optional[float] = None
    photo_url: Optional[str] = None
    route_preview: Optional[Any] = None
    distance: Optional[float] = None


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "street_not_found",
            "message": "No street could be found near 29.95,-90.07.",
            "details": {"lat": 29.95, "lng": -90.07},
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    geocoder: str = Field(description="Reverse geocoding provider: configured, unconfigured")
    image_host: str = Field(description="Image hosting provider: configured, unconfigured")
    uptime_seconds: float = Field(description="Seconds since service started")
