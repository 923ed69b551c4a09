"""
RouteLog Backend - Route Service (Submission Orchestrator)
============================================================

What:  Turns a route submission into a stored route with geocoded endpoints
       and an optional hosted photo.
How:   Composes the reverse geocoder, the image host and RouteStore.
Who:   Called by the POST /route handler.

Orchestration Flow (POST /route):
    ┌──────────┐   ┌──────────────┐   ┌─────────────┐   ┌─────────────┐   ┌─────────┐
    │ Validate │──▶│ Geocode first│──▶│ Upload photo│──▶│ Insert route│──▶│ Respond │
    │ (no I/O) │   │ & last point │   │ (optional)  │   │ + waypoints │   │         │
    └──────────┘   └──────────────┘   └─────────────┘   └─────────────┘   └─────────┘

    Validate fails  → MissingWaypointsError (403) / ValidationError (400),
                      nothing persisted and no outbound call made
    Geocode fails   → StreetNotFoundError (422) / GeocodingServiceError (502)
    Upload fails    → logged, route stored with photo_url = None
    Insert fails    → DatabaseError (400), transaction rolled back
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    ImageUploadError,
    MissingWaypointsError,
    StreetNotFoundError,
    ValidationError,
)
from app.schemas.route import (
    LatLng,
    RouteCreatedResponse,
    RouteResponse,
    RouteSubmission,
    WaypointResponse,
)
from app.services.geocoding_service import geocoding_service
from app.services.image_service import image_service
from app.services.provider_base import ImageHost, ReverseGeocoder
from app.services.route_store import RouteStore, route_store

logger = logging.getLogger(__name__)


def parse_distance(raw: Union[float, int, str, None]) -> float:
    """
    Numeric distance from a human-readable string.

    Takes the first whitespace-delimited token and converts it; the unit is
    not checked. "12.5 miles" → 12.5, "0 m" → 0.0, 7 → 7.0.

    Raises:
        ValidationError: value missing or its first token is not a number
    """
    if isinstance(raw, bool):
        raise ValidationError(message="distance must be a number or a string like '5.2 km'", field="distance")
    if isinstance(raw, (int, float)):
        return float(raw)

    tokens = (raw or "").split()
    if not tokens:
        raise ValidationError(message="distance is required", field="distance")
    try:
        return float(tokens[0])
    except ValueError:
        raise ValidationError(
            message=f"distance '{raw}' does not start with a number",
            field="distance",
        )


class RouteService:
    """
    Business logic for route submissions.

    Providers are injected so tests can pass fakes; the module-level
    singleton uses the Google and Cloudinary clients.
    """

    def __init__(
        self,
        geocoder: Optional[ReverseGeocoder] = None,
        image_host: Optional[ImageHost] = None,
        store: Optional[RouteStore] = None,
    ):
        self.geocoder = geocoder or geocoding_service
        self.image_host = image_host or image_service
        self.store = store or route_store

    async def create_route(
        self, db: AsyncSession, submission: RouteSubmission
    ) -> RouteCreatedResponse:
        """
        Validate → geocode endpoints → upload photo → persist → respond.

        Raises:
            MissingWaypointsError: no waypoints in the submission
            ValidationError: unparseable distance or oversized image
            StreetNotFoundError: an endpoint has no street-typed address component
            GeocodingServiceError: geocoder unreachable or refused the lookup
            DatabaseError: route or waypoint insert failed
        """
        trip = submission.trip_data
        stats = submission.trip_stats

        # ── Step 1: Validate (no I/O) ─────────────────────────────────────
        if not trip.way_points:
            raise MissingWaypointsError(context={"user_id": trip.user_id})

        distance = parse_distance(trip.distance)

        image_base64 = stats.image_base64 or ""
        if len(image_base64) > settings.max_image_base64_size:
            raise ValidationError(
                message="imageBase64 exceeds the maximum upload size",
                field="imageBase64",
                context={"max_size": settings.max_image_base64_size},
            )

        locations = [waypoint.location for waypoint in trip.way_points]

        # ── Step 2: Geocode first and last waypoint ───────────────────────
        first_street = await self._street_at(locations[0])
        if len(locations) > 1:
            last_street = await self._street_at(locations[-1])
        else:
            last_street = first_street

        # ── Step 3: Upload photo (failure degrades to no photo) ───────────
        photo_url = await self._upload_photo(image_base64) if image_base64 else None

        # ── Step 4: Persist ───────────────────────────────────────────────
        route_fields = {
            "display_name": stats.route_name,
            "route_name": trip.route_title,
            "id_user_account": trip.user_id,
            "type": None,
            "favorite_count": 0,
            "current_rating": stats.rating,
            "photo_url": photo_url,
            "route_preview": trip.route_preview,
            "distance": distance,
        }
        waypoint_fields = self._waypoint_rows(locations, first_street, last_street)

        route, waypoints = await self.store.insert_route(db, route_fields, waypoint_fields)

        return RouteCreatedResponse(
            type="Success!",
            result=[WaypointResponse.model_validate(waypoint) for waypoint in waypoints],
            route_id=route.id,
            route=RouteResponse.model_validate(route),
        )

    @staticmethod
    def _waypoint_rows(
        locations: List[LatLng], first_street: str, last_street: str
    ) -> List[Dict[str, Any]]:
        last_index = len(locations) - 1
        rows = []
        for count, location in enumerate(locations):
            street = None
            if count == 0:
                street = first_street
            elif count == last_index:
                street = last_street
            rows.append(
                {"lat": location.lat, "lng": location.lng, "count": count, "street": street}
            )
        return rows

    async def _street_at(self, location: LatLng) -> str:
        address = await self.geocoder.reverse_geocode(location.lat, location.lng)
        street = address.street_name()
        if street is None:
            logger.warning(
                "No street component for %s,%s (address: %s)",
                location.lat, location.lng, address.formatted_address,
            )
            raise StreetNotFoundError(lat=location.lat, lng=location.lng)
        return street

    async def _upload_photo(self, image_base64: str) -> Optional[str]:
        try:
            return await self.image_host.upload_base64(image_base64)
        except ImageUploadError as e:
            logger.error("Route photo upload failed, storing without photo: %s | %s", e.message, e.context)
            return None


# ── Singleton Instance ────────────────────────────────────────────────────
route_service = RouteService()
