"""
RouteLog Backend - Route Handlers
===================================

What:  The /route resource: listing, merged geometry, nearby search,
       creation, and ownership stripping.
How:   Parses and validates filters, delegates to RouteStore / RouteService,
       and returns the response models. Errors are raised as RouteLogError
       subclasses and formatted by the global handlers in main.py.

Endpoints:
    GET    /route            routes matching the filter
    GET    /route&location   one route with its waypoints   (alias /route/location)
    GET    /route&nearby     route starts / named streets in a box (alias /route/nearby)
    POST   /route            store a recorded trip
    PUT    /route            not supported (400)
    DELETE /route            disown the routes matching the JSON body

Filters:
    The `filter` header (a JSON object) is still accepted from older clients.
    The same keys may be given as query parameters, which take precedence.
    Both are validated against RouteFilter / NearbyFilter; unknown keys are
    rejected with 400.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.exceptions import UnsupportedOperationError, ValidationError
from app.schemas.route import (
    ErrorResponse,
    MergedRouteResponse,
    NearbyFilter,
    NearbyWaypointResponse,
    RouteCreatedResponse,
    RouteFilter,
    RouteResponse,
    RouteSubmission,
)
from app.services.route_service import route_service
from app.services.route_store import route_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Routes"])

FilterT = TypeVar("FilterT", bound=BaseModel)

EMPTY_DELETE_MESSAGE = "Please specify row"


def _validate_filter(model_cls: Type[FilterT], raw: Dict[str, Any]) -> FilterT:
    try:
        return model_cls.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            message="Invalid filter",
            field="filter",
            context={
                "errors": e.errors(include_url=False, include_context=False, include_input=False)
            },
        )


def _read_filter(model_cls: Type[FilterT], request: Request) -> FilterT:
    raw: Dict[str, Any] = {}

    header = request.headers.get("filter")
    if header:
        try:
            parsed = json.loads(header)
        except json.JSONDecodeError:
            raise ValidationError(message="filter header is not valid JSON", field="filter")
        if not isinstance(parsed, dict):
            raise ValidationError(message="filter header must be a JSON object", field="filter")
        raw.update(parsed)

    raw.update(request.query_params)
    return _validate_filter(model_cls, raw)


async def route_filter(request: Request) -> RouteFilter:
    return _read_filter(RouteFilter, request)


async def nearby_filter(request: Request) -> NearbyFilter:
    return _read_filter(NearbyFilter, request)


@router.get(
    "/route&location",
    response_model=MergedRouteResponse,
    responses={
        400: {"description": "Invalid filter or query failure", "model": ErrorResponse},
        404: {"description": "No route matches the filter", "model": ErrorResponse},
    },
    summary="Get one route with its waypoints",
)
@router.get("/route/location", response_model=MergedRouteResponse, include_in_schema=False)
async def get_route_with_location(
    filters: RouteFilter = Depends(route_filter),
    db: AsyncSession = Depends(get_db_session),
) -> MergedRouteResponse:
    """
    The filter should identify a single route (usually `{"id": ...}`); if it
    matches several, the lowest route id is returned.
    """
    return await route_store.fetch_merged_route(db, filters)


@router.get(
    "/route&nearby",
    response_model=List[NearbyWaypointResponse],
    responses={400: {"description": "Invalid filter or query failure", "model": ErrorResponse}},
    summary="Find route starts and named-street waypoints near a point",
)
@router.get("/route/nearby", response_model=List[NearbyWaypointResponse], include_in_schema=False)
async def get_nearby_waypoints(
    filters: NearbyFilter = Depends(nearby_filter),
    db: AsyncSession = Depends(get_db_session),
) -> List[NearbyWaypointResponse]:
    lat = filters.lat if filters.lat is not None else settings.nearby_default_lat
    lng = filters.lng if filters.lng is not None else settings.nearby_default_lng
    distance = filters.distance or settings.nearby_default_distance
    return await route_store.find_nearby_waypoints(db, lat=lat, lng=lng, distance=distance)


@router.get(
    "/route",
    response_model=List[RouteResponse],
    responses={400: {"description": "Invalid filter or query failure", "model": ErrorResponse}},
    summary="List routes matching a filter",
)
async def list_routes(
    filters: RouteFilter = Depends(route_filter),
    db: AsyncSession = Depends(get_db_session),
) -> List[RouteResponse]:
    routes = await route_store.list_routes(db, filters)
    return [RouteResponse.model_validate(route) for route in routes]


@router.post(
    "/route",
    status_code=201,
    response_model=RouteCreatedResponse,
    responses={
        400: {"description": "Invalid distance/image or persistence failure", "model": ErrorResponse},
        403: {"description": "Submission has no waypoints", "model": ErrorResponse},
        422: {"description": "No street found for the first or last waypoint", "model": ErrorResponse},
        502: {"description": "Geocoding provider unavailable", "model": ErrorResponse},
    },
    summary="Store a recorded trip",
)
async def create_route(
    submission: RouteSubmission,
    db: AsyncSession = Depends(get_db_session),
) -> RouteCreatedResponse:
    trip = submission.trip_data
    logger.info(
        "Received route submission: user=%s waypoints=%d image=%s",
        trip.user_id,
        len(trip.way_points or []),
        bool(submission.trip_stats.image_base64),
    )
    return await route_service.create_route(db, submission)


@router.put(
    "/route",
    responses={400: {"description": "Always returned", "model": ErrorResponse}},
    summary="Not supported",
)
async def update_route() -> None:
    raise UnsupportedOperationError(operation="PUT /route")


@router.delete(
    "/route",
    response_model=List[RouteResponse],
    responses={
        200: {"description": "Routes disowned by this request, or a plain-text prompt for an empty body"},
        400: {"description": "Invalid filter or persistence failure", "model": ErrorResponse},
    },
    summary="Disown the routes matching a filter",
)
async def delete_routes(
    body: Optional[Dict[str, Any]] = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
):
    """
    Routes are never removed: matching routes are handed to owner 0 and
    marked deleted. An empty body changes nothing.
    """
    if not body:
        return PlainTextResponse(EMPTY_DELETE_MESSAGE)

    filters = _validate_filter(RouteFilter, body)
    routes = await route_store.strip_ownership(db, filters)
    return [RouteResponse.model_validate(route) for route in routes]
