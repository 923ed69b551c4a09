"""
RouteLog Backend - Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for every failure a request can hit.
How:   Each exception carries a user-facing message, a context dict for
       server-side logging, a stable machine-readable `error_code`, and the
       HTTP status it maps to. Global handlers registered in main.py turn
       them into JSON error responses.
Who:   Raised by services and the route store; caught by global handlers.

Exception Hierarchy:
    RouteLogError (base)
    ├── ValidationError            → 400 validation_error
    ├── UnsupportedOperationError  → 400 unsupported_operation
    ├── DatabaseError              → 400 persistence_error
    ├── MissingWaypointsError      → 403 waypoints_required
    ├── NotFoundError              → 404 not_found
    ├── StreetNotFoundError        → 422 street_not_found
    ├── GeocodingServiceError      → 502 geocoding_unavailable
    └── ImageUploadError           (recovered by RouteService, never returned)
"""

from typing import Any, Dict, Optional


class RouteLogError(Exception):
    """
    Base exception for all RouteLog application errors.

    Attributes:
        message:     User-facing error description (safe to return in API response)
        context:     Additional debug info (logged, returned only as `details`
                     for client-fixable errors)
        error_code:  Stable machine-readable code placed in the response body
        status_code: HTTP status used by the global handler
    """

    error_code = "server_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RouteLogError):
    """
    Raised when client input fails a business rule.

    When: Malformed filter header, unknown filter column, unparseable
          distance, oversized image payload.
    """

    error_code = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnsupportedOperationError(RouteLogError):
    """Raised for endpoints that exist on the surface but perform no work (PUT /route)."""

    error_code = "unsupported_operation"
    status_code = 400

    def __init__(
        self,
        operation: str = "operation",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["operation"] = operation
        super().__init__(message=f"{operation} is not supported", context=ctx)


class DatabaseError(RouteLogError):
    """
    Raised when a query, insert or update fails.

    The message returned to the client is always generic; the underlying
    driver error is logged server-side only. Kept at 400 because the mobile
    client treats any 400 on persistence as "try again".
    """

    error_code = "persistence_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Something went wrong while saving or reading routes.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MissingWaypointsError(RouteLogError):
    """Raised when a route submission carries no waypoints."""

    error_code = "waypoints_required"
    status_code = 403

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="A route must contain at least one waypoint.",
            context=context,
        )


class NotFoundError(RouteLogError):
    """Raised when a requested resource does not exist."""

    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class StreetNotFoundError(RouteLogError):
    """
    Raised when reverse geocoding yields no street-typed address component.

    When: The geocoder returned no result for a coordinate, or none of the
          first result's address components has "route" in its types.
    """

    error_code = "street_not_found"
    status_code = 422

    def __init__(
        self,
        lat: float,
        lng: float,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["lat"] = lat
        ctx["lng"] = lng
        super().__init__(
            message=f"No street could be found near {lat},{lng}.",
            context=ctx,
        )


class GeocodingServiceError(RouteLogError):
    """Raised when the reverse-geocoding provider is unreachable or refuses the request."""

    error_code = "geocoding_unavailable"
    status_code = 502

    def __init__(
        self,
        message: str = "The street lookup service is temporarily unavailable.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ImageUploadError(RouteLogError):
    """
    Raised when the image host rejects or fails an upload.

    RouteService catches this and stores the route without a photo.
    """

    error_code = "image_upload_failed"
    status_code = 502

    def __init__(
        self,
        message: str = "Image upload failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
