"""
RouteLog Backend - FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn app.main:app).

Application Layout:
    Middleware (execution order):
        Request ID → Logging → Access Gate → CORS → handler
    Routes:
        /route (list, location, nearby, create, update, delete), /health
    Exception handlers:
        every RouteLogError subclass → its own status and error code
        RequestValidationError       → 400 validation_error
        anything else                → 500 internal_server_error

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (logged, not fatal, so /health still answers)

    Shutdown:
    1. Dispose database engine (close all connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.config import settings
from app.database import dispose_engine
from app.exceptions import (
    DatabaseError,
    GeocodingServiceError,
    MissingWaypointsError,
    NotFoundError,
    RouteLogError,
    StreetNotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from app.middleware.access_gate import AccessGateMiddleware
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import health, route

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Request IDs are embedded in messages by the middleware and handlers.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("RouteLog Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("RouteLog Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(exc: RouteLogError, include_details: bool = True) -> dict:
    body = {
        "error": exc.error_code,
        "message": exc.message,
        "request_id": request_id_var.get(""),
    }
    if include_details and exc.context:
        body["details"] = exc.context
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler map:
        RequestValidationError     → 400 validation_error (request body/params schema)
        ValidationError            → 400 validation_error
        UnsupportedOperationError  → 400 unsupported_operation
        DatabaseError              → 400 persistence_error (generic message)
        MissingWaypointsError      → 403 waypoints_required
        NotFoundError              → 404 not_found
        StreetNotFoundError        → 422 street_not_found
        GeocodingServiceError      → 502 geocoding_unavailable
        RouteLogError (base)       → its own status_code
        Exception (fallback)       → 500 internal_server_error

    Driver errors, SQL and stack traces are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Schema failures share the validation_error body instead of FastAPI's {"detail": ...}."""
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        error = ValidationError(message="Request validation failed", context={"errors": errors})
        logger.warning("[%s] Request validation error: %d issue(s)", request_id_var.get(""), len(errors))
        return JSONResponse(status_code=error.status_code, content=_error_body(error))

    @app.exception_handler(UnsupportedOperationError)
    async def handle_unsupported(request: Request, exc: UnsupportedOperationError):
        logger.info("[%s] Unsupported operation: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(MissingWaypointsError)
    async def handle_missing_waypoints(request: Request, exc: MissingWaypointsError):
        logger.warning("[%s] Route submission without waypoints", request_id_var.get(""))
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(StreetNotFoundError)
    async def handle_street_not_found(request: Request, exc: StreetNotFoundError):
        logger.warning("[%s] %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(GeocodingServiceError)
    async def handle_geocoding_error(request: Request, exc: GeocodingServiceError):
        rid = request_id_var.get("")
        logger.error("[%s] Geocoding error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc, include_details=False),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        """Database error: generic message to the client, details logged server-side."""
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc, include_details=False),
        )

    @app.exception_handler(RouteLogError)
    async def handle_app_error(request: Request, exc: RouteLogError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc, include_details=exc.status_code < 500),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="RouteLog API",
        description=(
            "Stores recorded trips as routes with ordered waypoints. Start and end "
            "streets are resolved by reverse geocoding and trip photos are hosted "
            "on an image CDN."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → AccessGate → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(AccessGateMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(route.router)
    app.include_router(health.router)

    return app


# uvicorn expects `app.main:app`
app = create_app()
