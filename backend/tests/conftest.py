"""
RouteLog Backend - Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before any `app` import so Settings,
       the engine and the access gate all see test values. Each test gets
       a fresh in-memory SQLite database (aiosqlite + StaticPool).

Fixture Hierarchy:
    db_engine ── session_factory ── db_session
                                └── test_client (get_db_session overridden)
    fake_geocoder / fake_image_host  providers with no network access
    make_token / auth_headers        signed bearer tokens
    seed_route                       inserts and commits a route
"""

import os
import tempfile
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

# Must run before any app import
_TEST_DIR = tempfile.mkdtemp(prefix="routelog_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/health.db"
os.environ["AUTH_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["GOOGLE_MAPS_API_KEY"] = "test-maps-key"
os.environ["CLOUDINARY_API_KEY"] = "test-cloudinary-key"
os.environ["CLOUDINARY_API_SECRET"] = "test-cloudinary-secret"
os.environ["LOG_LEVEL"] = "WARNING"

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Base, get_db_session
from app.exceptions import GeocodingServiceError, ImageUploadError
from app.models.route import Route, Waypoint  # noqa: F401
from app.services.provider_base import (
    AddressComponent,
    ImageHost,
    ReverseGeocodeResult,
    ReverseGeocoder,
)
from app.services.route_store import route_store

TEST_PHOTO_URL = "https://res.cloudinary.com/test/image/upload/v1/route.jpg"


# ══════════════════════════════════════════════════════════════════════════
# Provider Fakes
# ══════════════════════════════════════════════════════════════════════════


class FakeGeocoder(ReverseGeocoder):
    """
    Returns a street per coordinate from `streets`, else `default_street`.

    A coordinate mapped to None yields a result with no street component.
    Setting `error` makes every lookup raise it.
    """

    def __init__(self, default_street: Optional[str] = "Main St"):
        self.default_street = default_street
        self.streets: Dict[Tuple[float, float], Optional[str]] = {}
        self.error: Optional[GeocodingServiceError] = None
        self.calls: List[Tuple[float, float]] = []

    def is_configured(self) -> bool:
        return True

    async def reverse_geocode(self, lat: float, lng: float) -> ReverseGeocodeResult:
        self.calls.append((lat, lng))
        if self.error is not None:
            raise self.error
        street = self.streets.get((lat, lng), self.default_street)
        if street is None:
            return ReverseGeocodeResult(
                formatted_address="Somewhere",
                components=[AddressComponent(short_name="Somewhere", types=["locality"])],
            )
        return ReverseGeocodeResult(
            formatted_address=f"{street}, Testville",
            components=[
                AddressComponent(short_name="12", types=["street_number"]),
                AddressComponent(short_name=street, long_name=street, types=["route"]),
            ],
        )


class FakeImageHost(ImageHost):
    def __init__(self):
        self.url = TEST_PHOTO_URL
        self.fail = False
        self.uploads: List[str] = []

    def is_configured(self) -> bool:
        return True

    async def upload_base64(self, image_base64: str) -> str:
        self.uploads.append(image_base64)
        if self.fail:
            raise ImageUploadError(message="Invalid image file")
        return self.url


@pytest.fixture
def fake_geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def fake_image_host() -> FakeImageHost:
    return FakeImageHost()


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test; StaticPool keeps the single connection alive."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


def waypoint_rows(points: Sequence[Tuple[float, float]], streets: Optional[Dict[int, str]] = None):
    """Waypoint field dicts with count 0..N-1; `streets` maps count to street."""
    streets = streets or {}
    return [
        {"lat": lat, "lng": lng, "count": count, "street": streets.get(count)}
        for count, (lat, lng) in enumerate(points)
    ]


@pytest.fixture
def seed_route(session_factory):
    """
    Inserts and commits one route in its own session.

    Usage:
        route_id = await seed_route({"id_user_account": 7}, [(0.0, 0.0), (0.1, 0.1)])
    """

    async def _seed(
        route_fields: Optional[Dict[str, Any]] = None,
        points: Sequence[Tuple[float, float]] = ((0.0, 0.0),),
        streets: Optional[Dict[int, str]] = None,
    ) -> int:
        fields = {"route_name": "Seeded", "id_user_account": 1, "distance": 1.0}
        fields.update(route_fields or {})
        async with session_factory() as session:
            route, _ = await route_store.insert_route(
                session, fields, waypoint_rows(points, streets)
            )
            await session.commit()
            return route.id

    return _seed


# ══════════════════════════════════════════════════════════════════════════
# Auth Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def make_token():
    """Signs a token with the test secret; pass scope=None to omit the scope claim."""

    def _make(
        scope: Optional[str] = "openid full_access",
        expires_in: int = 300,
        secret: Optional[str] = None,
        **claims: Any,
    ) -> str:
        payload: Dict[str, Any] = {"sub": "user-1", "exp": int(time.time()) + expires_in}
        if scope is not None:
            payload["scope"] = scope
        payload.update(claims)
        return jwt.encode(
            payload, secret or settings.auth_secret, algorithm=settings.auth_algorithm
        )

    return _make


@pytest.fixture
def auth_headers(make_token) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def test_client(session_factory, fake_geocoder, fake_image_host, monkeypatch):
    """
    HTTPX AsyncClient wired to the FastAPI app through ASGITransport.

    Database sessions come from the per-test in-memory engine and the
    route service uses the provider fakes.
    """
    from app.main import app
    from app.services.route_service import route_service

    async def _test_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr(route_service, "geocoder", fake_geocoder)
    monkeypatch.setattr(route_service, "image_host", fake_image_host)
    app.dependency_overrides[get_db_session] = _test_db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
