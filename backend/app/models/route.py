"""
RouteLog Backend - Route and Waypoint SQLAlchemy Models
=========================================================

What:  ORM models for the `route` and `waypoint` tables.
Who:   Used by RouteStore for all reads and writes, and by Alembic.

Table Design:
    route     one row per recorded trip
    waypoint  one row per GPS point; `count` is the 0-based position in the trip

    route.id ──< waypoint.id_route  (one route, many waypoints)

Lifecycle:
    1. Route and all of its waypoints are inserted in one transaction
    2. Waypoints are never updated individually
    3. "Deleting" a route sets id_user_account to the sentinel 0 and stamps
       deleted_at; rows are never physically removed
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import (
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TIMESTAMP

from app.database import Base

# Owner id assigned to routes that have been disowned ("deleted")
DISOWNED_USER_ID = 0


class Route(Base):
    """
    A recorded trip with its metadata.

    Query Patterns:
        - Filter by owner:   WHERE id_user_account = :id  (idx_route_user)
        - Join to geometry:  JOIN waypoint ON route.id = waypoint.id_route
        - Live rows only:    WHERE deleted_at IS NULL
    """

    __tablename__ = "route"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # tripStats.routeName
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # tripData.routeTitle
    route_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    id_user_account: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Owning user; 0 marks a disowned route",
    )

    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    favorite_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    current_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    photo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Opaque client value (encoded polyline, static map params, ...), stored as-is
    route_preview: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)

    distance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        default=None,
        comment="Set when the route is disowned; NULL for live routes",
    )

    waypoints: Mapped[List["Waypoint"]] = relationship(
        back_populates="route",
        order_by="Waypoint.count",
        lazy="raise",
    )

    __table_args__ = (
        CheckConstraint("favorite_count >= 0", name="ck_route_favorite_count_non_negative"),
        Index("idx_route_user", "id_user_account"),
    )

    def __repr__(self) -> str:
        return (
            f"<Route(id={self.id}, route_name='{self.route_name}', "
            f"id_user_account={self.id_user_account})>"
        )


class Waypoint(Base):
    """
    A single GPS point belonging to a route.

    `street` is only populated for the first and last waypoint of a route,
    from reverse geocoding at creation time.
    """

    __tablename__ = "waypoint"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    id_route: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("route.id", ondelete="CASCADE"),
        nullable=False,
    )

    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    # 0-based position within the route
    count: Mapped[int] = mapped_column(Integer, nullable=False)

    street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    route: Mapped[Route] = relationship(back_populates="waypoints", lazy="raise")

    __table_args__ = (
        Index("idx_waypoint_route", "id_route"),
        Index("idx_waypoint_lat_lng", "lat", "lng"),
    )

    def __repr__(self) -> str:
        return (
            f"<Waypoint(id={self.id}, id_route={self.id_route}, "
            f"count={self.count}, lat={self.lat}, lng={self.lng})>"
        )
