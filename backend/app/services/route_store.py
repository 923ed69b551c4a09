"""
RouteLog Backend - Route Data-Access Layer
============================================

What:  Every query the service issues against the `route` and `waypoint` tables.
How:   SQLAlchemy 2.0 Core/ORM statements executed on the request's
       AsyncSession. Database failures are logged with full detail and
       re-raised as DatabaseError with a generic message.
Who:   Called by RouteService and, for plain reads, directly by the routes.

Soft delete:
    Rows are never removed. strip_ownership() hands a route to the sentinel
    owner 0 and stamps deleted_at; every read here skips stamped rows.

Query plans:
    list_routes           SELECT route.* WHERE <filter> AND deleted_at IS NULL
    fetch_merged_route    route JOIN waypoint, ordered by route.id, waypoint.count
    find_nearby_waypoints waypoint JOIN route inside a lat/lng box
                          (idx_waypoint_lat_lng range scan)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DatabaseError, NotFoundError
from app.models.route import DISOWNED_USER_ID, Route, Waypoint
from app.schemas.route import (
    MergedRouteResponse,
    NearbyWaypointResponse,
    RouteFilter,
    WaypointPoint,
)

logger = logging.getLogger(__name__)


def _filter_clauses(route_filter: RouteFilter) -> List[Any]:
    """Equality clauses for the supplied filter keys; null values become IS NULL."""
    clauses = []
    for column_name, value in route_filter.conditions().items():
        column = getattr(Route, column_name)
        clauses.append(column.is_(None) if value is None else column == value)
    return clauses


class RouteStore:
    """
    Stateless query layer; every method receives the request's session.

    Transactions are owned by get_db_session: methods only flush, and the
    dependency commits or rolls back once per request.
    """

    async def list_routes(
        self, db: AsyncSession, route_filter: RouteFilter
    ) -> List[Route]:
        query = (
            select(Route)
            .where(*_filter_clauses(route_filter), Route.deleted_at.is_(None))
            .order_by(Route.id)
        )
        try:
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing routes: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve routes. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    async def fetch_merged_route(
        self, db: AsyncSession, route_filter: RouteFilter
    ) -> MergedRouteResponse:
        """
        Returns one route with its waypoints folded into `waypoints`.

        The filter is expected to identify a single route. When several match,
        the lowest id wins and the other routes' waypoints are dropped, not
        appended to the list; the matched ids are logged.

        Raises:
            NotFoundError: no live route with at least one waypoint matches
            DatabaseError: query execution failed
        """
        query = (
            select(
                Route.id,
                Route.route_name,
                Route.type,
                Route.current_rating,
                Route.favorite_count,
                Waypoint.lat,
                Waypoint.lng,
                Waypoint.count,
            )
            .join(Waypoint, Route.id == Waypoint.id_route)
            .where(*_filter_clauses(route_filter), Route.deleted_at.is_(None))
            .order_by(Route.id, Waypoint.count)
        )
        try:
            result = await db.execute(query)
            # .mappings(): Row objects are tuples, so row.count would be tuple.count
            rows = result.mappings().all()
        except SQLAlchemyError as e:
            logger.error("Database error fetching merged route: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve the route. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        if not rows:
            raise NotFoundError(resource="route", context={"filter": route_filter.conditions()})

        first = rows[0]
        route_rows = [row for row in rows if row["id"] == first["id"]]
        if len(route_rows) != len(rows):
            logger.warning(
                "Merged route filter matched more than one route; using route %s of %s",
                first["id"],
                sorted({row["id"] for row in rows}),
            )

        return MergedRouteResponse(
            id=first["id"],
            route_name=first["route_name"],
            type=first["type"],
            current_rating=first["current_rating"],
            favorite_count=first["favorite_count"],
            waypoints=[
                WaypointPoint(lat=row["lat"], lng=row["lng"], count=row["count"])
                for row in route_rows
            ],
        )

    async def find_nearby_waypoints(
        self,
        db: AsyncSession,
        lat: float,
        lng: float,
        distance: float,
    ) -> List[NearbyWaypointResponse]:
        """
        Route starts and named-street waypoints inside a lat/lng box.

        Box: [lat - distance, lat + distance] x [lng - distance, lng + distance],
        bounds inclusive, distance in degrees. This is a rectangular
        approximation, not a geodesic radius.
        """
        in_box = and_(
            Waypoint.lat.between(lat - distance, lat + distance),
            Waypoint.lng.between(lng - distance, lng + distance),
        )
        route_start = Waypoint.count == 0
        named_street = and_(Waypoint.count != 0, Waypoint.street.isnot(None))

        query = (
            select(
                Waypoint.id,
                Waypoint.id_route,
                Waypoint.lat,
                Waypoint.lng,
                Waypoint.count,
                Waypoint.street,
                Route.display_name,
                Route.route_name,
                Route.id_user_account,
                Route.type,
                Route.favorite_count,
                Route.current_rating,
                Route.photo_url,
                Route.route_preview,
                Route.distance,
            )
            .join(Route, Route.id == Waypoint.id_route)
            .where(in_box, or_(route_start, named_street), Route.deleted_at.is_(None))
            .order_by(Waypoint.id_route, Waypoint.count)
        )
        try:
            result = await db.execute(query)
            rows = result.mappings().all()
        except SQLAlchemyError as e:
            logger.error("Database error in nearby search: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not search nearby routes. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return [NearbyWaypointResponse(**row) for row in rows]

    async def insert_route(
        self,
        db: AsyncSession,
        route_fields: Dict[str, Any],
        waypoint_fields: Sequence[Dict[str, Any]],
    ) -> Tuple[Route, List[Waypoint]]:
        """
        Inserts a route, then its waypoints stamped with the new route id.

        Both inserts run in the request transaction; if either fails the
        dependency rolls back and no route is left without its waypoints.
        """
        try:
            route = Route(**route_fields)
            db.add(route)
            await db.flush()
            await db.refresh(route)

            waypoints = [
                Waypoint(id_route=route.id, **fields) for fields in waypoint_fields
            ]
            db.add_all(waypoints)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error inserting route: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Something went wrong while saving the route.",
                context={"error_type": type(e).__name__},
            ) from e

        logger.info("Route %s stored with %d waypoints", route.id, len(waypoints))
        return route, waypoints

    async def strip_ownership(
        self, db: AsyncSession, route_filter: RouteFilter
    ) -> List[Route]:
        """
        Disowns every live route matching the filter.

        Sets id_user_account to the sentinel owner and stamps deleted_at.
        Returns exactly the routes this call disowned. The caller must reject
        an empty filter; an empty filter here would match every route.
        """
        try:
            id_query = select(Route.id).where(
                *_filter_clauses(route_filter), Route.deleted_at.is_(None)
            )
            route_ids = list((await db.execute(id_query)).scalars().all())
            if not route_ids:
                return []

            await db.execute(
                update(Route)
                .where(Route.id.in_(route_ids))
                .values(
                    id_user_account=DISOWNED_USER_ID,
                    deleted_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session="fetch")
            )
            result = await db.execute(
                select(Route)
                .where(Route.id.in_(route_ids))
                .order_by(Route.id)
                .execution_options(populate_existing=True)
            )
            routes = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error disowning routes: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Something went wrong while removing routes.",
                context={"error_type": type(e).__name__},
            ) from e

        logger.info("Disowned %d route(s): %s", len(routes), route_ids)
        return routes


# ── Singleton Instance ────────────────────────────────────────────────────
route_store = RouteStore()
