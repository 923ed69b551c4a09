"""
RouteLog Backend - Route Store Tests
======================================

What:  Query-level tests for RouteStore against an in-memory SQLite database.

What we test:
    ✅ Filtered listing, soft-deleted rows hidden
    ✅ Merged route: waypoints folded in count order, 404 when nothing matches
    ✅ Nearby box: inclusive bounds, route starts and named streets only
    ✅ Ownership stripping returns exactly the rows it changed
    ✅ A failed waypoint insert leaves no orphan route
"""

import pytest
from sqlalchemy import func, select

from app.exceptions import DatabaseError, NotFoundError
from app.models.route import DISOWNED_USER_ID, Route, Waypoint
from app.schemas.route import RouteFilter
from app.services.route_store import RouteStore

from conftest import waypoint_rows


async def _insert(store, db, points, streets=None, **route_fields):
    fields = {"route_name": "Test route", "id_user_account": 1, "distance": 2.0}
    fields.update(route_fields)
    route, _ = await store.insert_route(db, fields, waypoint_rows(points, streets))
    return route


class TestInsertRoute:

    def setup_method(self):
        self.store = RouteStore()

    @pytest.mark.asyncio
    async def test_waypoints_reference_new_route(self, db_session):
        route, waypoints = await self.store.insert_route(
            db_session,
            {"route_name": "Levee loop", "id_user_account": 3},
            waypoint_rows([(29.95, -90.07), (29.96, -90.08)]),
        )

        assert route.id is not None
        assert route.favorite_count == 0
        assert route.deleted_at is None
        assert [w.id_route for w in waypoints] == [route.id, route.id]
        assert [w.count for w in waypoints] == [0, 1]
        assert all(w.id is not None for w in waypoints)

    @pytest.mark.asyncio
    async def test_failed_waypoint_insert_leaves_no_route(self, db_session):
        """A waypoint rejected by the database rolls the route back with it."""
        rows = waypoint_rows([(1.0, 1.0), (2.0, 2.0)])
        rows[1]["lat"] = None

        with pytest.raises(DatabaseError) as exc_info:
            await self.store.insert_route(
                db_session, {"route_name": "Broken", "id_user_account": 3}, rows
            )
        await db_session.rollback()

        assert "NOT NULL" not in exc_info.value.message
        assert (await db_session.execute(select(func.count(Route.id)))).scalar_one() == 0
        assert (await db_session.execute(select(func.count(Waypoint.id)))).scalar_one() == 0


class TestListRoutes:

    def setup_method(self):
        self.store = RouteStore()

    @pytest.mark.asyncio
    async def test_filter_by_owner(self, db_session):
        first = await _insert(self.store, db_session, [(0.0, 0.0)], id_user_account=5)
        await _insert(self.store, db_session, [(0.0, 0.0)], id_user_account=6)
        second = await _insert(self.store, db_session, [(0.0, 0.0)], id_user_account=5)

        routes = await self.store.list_routes(db_session, RouteFilter(id_user_account=5))

        assert [r.id for r in routes] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_empty_filter_returns_all_live_routes(self, db_session):
        await _insert(self.store, db_session, [(0.0, 0.0)])
        await _insert(self.store, db_session, [(1.0, 1.0)])

        routes = await self.store.list_routes(db_session, RouteFilter())

        assert len(routes) == 2

    @pytest.mark.asyncio
    async def test_null_filter_value_matches_null_column(self, db_session):
        untyped = await _insert(self.store, db_session, [(0.0, 0.0)], type=None)
        await _insert(self.store, db_session, [(0.0, 0.0)], type="bike")

        routes = await self.store.list_routes(db_session, RouteFilter(type=None))

        assert [r.id for r in routes] == [untyped.id]

    @pytest.mark.asyncio
    async def test_disowned_routes_are_hidden(self, db_session):
        kept = await _insert(self.store, db_session, [(0.0, 0.0)], id_user_account=5)
        gone = await _insert(self.store, db_session, [(0.0, 0.0)], id_user_account=9)
        await self.store.strip_ownership(db_session, RouteFilter(id=gone.id))

        routes = await self.store.list_routes(db_session, RouteFilter())

        assert [r.id for r in routes] == [kept.id]


class TestFetchMergedRoute:

    def setup_method(self):
        self.store = RouteStore()

    @pytest.mark.asyncio
    async def test_waypoints_folded_in_count_order(self, db_session):
        points = [(29.90 + i / 100, -90.0) for i in range(5)]
        route = await _insert(
            self.store, db_session, points, route_name="River walk", current_rating=4.5
        )

        merged = await self.store.fetch_merged_route(db_session, RouteFilter(id=route.id))

        assert merged.id == route.id
        assert merged.route_name == "River walk"
        assert merged.current_rating == 4.5
        assert [w.count for w in merged.waypoints] == [0, 1, 2, 3, 4]
        assert [(w.lat, w.lng) for w in merged.waypoints] == points

    @pytest.mark.asyncio
    async def test_several_matches_use_lowest_id(self, db_session):
        first = await _insert(self.store, db_session, [(0.0, 0.0), (0.1, 0.1)], id_user_account=4)
        await _insert(self.store, db_session, [(5.0, 5.0)], id_user_account=4)

        merged = await self.store.fetch_merged_route(db_session, RouteFilter(id_user_account=4))

        assert merged.id == first.id
        assert len(merged.waypoints) == 2

    @pytest.mark.asyncio
    async def test_no_match_raises_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await self.store.fetch_merged_route(db_session, RouteFilter(id=999))


class TestFindNearbyWaypoints:

    def setup_method(self):
        self.store = RouteStore()

    @pytest.mark.asyncio
    async def test_box_is_inclusive_and_keeps_starts_and_named_streets(self, db_session):
        # start inside, unnamed interior inside, named end exactly on the bound
        inside = await _insert(
            self.store,
            db_session,
            [(0.5, 0.5), (0.6, 0.6), (1.0, -1.0)],
            streets={0: "Canal St", 2: "Bourbon St"},
        )
        # starts outside the box, named end inside
        outside_start = await _insert(
            self.store,
            db_session,
            [(1.5, 0.0), (0.2, 0.2)],
            streets={0: "Far Rd", 1: "Near Rd"},
        )

        rows = await self.store.find_nearby_waypoints(db_session, lat=0.0, lng=0.0, distance=1.0)

        found = [(r.id_route, r.count) for r in rows]
        assert found == [(inside.id, 0), (inside.id, 2), (outside_start.id, 1)]
        for row in rows:
            assert -1.0 <= row.lat <= 1.0
            assert -1.0 <= row.lng <= 1.0
            assert row.count == 0 or row.street is not None

    @pytest.mark.asyncio
    async def test_same_point_included_only_as_start_or_named_street(self, db_session):
        start = await _insert(self.store, db_session, [(0.5, 0.5)])
        await _insert(self.store, db_session, [(2.0, 2.0), (0.5, 0.5)])
        named = await _insert(
            self.store, db_session, [(2.0, 2.0), (0.5, 0.5)], streets={1: "Elm St"}
        )

        rows = await self.store.find_nearby_waypoints(db_session, lat=0.0, lng=0.0, distance=1.0)

        assert [(r.id_route, r.count) for r in rows] == [(start.id, 0), (named.id, 1)]

    @pytest.mark.asyncio
    async def test_rows_carry_route_columns(self, db_session):
        route = await _insert(
            self.store, db_session, [(0.0, 0.0)], route_name="Park", photo_url="https://img/x.jpg"
        )

        rows = await self.store.find_nearby_waypoints(db_session, lat=0.0, lng=0.0, distance=0.5)

        assert len(rows) == 1
        assert rows[0].id_route == route.id
        assert rows[0].route_name == "Park"
        assert rows[0].photo_url == "https://img/x.jpg"

    @pytest.mark.asyncio
    async def test_disowned_routes_excluded(self, db_session):
        route = await _insert(self.store, db_session, [(0.0, 0.0)])
        await self.store.strip_ownership(db_session, RouteFilter(id=route.id))

        rows = await self.store.find_nearby_waypoints(db_session, lat=0.0, lng=0.0, distance=1.0)

        assert rows == []


class TestStripOwnership:

    def setup_method(self):
        self.store = RouteStore()

    @pytest.mark.asyncio
    async def test_returns_exactly_the_stripped_rows(self, db_session):
        owned = [
            await _insert(self.store, db_session, [(0.0, 0.0)], id_user_account=5)
            for _ in range(3)
        ]
        other = await _insert(self.store, db_session, [(0.0, 0.0)], id_user_account=6)

        stripped = await self.store.strip_ownership(db_session, RouteFilter(id_user_account=5))

        assert [r.id for r in stripped] == [r.id for r in owned]
        assert all(r.id_user_account == DISOWNED_USER_ID for r in stripped)
        assert all(r.deleted_at is not None for r in stripped)

        remaining = await self.store.list_routes(db_session, RouteFilter())
        assert [r.id for r in remaining] == [other.id]
        assert remaining[0].id_user_account == 6

    @pytest.mark.asyncio
    async def test_second_call_strips_nothing(self, db_session):
        await _insert(self.store, db_session, [(0.0, 0.0)], id_user_account=5)
        await self.store.strip_ownership(db_session, RouteFilter(id_user_account=5))

        again = await self.store.strip_ownership(db_session, RouteFilter(id_user_account=5))

        assert again == []
