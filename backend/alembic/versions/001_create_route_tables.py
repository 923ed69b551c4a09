"""Create route and waypoint tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates `route` (one row per recorded trip) and `waypoint` (ordered
       GPS points of a route, street set on the first and last point).

Rollback: downgrade() drops both tables; all route data is lost.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "route",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("route_name", sa.String(255), nullable=True),
        sa.Column(
            "id_user_account",
            sa.Integer(),
            nullable=True,
            comment="Owning user; 0 marks a disowned route",
        ),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column(
            "favorite_count",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("current_rating", sa.Float(), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("route_preview", sa.JSON(), nullable=True),
        sa.Column("distance", sa.Float(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "deleted_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Set when the route is disowned; NULL for live routes",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "favorite_count >= 0", name="ck_route_favorite_count_non_negative"
        ),
    )
    op.create_index("idx_route_user", "route", ["id_user_account"])

    op.create_table(
        "waypoint",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("id_route", sa.Integer(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("street", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["id_route"], ["route.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_waypoint_route", "waypoint", ["id_route"])
    # Bounding-box scans for the nearby search
    op.create_index("idx_waypoint_lat_lng", "waypoint", ["lat", "lng"])


def downgrade() -> None:
    op.drop_index("idx_waypoint_lat_lng", table_name="waypoint")
    op.drop_index("idx_waypoint_route", table_name="waypoint")
    op.drop_table("waypoint")
    op.drop_index("idx_route_user", table_name="route")
    op.drop_table("route")
