"""Initial schema: drivers, trips, ratings, violations, strikes, suspensions, appeals, profiles.

Revision ID: 001
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

# Enum types are shared between tables, so they are created once up front
# and every column refers to them with create_type=False.
ENUMS = {
    "driverstanding": ("ACTIVE", "SUSPENDED_TEMP", "SUSPENDED_PERM"),
    "tripstatus": ("ACTIVE", "COMPLETED", "CANCELLED"),
    "severity": ("LOW", "MEDIUM", "HIGH"),
    "striketype": (
        "SPEED_VIOLATION",
        "ROUTE_DEVIATION",
        "EARLY_COMPLETION",
        "RIDER_REPORT",
        "NO_RESPONSE",
    ),
    "strikestatus": ("ACTIVE", "EXPIRED", "REMOVED", "APPEALED"),
    "suspensiontype": ("TEMPORARY", "PERMANENT"),
    "suspensionstatus": ("ACTIVE", "LIFTED", "EXPIRED"),
    "appealstatus": ("PENDING", "APPROVED", "DENIED"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _ts(name: str, nullable: bool = True, server_default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if server_default else None,
    )


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("is_online", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "suspension_status",
            _enum("driverstanding"),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("current_suspension_id", sa.Integer, nullable=True),
        _ts("created_at", server_default=True),
        _ts("updated_at", server_default=True),
    )

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("rider_id", sa.Integer, nullable=True),
        sa.Column("status", _enum("tripstatus"), nullable=False, server_default="ACTIVE"),
        sa.Column("route_deviation_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("speed_violation_count", sa.Integer, nullable=False, server_default="0"),
        _ts("started_at"),
        _ts("completed_at"),
    )
    op.create_index(
        "idx_trips_driver_completed", "trips", ["driver_id", "status", "completed_at"]
    )

    # ── safety_ratings ────────────────────────────────────────────────
    op.create_table(
        "safety_ratings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("rider_id", sa.Integer, nullable=True),
        sa.Column("overall_safety_score", sa.Integer, nullable=False),
        sa.Column("comments", sa.Text, nullable=True),
        _ts("created_at", server_default=True),
    )
    op.create_index("idx_safety_ratings_driver", "safety_ratings", ["driver_id"])

    # ── speed_violations (append-only) ────────────────────────────────
    op.create_table(
        "speed_violations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        _ts("started_at", nullable=False),
        _ts("ended_at", nullable=False),
        sa.Column("duration_seconds", sa.Integer, nullable=False),
        sa.Column("sample_count", sa.Integer, nullable=False),
        sa.Column("max_speed_mph", sa.Float, nullable=False),
        sa.Column("limit_mph", sa.Float, nullable=False),
        sa.Column("max_excess_mph", sa.Float, nullable=False),
        sa.Column("average_excess_mph", sa.Float, nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("severity", _enum("severity"), nullable=False),
        _ts("created_at", server_default=True),
    )
    op.create_index("idx_speed_violations_trip", "speed_violations", ["trip_id"])
    op.create_index("idx_speed_violations_driver", "speed_violations", ["driver_id"])
    op.create_index("idx_speed_violations_cell", "speed_violations", ["h3_cell"])

    # ── strikes ───────────────────────────────────────────────────────
    op.create_table(
        "strikes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("type", _enum("striketype"), nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("severity", _enum("severity"), nullable=False),
        sa.Column(
            "violation_id",
            sa.Integer,
            sa.ForeignKey("speed_violations.id"),
            nullable=True,
        ),
        _ts("issued_at", nullable=False),
        _ts("expires_at", nullable=False),
        sa.Column("status", _enum("strikestatus"), nullable=False, server_default="ACTIVE"),
        sa.Column("appeal_id", sa.Integer, nullable=True),
        _ts("removed_at"),
        sa.Column("removed_reason", sa.Text, nullable=True),
    )
    op.create_index("idx_strikes_driver_status", "strikes", ["driver_id", "status"])
    op.create_index("idx_strikes_status_expiry", "strikes", ["status", "expires_at"])
    op.create_index("idx_strikes_trip_type", "strikes", ["trip_id", "type"])

    # ── suspensions ───────────────────────────────────────────────────
    op.create_table(
        "suspensions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("type", _enum("suspensiontype"), nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("strike_ids", sa.JSON, nullable=False),
        _ts("started_at", nullable=False),
        _ts("expires_at"),
        sa.Column(
            "status", _enum("suspensionstatus"), nullable=False, server_default="ACTIVE"
        ),
        sa.Column(
            "acknowledgment_required", sa.Boolean, nullable=False, server_default=sa.true()
        ),
        _ts("acknowledged_at"),
        _ts("lifted_at"),
        sa.Column("lifted_reason", sa.Text, nullable=True),
    )
    op.create_index(
        "idx_suspensions_driver_status", "suspensions", ["driver_id", "status"]
    )
    op.create_index(
        "idx_suspensions_status_expiry", "suspensions", ["status", "type", "expires_at"]
    )

    # ── appeals ───────────────────────────────────────────────────────
    op.create_table(
        "appeals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("strike_id", sa.Integer, sa.ForeignKey("strikes.id"), nullable=True),
        sa.Column(
            "suspension_id", sa.Integer, sa.ForeignKey("suspensions.id"), nullable=True
        ),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("evidence", sa.JSON, nullable=False),
        _ts("submitted_at", nullable=False),
        sa.Column("status", _enum("appealstatus"), nullable=False, server_default="PENDING"),
        sa.Column("reviewed_by", sa.String(64), nullable=True),
        _ts("reviewed_at"),
        sa.Column("resolution", sa.Text, nullable=True),
    )
    op.create_index("idx_appeals_driver", "appeals", ["driver_id", "submitted_at"])
    op.create_index("idx_appeals_status", "appeals", ["status"])

    # ── driver_safety_profiles (derived) ──────────────────────────────
    op.create_table(
        "driver_safety_profiles",
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), primary_key=True
        ),
        sa.Column("safety_rating", sa.Float, nullable=False, server_default="5.0"),
        sa.Column("total_safety_ratings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rating_distribution", sa.JSON, nullable=False),
        sa.Column("route_adherence_score", sa.Integer, nullable=False, server_default="100"),
        sa.Column("speed_compliance_score", sa.Integer, nullable=False, server_default="100"),
        sa.Column("active_strikes", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "suspension_status",
            _enum("driverstanding"),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("current_suspension_id", sa.Integer, nullable=True),
        sa.Column("safe_trips_streak", sa.Integer, nullable=False, server_default="0"),
        _ts("last_violation_at"),
        _ts("updated_at", nullable=False),
    )


def downgrade() -> None:
    op.drop_table("driver_safety_profiles")
    op.drop_table("appeals")
    op.drop_table("suspensions")
    op.drop_table("strikes")
    op.drop_table("speed_violations")
    op.drop_table("safety_ratings")
    op.drop_table("trips")
    op.drop_table("drivers")
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
