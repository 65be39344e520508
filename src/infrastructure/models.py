"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``drivers``                 -- driver accounts with online flag + standing
* ``trips``                   -- completed/active trips with violation counters
* ``safety_ratings``          -- rider-submitted 1-5 safety scores
* ``speed_violations``        -- append-only audit of aggregated violations
* ``strikes``                 -- strike ledger (never deleted, re-statused)
* ``suspensions``             -- temporary / permanent suspensions
* ``appeals``                 -- driver appeals against strikes/suspensions
* ``driver_safety_profiles``  -- derived per-driver snapshot

Indexes
-------
* **B-Tree** on ``(driver_id, status)`` for strikes, suspensions and
  appeals -- every policy query is driver-scoped with a status filter.
* ``(status, expires_at)`` on strikes / suspensions for the expiry sweeps.
* ``(driver_id, status, completed_at)`` on trips for the profile window.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.types import TypeDecorator

from .database import Base
from src.domain.enums import (
    AppealStatus,
    DriverStanding,
    Severity,
    StrikeStatus,
    StrikeType,
    SuspensionStatus,
    SuspensionType,
    TripStatus,
)
from src.domain.policy import as_utc


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps on every backend.

    SQLite hands back naive datetimes; they are re-tagged as UTC so that
    policy comparisons against ``utcnow()`` never mix naive and aware.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else as_utc(value)

    def process_result_value(self, value, dialect):
        return None if value is None else as_utc(value)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    is_online = Column(Boolean, default=False, nullable=False)
    suspension_status = Column(
        Enum(DriverStanding), default=DriverStanding.ACTIVE, nullable=False
    )
    current_suspension_id = Column(Integer, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    rider_id = Column(Integer, nullable=True)
    status = Column(Enum(TripStatus), default=TripStatus.ACTIVE, nullable=False)
    route_deviation_count = Column(Integer, default=0, nullable=False)
    speed_violation_count = Column(Integer, default=0, nullable=False)
    started_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("idx_trips_driver_completed", "driver_id", "status", "completed_at"),
    )


class SafetyRatingModel(Base):
    __tablename__ = "safety_ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    rider_id = Column(Integer, nullable=True)
    overall_safety_score = Column(Integer, nullable=False)  # 1-5
    comments = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (Index("idx_safety_ratings_driver", "driver_id"),)


class SpeedViolationModel(Base):
    __tablename__ = "speed_violations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    started_at = Column(UTCDateTime, nullable=False)
    ended_at = Column(UTCDateTime, nullable=False)
    duration_seconds = Column(Integer, nullable=False)
    sample_count = Column(Integer, nullable=False)
    max_speed_mph = Column(Float, nullable=False)
    limit_mph = Column(Float, nullable=False)
    max_excess_mph = Column(Float, nullable=False)
    average_excess_mph = Column(Float, nullable=False)
    # Plain floats + H3 index instead of PostGIS geometry
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    h3_cell = Column(String(20), nullable=True)
    severity = Column(Enum(Severity), nullable=False)
    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_speed_violations_trip", "trip_id"),
        Index("idx_speed_violations_driver", "driver_id"),
        Index("idx_speed_violations_cell", "h3_cell"),
    )


class StrikeModel(Base):
    __tablename__ = "strikes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    type = Column(Enum(StrikeType), nullable=False)
    reason = Column(Text, nullable=False)
    severity = Column(Enum(Severity), nullable=False)
    violation_id = Column(Integer, ForeignKey("speed_violations.id"), nullable=True)
    issued_at = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    status = Column(Enum(StrikeStatus), default=StrikeStatus.ACTIVE, nullable=False)
    appeal_id = Column(Integer, nullable=True)
    removed_at = Column(UTCDateTime, nullable=True)
    removed_reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_strikes_driver_status", "driver_id", "status"),
        Index("idx_strikes_status_expiry", "status", "expires_at"),
        Index("idx_strikes_trip_type", "trip_id", "type"),
    )


class SuspensionModel(Base):
    __tablename__ = "suspensions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    type = Column(Enum(SuspensionType), nullable=False)
    reason = Column(Text, nullable=False)
    strike_ids = Column(JSON, nullable=False, default=list)
    started_at = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=True)  # NULL for permanent
    status = Column(
        Enum(SuspensionStatus), default=SuspensionStatus.ACTIVE, nullable=False
    )
    acknowledgment_required = Column(Boolean, default=True, nullable=False)
    acknowledged_at = Column(UTCDateTime, nullable=True)
    lifted_at = Column(UTCDateTime, nullable=True)
    lifted_reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_suspensions_driver_status", "driver_id", "status"),
        Index("idx_suspensions_status_expiry", "status", "type", "expires_at"),
    )


class AppealModel(Base):
    __tablename__ = "appeals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    strike_id = Column(Integer, ForeignKey("strikes.id"), nullable=True)
    suspension_id = Column(Integer, ForeignKey("suspensions.id"), nullable=True)
    reason = Column(Text, nullable=False)
    evidence = Column(JSON, nullable=False, default=list)
    submitted_at = Column(UTCDateTime, nullable=False)
    status = Column(Enum(AppealStatus), default=AppealStatus.PENDING, nullable=False)
    reviewed_by = Column(String(64), nullable=True)
    reviewed_at = Column(UTCDateTime, nullable=True)
    resolution = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_appeals_driver", "driver_id", "submitted_at"),
        Index("idx_appeals_status", "status"),
    )


class DriverSafetyProfileModel(Base):
    __tablename__ = "driver_safety_profiles"

    driver_id = Column(Integer, ForeignKey("drivers.id"), primary_key=True)
    safety_rating = Column(Float, default=5.0, nullable=False)
    total_safety_ratings = Column(Integer, default=0, nullable=False)
    rating_distribution = Column(JSON, nullable=False, default=dict)
    route_adherence_score = Column(Integer, default=100, nullable=False)
    speed_compliance_score = Column(Integer, default=100, nullable=False)
    active_strikes = Column(Integer, default=0, nullable=False)
    suspension_status = Column(
        Enum(DriverStanding), default=DriverStanding.ACTIVE, nullable=False
    )
    current_suspension_id = Column(Integer, nullable=True)
    safe_trips_streak = Column(Integer, default=0, nullable=False)
    last_violation_at = Column(UTCDateTime, nullable=True)
    updated_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
