"""
Domain entities and value objects.

Patterns used
-------------
- **State Pattern** via ``transition``: strikes, suspensions and appeals
  only move along the edges declared in ``enums`` (records are never
  deleted, only re-statused).
- ``SpeedReading`` / ``SpeedViolation`` are immutable value objects that
  flow from the speed monitor to the violation recorder.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import DriverStanding, Severity


class InvalidStateTransition(Exception):
    """Raised when a status change violates the state machine."""


def transition(
    record: Any,
    new_status: enum.Enum,
    transitions: dict[Any, set[Any]],
) -> None:
    """Move *record.status* to *new_status* if the transition is legal, else raise.

    Works on anything with a ``status`` attribute (ORM rows included).
    """
    current = record.status
    allowed = transitions.get(current, set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {getattr(current, 'value', current)} "
            f"to {new_status.value}"
        )
    record.status = new_status


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class SpeedReading:
    speed_mph: float
    limit_mph: float
    latitude: float
    longitude: float
    timestamp: datetime

    @property
    def excess_mph(self) -> float:
        return self.speed_mph - self.limit_mph


@dataclass(frozen=True)
class SpeedViolation:
    """One sustained-excess episode batch, ready for the strike ledger."""

    trip_id: int
    driver_id: int
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    sample_count: int
    max_speed_mph: float
    limit_mph: float
    max_excess_mph: float
    average_excess_mph: float
    location: Location
    h3_cell: str
    severity: Severity


@dataclass(frozen=True)
class EvidenceItem:
    url: str
    kind: str = "photo"
    description: Optional[str] = None


# ── Derived aggregates ────────────────────────────────────────────────


@dataclass
class TripSafetySummary:
    """Scores derived from a driver's most recent completed trips."""

    total_trips: int = 0
    route_adherence_score: int = 100
    speed_compliance_score: int = 100
    safe_trips_streak: int = 0
    last_violation_at: Optional[datetime] = None


@dataclass
class RatingSummary:
    safety_rating: float = 5.0
    total_safety_ratings: int = 0
    rating_distribution: dict[int, int] = field(
        default_factory=lambda: {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
    )


@dataclass
class DriverSafetyProfile:
    driver_id: int
    safety_rating: float
    total_safety_ratings: int
    rating_distribution: dict[int, int]
    route_adherence_score: int
    speed_compliance_score: int
    active_strikes: int
    suspension_status: DriverStanding
    current_suspension_id: Optional[int]
    safe_trips_streak: int
    last_violation_at: Optional[datetime] = None
