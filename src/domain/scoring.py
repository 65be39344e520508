"""
Safety-profile scoring over trip and rating history.

Complexity: O(T + R) for T trips (capped at the profile window, 100 by
default) and R rating records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from .entities import RatingSummary, TripSafetySummary


class TripRecord(Protocol):
    route_deviation_count: int
    speed_violation_count: int
    completed_at: Optional[datetime]


def trip_is_clean(trip: TripRecord) -> bool:
    return not trip.route_deviation_count and not trip.speed_violation_count


def summarize_trips(trips: Sequence[TripRecord]) -> TripSafetySummary:
    """Score completed trips, given newest first.

    ``safe_trips_streak`` counts clean trips from the newest backwards and
    stops at the first trip with a deviation or a speed violation.
    """
    total = len(trips)
    if total == 0:
        return TripSafetySummary()

    no_deviation = sum(1 for t in trips if not t.route_deviation_count)
    no_speeding = sum(1 for t in trips if not t.speed_violation_count)

    streak = 0
    last_violation_at: Optional[datetime] = None
    for trip in trips:
        if not trip_is_clean(trip):
            last_violation_at = trip.completed_at
            break
        streak += 1

    return TripSafetySummary(
        total_trips=total,
        route_adherence_score=round(no_deviation / total * 100),
        speed_compliance_score=round(no_speeding / total * 100),
        safe_trips_streak=streak,
        last_violation_at=last_violation_at,
    )


def summarize_ratings(scores: Iterable[int]) -> RatingSummary:
    """Average discrete 1-5 safety ratings; 5.0 when there are none."""
    summary = RatingSummary()
    total = 0
    for score in scores:
        score = min(5, max(1, int(score)))
        summary.rating_distribution[score] += 1
        summary.total_safety_ratings += 1
        total += score
    if summary.total_safety_ratings:
        summary.safety_rating = round(total / summary.total_safety_ratings, 1)
    return summary
