"""
Violation aggregation.

Turns one batch of sustained-excess ``SpeedReading`` objects (collected by
the speed monitor during a single excess episode) into a ``SpeedViolation``
descriptor.  Pure: the output depends only on the arguments.

Severity is driven by the *peak* excess in the batch:
low (< 10 mph), medium (< 20 mph), high (20 mph and up).
"""

from __future__ import annotations

from typing import Optional, Sequence

from .entities import Location, SpeedReading, SpeedViolation
from .speed import location_cell, severity_for_excess

MIN_VIOLATION_READINGS = 10


def aggregate_speed_violation(
    readings: Sequence[SpeedReading],
    trip_id: int,
    driver_id: int,
    min_readings: int = MIN_VIOLATION_READINGS,
    h3_resolution: int = 10,
) -> Optional[SpeedViolation]:
    """Return a violation for the batch, or ``None`` if it is too small."""
    if len(readings) < min_readings:
        return None

    ordered = sorted(readings, key=lambda r: r.timestamp)
    first, last = ordered[0], ordered[-1]
    peak = max(ordered, key=lambda r: r.excess_mph)
    avg_excess = sum(r.excess_mph for r in ordered) / len(ordered)

    return SpeedViolation(
        trip_id=trip_id,
        driver_id=driver_id,
        started_at=first.timestamp,
        ended_at=last.timestamp,
        duration_seconds=round((last.timestamp - first.timestamp).total_seconds()),
        sample_count=len(ordered),
        max_speed_mph=round(peak.speed_mph, 1),
        limit_mph=peak.limit_mph,
        max_excess_mph=round(peak.excess_mph, 1),
        average_excess_mph=round(avg_excess, 1),
        location=Location(last.latitude, last.longitude),
        h3_cell=location_cell(last.latitude, last.longitude, h3_resolution),
        severity=severity_for_excess(peak.excess_mph),
    )
