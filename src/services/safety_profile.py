"""
Safety Profile Aggregator.

Rolls strikes, the current suspension, rider safety ratings and recent
trip telemetry into one ``DriverSafetyProfile`` snapshot, persisted in
``driver_safety_profiles``.

Recomputed on every strike / suspension state change, never on a timer.
Read-heavy: one call scans up to ``trip_window`` trips plus every rating
and active strike for the driver, so callers must not loop over it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import DriverSafetyProfile
from src.domain.enums import DriverStanding, SuspensionType
from src.domain.policy import utcnow
from src.domain.scoring import summarize_ratings, summarize_trips
from src.infrastructure.models import DriverSafetyProfileModel
from src.infrastructure.repositories import (
    SafetyProfileRepository,
    SafetyRatingRepository,
    StrikeRepository,
    SuspensionRepository,
    TripRepository,
)

logger = logging.getLogger(__name__)


def standing_for(suspension_type: Optional[SuspensionType]) -> DriverStanding:
    if suspension_type is SuspensionType.PERMANENT:
        return DriverStanding.SUSPENDED_PERM
    if suspension_type is SuspensionType.TEMPORARY:
        return DriverStanding.SUSPENDED_TEMP
    return DriverStanding.ACTIVE


def _to_profile(row: DriverSafetyProfileModel) -> DriverSafetyProfile:
    return DriverSafetyProfile(
        driver_id=row.driver_id,
        safety_rating=row.safety_rating,
        total_safety_ratings=row.total_safety_ratings,
        rating_distribution={int(k): v for k, v in (row.rating_distribution or {}).items()},
        route_adherence_score=row.route_adherence_score,
        speed_compliance_score=row.speed_compliance_score,
        active_strikes=row.active_strikes,
        suspension_status=DriverStanding(row.suspension_status),
        current_suspension_id=row.current_suspension_id,
        safe_trips_streak=row.safe_trips_streak,
        last_violation_at=row.last_violation_at,
    )


class SafetyProfileAggregator:
    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        trip_window: int = settings.safety_profile_trip_window,
    ):
        self.session = session
        self.clock = clock
        self.trip_window = trip_window
        self.strikes = StrikeRepository(session)
        self.suspensions = SuspensionRepository(session)
        self.ratings = SafetyRatingRepository(session)
        self.trips = TripRepository(session)
        self.profiles = SafetyProfileRepository(session)

    async def update_driver_safety_profile(self, driver_id: int) -> DriverSafetyProfile:
        now = self.clock()
        active_strikes = await self.strikes.count_active_for_driver(driver_id, now)
        suspension = await self.suspensions.get_active_for_driver(driver_id)
        ratings = summarize_ratings(await self.ratings.get_scores_for_driver(driver_id))
        trips = summarize_trips(
            await self.trips.get_recent_completed(driver_id, self.trip_window)
        )

        row = await self.profiles.upsert(
            DriverSafetyProfileModel(
                driver_id=driver_id,
                safety_rating=ratings.safety_rating,
                total_safety_ratings=ratings.total_safety_ratings,
                rating_distribution={
                    str(k): v for k, v in ratings.rating_distribution.items()
                },
                route_adherence_score=trips.route_adherence_score,
                speed_compliance_score=trips.speed_compliance_score,
                active_strikes=active_strikes,
                suspension_status=standing_for(suspension.type if suspension else None),
                current_suspension_id=suspension.id if suspension else None,
                safe_trips_streak=trips.safe_trips_streak,
                last_violation_at=trips.last_violation_at,
                updated_at=now,
            )
        )
        logger.debug(
            "Safety profile refreshed for driver %s (strikes=%d, streak=%d)",
            driver_id,
            active_strikes,
            trips.safe_trips_streak,
        )
        return _to_profile(row)

    async def get_driver_safety_profile(self, driver_id: int) -> DriverSafetyProfile:
        """Stored snapshot, computed on first access."""
        row = await self.profiles.get(driver_id)
        if row is None:
            return await self.update_driver_safety_profile(driver_id)
        return _to_profile(row)
