"""
Violation Recorder.

Persists aggregated ``SpeedViolation`` descriptors to the append-only
``speed_violations`` audit table, bumps the trip's violation counter and,
once a trip has accumulated ``violations_per_trip_strike`` recorded
violations, issues a single ``speed_violation`` strike for that trip.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.aggregation import aggregate_speed_violation
from src.domain.entities import SpeedReading, SpeedViolation
from src.domain.enums import StrikeType
from src.infrastructure.models import SpeedViolationModel, StrikeModel
from src.infrastructure.repositories import (
    SpeedViolationRepository,
    StrikeRepository,
    TripRepository,
)
from src.services.strikes import StrikeLedger

logger = logging.getLogger(__name__)


class ViolationRecorder:
    def __init__(
        self,
        session: AsyncSession,
        strikes: StrikeLedger,
        violations_per_strike: int = settings.violations_per_trip_strike,
    ):
        self.session = session
        self.strikes = strikes
        self.violations_per_strike = violations_per_strike
        self.violations = SpeedViolationRepository(session)
        self.trips = TripRepository(session)
        self.strike_repo = StrikeRepository(session)

    async def record_batch(
        self, readings: Sequence[SpeedReading], trip_id: int, driver_id: int
    ) -> Optional[SpeedViolationModel]:
        violation = aggregate_speed_violation(
            readings,
            trip_id,
            driver_id,
            min_readings=settings.violation_batch_size,
            h3_resolution=settings.speed_limit_h3_resolution,
        )
        if violation is None:
            logger.debug(
                "Batch of %d readings for trip %s too small to record",
                len(readings),
                trip_id,
            )
            return None
        row, _ = await self.record(violation)
        return row

    async def record(
        self, violation: SpeedViolation
    ) -> tuple[SpeedViolationModel, Optional[StrikeModel]]:
        row = await self.violations.create(
            SpeedViolationModel(
                trip_id=violation.trip_id,
                driver_id=violation.driver_id,
                started_at=violation.started_at,
                ended_at=violation.ended_at,
                duration_seconds=violation.duration_seconds,
                sample_count=violation.sample_count,
                max_speed_mph=violation.max_speed_mph,
                limit_mph=violation.limit_mph,
                max_excess_mph=violation.max_excess_mph,
                average_excess_mph=violation.average_excess_mph,
                latitude=violation.location.latitude,
                longitude=violation.location.longitude,
                h3_cell=violation.h3_cell,
                severity=violation.severity,
            )
        )

        trip = await self.trips.get_by_id(violation.trip_id)
        if trip is not None:
            trip.speed_violation_count = (trip.speed_violation_count or 0) + 1
        await self.session.flush()

        count = await self.violations.count_for_trip(violation.trip_id)
        logger.info(
            "Speed violation %s recorded: trip=%s driver=%s excess=%.1f mph (%d on trip)",
            row.id,
            violation.trip_id,
            violation.driver_id,
            violation.max_excess_mph,
            count,
        )

        strike = None
        if count >= self.violations_per_strike and not await self.strike_repo.exists_for_trip(
            violation.trip_id, StrikeType.SPEED_VIOLATION
        ):
            strike = await self.strikes.issue_strike(
                violation.driver_id,
                violation.trip_id,
                StrikeType.SPEED_VIOLATION,
                f"Repeated speeding: {count} violations during trip "
                f"(peak {violation.max_excess_mph:.0f} mph over the limit)",
                violation.severity,
                violation_id=row.id,
            )
        return row, strike

    async def get_driver_violations(
        self, driver_id: int, limit: int = 100
    ) -> list[SpeedViolationModel]:
        """Newest first."""
        return await self.violations.list_for_driver(driver_id, limit)
