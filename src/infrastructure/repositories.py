"""
Repository Pattern -- abstracts DB access so policy logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only: driver-scoped lists, status filters and
ordering by issuance / submission time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AppealModel,
    DriverModel,
    DriverSafetyProfileModel,
    SafetyRatingModel,
    SpeedViolationModel,
    StrikeModel,
    SuspensionModel,
    TripModel,
)
from src.domain.enums import (
    AppealStatus,
    StrikeStatus,
    StrikeType,
    SuspensionStatus,
    SuspensionType,
    TripStatus,
)


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def get_recent_completed(
        self, driver_id: int, limit: int = 100
    ) -> list[TripModel]:
        """Newest-first completed trips for the safety-profile window."""
        result = await self.session.execute(
            select(TripModel)
            .where(
                TripModel.driver_id == driver_id,
                TripModel.status == TripStatus.COMPLETED,
            )
            .order_by(TripModel.completed_at.desc(), TripModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class SafetyRatingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_scores_for_driver(self, driver_id: int) -> list[int]:
        result = await self.session.execute(
            select(SafetyRatingModel.overall_safety_score).where(
                SafetyRatingModel.driver_id == driver_id
            )
        )
        return list(result.scalars().all())


class SpeedViolationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, violation: SpeedViolationModel) -> SpeedViolationModel:
        self.session.add(violation)
        await self.session.flush()
        return violation

    async def count_for_trip(self, trip_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(SpeedViolationModel)
            .where(SpeedViolationModel.trip_id == trip_id)
        )
        return result.scalar() or 0

    async def list_for_driver(
        self, driver_id: int, limit: int = 100
    ) -> list[SpeedViolationModel]:
        result = await self.session.execute(
            select(SpeedViolationModel)
            .where(SpeedViolationModel.driver_id == driver_id)
            .order_by(SpeedViolationModel.started_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class StrikeRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, strike: StrikeModel) -> StrikeModel:
        self.session.add(strike)
        await self.session.flush()
        return strike

    async def get_by_id(self, strike_id: int) -> Optional[StrikeModel]:
        return await self.session.get(StrikeModel, strike_id)

    async def get_active_for_driver(
        self, driver_id: int, now: datetime
    ) -> list[StrikeModel]:
        """Strikes that count: status active AND not yet past ``expires_at``."""
        result = await self.session.execute(
            select(StrikeModel)
            .where(
                StrikeModel.driver_id == driver_id,
                StrikeModel.status == StrikeStatus.ACTIVE,
                StrikeModel.expires_at > now,
            )
            .order_by(StrikeModel.issued_at.desc())
        )
        return list(result.scalars().all())

    async def count_active_for_driver(self, driver_id: int, now: datetime) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(StrikeModel)
            .where(
                StrikeModel.driver_id == driver_id,
                StrikeModel.status == StrikeStatus.ACTIVE,
                StrikeModel.expires_at > now,
            )
        )
        return result.scalar() or 0

    async def list_for_driver(
        self, driver_id: int, include_expired: bool = False
    ) -> list[StrikeModel]:
        query = select(StrikeModel).where(StrikeModel.driver_id == driver_id)
        if not include_expired:
            query = query.where(StrikeModel.status == StrikeStatus.ACTIVE)
        result = await self.session.execute(
            query.order_by(StrikeModel.issued_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_status(
        self, status: Optional[StrikeStatus] = None, limit: int = 100
    ) -> list[StrikeModel]:
        query = select(StrikeModel)
        if status is not None:
            query = query.where(StrikeModel.status == status)
        result = await self.session.execute(
            query.order_by(StrikeModel.issued_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_lapsed_active(self, now: datetime) -> list[StrikeModel]:
        """Active strikes whose time has run out but were never flipped."""
        result = await self.session.execute(
            select(StrikeModel).where(
                StrikeModel.status == StrikeStatus.ACTIVE,
                StrikeModel.expires_at <= now,
            )
        )
        return list(result.scalars().all())

    async def exists_for_trip(self, trip_id: int, strike_type: StrikeType) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(StrikeModel)
            .where(StrikeModel.trip_id == trip_id, StrikeModel.type == strike_type)
        )
        return (result.scalar() or 0) > 0


class SuspensionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, suspension: SuspensionModel) -> SuspensionModel:
        self.session.add(suspension)
        await self.session.flush()
        return suspension

    async def get_by_id(self, suspension_id: int) -> Optional[SuspensionModel]:
        return await self.session.get(SuspensionModel, suspension_id)

    async def get_active_for_driver(self, driver_id: int) -> Optional[SuspensionModel]:
        result = await self.session.execute(
            select(SuspensionModel)
            .where(
                SuspensionModel.driver_id == driver_id,
                SuspensionModel.status == SuspensionStatus.ACTIVE,
            )
            .order_by(SuspensionModel.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_driver(self, driver_id: int) -> list[SuspensionModel]:
        result = await self.session.execute(
            select(SuspensionModel)
            .where(SuspensionModel.driver_id == driver_id)
            .order_by(SuspensionModel.started_at.desc())
        )
        return list(result.scalars().all())

    async def list_active(self) -> list[SuspensionModel]:
        result = await self.session.execute(
            select(SuspensionModel)
            .where(SuspensionModel.status == SuspensionStatus.ACTIVE)
            .order_by(SuspensionModel.started_at.desc())
        )
        return list(result.scalars().all())

    async def get_lapsed_temporary(self, now: datetime) -> list[SuspensionModel]:
        result = await self.session.execute(
            select(SuspensionModel).where(
                SuspensionModel.status == SuspensionStatus.ACTIVE,
                SuspensionModel.type == SuspensionType.TEMPORARY,
                SuspensionModel.expires_at <= now,
            )
        )
        return list(result.scalars().all())


class AppealRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, appeal: AppealModel) -> AppealModel:
        self.session.add(appeal)
        await self.session.flush()
        return appeal

    async def get_by_id(self, appeal_id: int) -> Optional[AppealModel]:
        return await self.session.get(AppealModel, appeal_id)

    async def list_for_driver(self, driver_id: int) -> list[AppealModel]:
        result = await self.session.execute(
            select(AppealModel)
            .where(AppealModel.driver_id == driver_id)
            .order_by(AppealModel.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def list_pending(self) -> list[AppealModel]:
        result = await self.session.execute(
            select(AppealModel)
            .where(AppealModel.status == AppealStatus.PENDING)
            .order_by(AppealModel.submitted_at)
        )
        return list(result.scalars().all())


class SafetyProfileRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, driver_id: int) -> Optional[DriverSafetyProfileModel]:
        return await self.session.get(DriverSafetyProfileModel, driver_id)

    async def upsert(self, profile: DriverSafetyProfileModel) -> DriverSafetyProfileModel:
        merged = await self.session.merge(profile)
        await self.session.flush()
        return merged
