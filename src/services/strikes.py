"""
Strike Ledger.

Strikes are never deleted, only re-statused (see ``STRIKE_TRANSITIONS``).
A strike counts towards escalation only while ``status == active`` and
``expires_at > now``; the expiry sweep merely makes the stored status
catch up with that read-time rule.

Issuing a strike:

1. persist the strike (issued now, expires after ``strike_expiration_days``)
2. recount the driver's active strikes
3. hand the count to the suspension controller for escalation
4. recompute the safety profile
5. notify the driver (best effort)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import InvalidStateTransition, transition
from src.domain.enums import STRIKE_TRANSITIONS, Severity, StrikeStatus, StrikeType
from src.domain.policy import strike_expiry, utcnow
from src.infrastructure.models import StrikeModel
from src.infrastructure.notifications import Notifier
from src.infrastructure.repositories import (
    DriverRepository,
    StrikeRepository,
    TripRepository,
)
from src.services import notices
from src.services.errors import ConflictError, NotFoundError, PersistenceError
from src.services.safety_profile import SafetyProfileAggregator
from src.services.suspensions import SuspensionController

logger = logging.getLogger(__name__)


class StrikeLedger:
    def __init__(
        self,
        session: AsyncSession,
        profiles: SafetyProfileAggregator,
        suspensions: SuspensionController,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.profiles = profiles
        self.suspensions = suspensions
        self.notifier = notifier
        self.clock = clock
        self.drivers = DriverRepository(session)
        self.trips = TripRepository(session)
        self.strikes = StrikeRepository(session)

    async def issue_strike(
        self,
        driver_id: int,
        trip_id: int,
        strike_type: StrikeType,
        reason: str,
        severity: Severity,
        violation_id: Optional[int] = None,
    ) -> StrikeModel:
        if await self.drivers.get_by_id(driver_id) is None:
            raise NotFoundError(f"Driver {driver_id} not found", "DRIVER_NOT_FOUND")
        if await self.trips.get_by_id(trip_id) is None:
            raise NotFoundError(f"Trip {trip_id} not found", "TRIP_NOT_FOUND")

        now = self.clock()
        try:
            strike = await self.strikes.create(
                StrikeModel(
                    driver_id=driver_id,
                    trip_id=trip_id,
                    type=strike_type,
                    reason=reason,
                    severity=severity,
                    violation_id=violation_id,
                    issued_at=now,
                    expires_at=strike_expiry(now, settings.strike_expiration_days),
                    status=StrikeStatus.ACTIVE,
                )
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to issue strike to driver {driver_id}", "STRIKE_ISSUE_FAILED"
            ) from exc

        active = await self.strikes.get_active_for_driver(driver_id, now)
        logger.info(
            "Strike %s issued: driver=%s trip=%s type=%s severity=%s (active=%d)",
            strike.id,
            driver_id,
            trip_id,
            strike_type.value,
            severity.value,
            len(active),
        )

        await self.suspensions.apply_escalation(
            driver_id, len(active), [s.id for s in active]
        )
        await self.profiles.update_driver_safety_profile(driver_id)
        await notices.strike_issued(self.notifier, strike)
        return strike

    async def get_active_strikes_count(self, driver_id: int) -> int:
        return await self.strikes.count_active_for_driver(driver_id, self.clock())

    async def get_driver_strikes(
        self, driver_id: int, include_expired: bool = False
    ) -> list[StrikeModel]:
        return await self.strikes.list_for_driver(driver_id, include_expired)

    async def list_strikes(
        self, status: Optional[StrikeStatus] = None, limit: int = 100
    ) -> list[StrikeModel]:
        return await self.strikes.list_by_status(status, limit)

    async def get_strike(self, strike_id: int) -> StrikeModel:
        strike = await self.strikes.get_by_id(strike_id)
        if strike is None:
            raise NotFoundError(f"Strike {strike_id} not found", "STRIKE_NOT_FOUND")
        return strike

    async def expire_old_strikes(self) -> int:
        """Flip every lapsed active strike to ``expired``.  Idempotent."""
        lapsed = await self.strikes.get_lapsed_active(self.clock())
        for strike in lapsed:
            transition(strike, StrikeStatus.EXPIRED, STRIKE_TRANSITIONS)
        await self.session.flush()

        for driver_id in sorted({s.driver_id for s in lapsed}):
            await self.profiles.update_driver_safety_profile(driver_id)
        if lapsed:
            logger.info("Expired %d strikes", len(lapsed))
        return len(lapsed)

    async def remove_strike(self, strike_id: int, reason: str) -> StrikeModel:
        strike = await self.get_strike(strike_id)
        self._move(strike, StrikeStatus.REMOVED)
        strike.removed_at = self.clock()
        strike.removed_reason = reason
        await self.session.flush()

        logger.info("Strike %s removed: %s", strike_id, reason)
        await self.profiles.update_driver_safety_profile(strike.driver_id)
        return strike

    async def mark_appealed(self, strike: StrikeModel, appeal_id: int) -> None:
        self._move(strike, StrikeStatus.APPEALED)
        strike.appeal_id = appeal_id
        await self.session.flush()
        await self.profiles.update_driver_safety_profile(strike.driver_id)

    async def reinstate_strike(self, strike_id: int) -> StrikeModel:
        """Return an appealed strike to ``active`` after a denied appeal.

        Escalation is not re-evaluated here; it only runs on issuance.
        """
        strike = await self.get_strike(strike_id)
        self._move(strike, StrikeStatus.ACTIVE)
        await self.session.flush()
        await self.profiles.update_driver_safety_profile(strike.driver_id)
        return strike

    @staticmethod
    def _move(strike: StrikeModel, status: StrikeStatus) -> None:
        try:
            transition(strike, status, STRIKE_TRANSITIONS)
        except InvalidStateTransition as exc:
            raise ConflictError(str(exc), "STRIKE_INVALID_TRANSITION") from exc
