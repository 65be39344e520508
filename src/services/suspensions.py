"""
Suspension Controller.

Issues, lifts and expires suspensions and answers the "may this driver
go online?" gate.

Invariants
----------
* At most one ``active`` suspension per driver.  A permanent trigger
  while a temporary suspension is active replaces it (the temporary one
  is lifted with reason "Escalated to permanent suspension"); any other
  trigger while a suspension is active is a no-op.
* The driver row mirrors the active suspension: ``suspension_status``
  and ``current_suspension_id`` are set on issue and cleared on lift /
  expiry.  Issuing a suspension forces the driver offline; lifting one
  never brings the driver back online.
* The online gate fails open: if the suspension lookup itself errors,
  the driver is allowed online and the failure is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import InvalidStateTransition, transition
from src.domain.enums import (
    SUSPENSION_TRANSITIONS,
    DriverStanding,
    SuspensionStatus,
    SuspensionType,
)
from src.domain.policy import escalation_for_count, suspension_expiry, utcnow
from src.infrastructure.models import SuspensionModel
from src.infrastructure.notifications import Notifier
from src.infrastructure.repositories import DriverRepository, SuspensionRepository
from src.services import notices
from src.services.errors import ConflictError, NotFoundError, PersistenceError
from src.services.safety_profile import SafetyProfileAggregator, standing_for

logger = logging.getLogger(__name__)

ESCALATED_REASON = "Escalated to permanent suspension"
EXPIRED_REASON = "Suspension period expired"


@dataclass
class OnlineEligibility:
    allowed: bool
    reason: Optional[str] = None
    suspension: Optional[SuspensionModel] = None


def _blocking_reason(suspension: SuspensionModel) -> str:
    if suspension.type is SuspensionType.PERMANENT:
        return "Your account has been permanently suspended."
    return (
        "Your account is temporarily suspended until "
        f"{suspension.expires_at:%Y-%m-%d %H:%M} UTC."
    )


class SuspensionController:
    def __init__(
        self,
        session: AsyncSession,
        profiles: SafetyProfileAggregator,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.profiles = profiles
        self.notifier = notifier
        self.clock = clock
        self.drivers = DriverRepository(session)
        self.suspensions = SuspensionRepository(session)

    # ── Issue ─────────────────────────────────────────────────────────

    async def issue_suspension(
        self,
        driver_id: int,
        suspension_type: SuspensionType,
        reason: str,
        strike_ids: Optional[list[int]] = None,
    ) -> SuspensionModel:
        driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found", "DRIVER_NOT_FOUND")

        now = self.clock()
        existing = await self.suspensions.get_active_for_driver(driver_id)
        if existing is not None:
            if (
                existing.type is SuspensionType.PERMANENT
                or suspension_type is SuspensionType.TEMPORARY
            ):
                raise ConflictError(
                    f"Driver {driver_id} already has an active "
                    f"{existing.type.value} suspension",
                    "SUSPENSION_ALREADY_ACTIVE",
                )
            await self._close(existing, SuspensionStatus.LIFTED, ESCALATED_REASON, now)

        try:
            suspension = await self.suspensions.create(
                SuspensionModel(
                    driver_id=driver_id,
                    type=suspension_type,
                    reason=reason,
                    strike_ids=list(strike_ids or []),
                    started_at=now,
                    expires_at=suspension_expiry(
                        now, suspension_type, settings.temp_suspension_days
                    ),
                    status=SuspensionStatus.ACTIVE,
                    acknowledgment_required=True,
                )
            )
            driver.is_online = False
            driver.suspension_status = standing_for(suspension_type)
            driver.current_suspension_id = suspension.id
            driver.updated_at = now
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to suspend driver {driver_id}", "SUSPENSION_ISSUE_FAILED"
            ) from exc

        logger.info(
            "Suspension %s issued: driver=%s type=%s expires=%s",
            suspension.id,
            driver_id,
            suspension_type.value,
            suspension.expires_at,
        )
        await self.profiles.update_driver_safety_profile(driver_id)
        await notices.suspension_issued(
            self.notifier, suspension, settings.temp_suspension_days
        )
        return suspension

    async def apply_escalation(
        self, driver_id: int, active_count: int, strike_ids: list[int]
    ) -> Optional[SuspensionModel]:
        """Suspend according to the post-strike active count, if warranted."""
        target = escalation_for_count(
            active_count,
            settings.temp_suspension_strike_count,
            settings.permanent_suspension_strike_count,
        )
        if target is None:
            return None

        existing = await self.suspensions.get_active_for_driver(driver_id)
        if existing is not None and (
            existing.type is SuspensionType.PERMANENT
            or target is SuspensionType.TEMPORARY
        ):
            logger.info(
                "Driver %s already under %s suspension %s; no escalation",
                driver_id,
                existing.type.value,
                existing.id,
            )
            return None

        if target is SuspensionType.PERMANENT:
            reason = f"Accumulated {active_count} active safety strikes"
        else:
            reason = (
                f"Accumulated {active_count} active safety strikes within "
                f"{settings.strike_expiration_days} days"
            )
        return await self.issue_suspension(driver_id, target, reason, strike_ids)

    # ── Lift / expire ─────────────────────────────────────────────────

    async def lift_suspension(self, suspension_id: int, reason: str) -> SuspensionModel:
        suspension = await self._get(suspension_id)
        now = self.clock()
        await self._close(suspension, SuspensionStatus.LIFTED, reason, now)
        logger.info("Suspension %s lifted: %s", suspension_id, reason)

        await self.profiles.update_driver_safety_profile(suspension.driver_id)
        await notices.suspension_lifted(
            self.notifier,
            suspension.driver_id,
            f"Your suspension has been lifted: {reason}",
        )
        return suspension

    async def check_expired_suspensions(self) -> int:
        """Close every temporary suspension whose period has ended.

        Idempotent: a second run over the same state finds nothing to do.
        """
        now = self.clock()
        lapsed = await self.suspensions.get_lapsed_temporary(now)
        for suspension in lapsed:
            await self._close(suspension, SuspensionStatus.EXPIRED, EXPIRED_REASON, now)
            await self.profiles.update_driver_safety_profile(suspension.driver_id)
            await notices.suspension_lifted(
                self.notifier,
                suspension.driver_id,
                "Your suspension period has ended. You can now go online.",
            )
        if lapsed:
            logger.info("Expired %d temporary suspensions", len(lapsed))
        return len(lapsed)

    async def acknowledge_suspension(self, suspension_id: int) -> SuspensionModel:
        suspension = await self._get(suspension_id)
        if suspension.acknowledged_at is None:
            suspension.acknowledged_at = self.clock()
            await self.session.flush()
        return suspension

    # ── Queries ───────────────────────────────────────────────────────

    async def can_driver_go_online(self, driver_id: int) -> OnlineEligibility:
        try:
            suspension = await self.suspensions.get_active_for_driver(driver_id)
        except Exception:
            logger.exception(
                "Suspension lookup failed for driver %s; allowing online", driver_id
            )
            return OnlineEligibility(allowed=True)

        if suspension is None:
            return OnlineEligibility(allowed=True)
        return OnlineEligibility(
            allowed=False,
            reason=_blocking_reason(suspension),
            suspension=suspension,
        )

    async def get_driver_suspensions(self, driver_id: int) -> list[SuspensionModel]:
        return await self.suspensions.list_for_driver(driver_id)

    async def list_active_suspensions(self) -> list[SuspensionModel]:
        return await self.suspensions.list_active()

    # ── Internals ─────────────────────────────────────────────────────

    async def _get(self, suspension_id: int) -> SuspensionModel:
        suspension = await self.suspensions.get_by_id(suspension_id)
        if suspension is None:
            raise NotFoundError(
                f"Suspension {suspension_id} not found", "SUSPENSION_NOT_FOUND"
            )
        return suspension

    async def _close(
        self,
        suspension: SuspensionModel,
        status: SuspensionStatus,
        reason: str,
        now: datetime,
    ) -> None:
        try:
            transition(suspension, status, SUSPENSION_TRANSITIONS)
        except InvalidStateTransition as exc:
            raise ConflictError(str(exc), "SUSPENSION_NOT_ACTIVE") from exc
        suspension.lifted_at = now
        suspension.lifted_reason = reason

        driver = await self.drivers.get_by_id(suspension.driver_id)
        if driver is not None and driver.current_suspension_id in (None, suspension.id):
            driver.suspension_status = DriverStanding.ACTIVE
            driver.current_suspension_id = None
            driver.updated_at = now
        await self.session.flush()
