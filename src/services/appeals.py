"""
Appeals Workflow.

A driver may appeal a strike (within ``appeal_window_days`` of issuance,
boundary inclusive) and/or the suspension it led to.  Submitting puts
the strike in ``appealed``, which stops it counting towards escalation
until review.  Review is one-shot: ``pending`` -> ``approved`` |
``denied``.

* approved -- the strike is removed and the suspension (if still active)
  is lifted.
* denied   -- the strike goes back to ``active``; no re-escalation.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import EvidenceItem, InvalidStateTransition, transition
from src.domain.enums import (
    APPEAL_TRANSITIONS,
    AppealDecision,
    AppealStatus,
    StrikeStatus,
    SuspensionStatus,
)
from src.domain.policy import appeal_window_open, utcnow
from src.infrastructure.models import AppealModel
from src.infrastructure.notifications import Notifier
from src.infrastructure.repositories import AppealRepository, SuspensionRepository
from src.services import notices
from src.services.errors import (
    AppealWindowExpired,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationFailed,
)
from src.services.strikes import StrikeLedger
from src.services.suspensions import SuspensionController

logger = logging.getLogger(__name__)


class AppealsWorkflow:
    def __init__(
        self,
        session: AsyncSession,
        strikes: StrikeLedger,
        suspensions: SuspensionController,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.strikes = strikes
        self.suspensions = suspensions
        self.notifier = notifier
        self.clock = clock
        self.appeals = AppealRepository(session)
        self.suspension_repo = SuspensionRepository(session)

    async def submit_appeal(
        self,
        driver_id: int,
        reason: str,
        strike_id: Optional[int] = None,
        suspension_id: Optional[int] = None,
        evidence: Iterable[EvidenceItem] = (),
    ) -> AppealModel:
        if strike_id is None and suspension_id is None:
            raise ValidationFailed(
                "An appeal must reference a strike or a suspension",
                "APPEAL_TARGET_REQUIRED",
            )

        now = self.clock()
        strike = None
        if strike_id is not None:
            strike = await self.strikes.get_strike(strike_id)
            if strike.driver_id != driver_id:
                raise ValidationFailed(
                    f"Strike {strike_id} does not belong to driver {driver_id}",
                    "STRIKE_NOT_OWNED",
                )
            if not appeal_window_open(strike.issued_at, now, settings.appeal_window_days):
                raise AppealWindowExpired(
                    "Appeal window has expired. Appeals must be submitted within "
                    f"{settings.appeal_window_days} days of the strike."
                )
            if strike.status is not StrikeStatus.ACTIVE:
                raise ConflictError(
                    f"Strike {strike_id} is {strike.status.value} and cannot be appealed",
                    "STRIKE_NOT_APPEALABLE",
                )

        if suspension_id is not None:
            suspension = await self.suspension_repo.get_by_id(suspension_id)
            if suspension is None:
                raise NotFoundError(
                    f"Suspension {suspension_id} not found", "SUSPENSION_NOT_FOUND"
                )
            if suspension.driver_id != driver_id:
                raise ValidationFailed(
                    f"Suspension {suspension_id} does not belong to driver {driver_id}",
                    "SUSPENSION_NOT_OWNED",
                )
            if suspension.status is not SuspensionStatus.ACTIVE:
                raise ConflictError(
                    f"Suspension {suspension_id} is no longer active",
                    "SUSPENSION_NOT_APPEALABLE",
                )

        try:
            appeal = await self.appeals.create(
                AppealModel(
                    driver_id=driver_id,
                    strike_id=strike_id,
                    suspension_id=suspension_id,
                    reason=reason,
                    evidence=[
                        {
                            "url": item.url,
                            "type": item.kind,
                            "description": item.description,
                        }
                        for item in evidence
                    ],
                    submitted_at=now,
                    status=AppealStatus.PENDING,
                )
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to submit appeal for driver {driver_id}", "APPEAL_SUBMIT_FAILED"
            ) from exc

        if strike is not None:
            await self.strikes.mark_appealed(strike, appeal.id)

        logger.info(
            "Appeal %s submitted: driver=%s strike=%s suspension=%s",
            appeal.id,
            driver_id,
            strike_id,
            suspension_id,
        )
        return appeal

    async def review_appeal(
        self,
        appeal_id: int,
        reviewer_id: str,
        decision: AppealDecision,
        resolution: str,
    ) -> AppealModel:
        appeal = await self.appeals.get_by_id(appeal_id)
        if appeal is None:
            raise NotFoundError(f"Appeal {appeal_id} not found", "APPEAL_NOT_FOUND")

        new_status = (
            AppealStatus.APPROVED
            if decision is AppealDecision.APPROVED
            else AppealStatus.DENIED
        )
        try:
            transition(appeal, new_status, APPEAL_TRANSITIONS)
        except InvalidStateTransition as exc:
            raise ConflictError(
                f"Appeal {appeal_id} has already been reviewed", "APPEAL_NOT_PENDING"
            ) from exc
        appeal.reviewed_by = reviewer_id
        appeal.reviewed_at = self.clock()
        appeal.resolution = resolution
        await self.session.flush()

        if decision is AppealDecision.APPROVED:
            await self._apply_approval(appeal, resolution)
        elif appeal.strike_id is not None:
            await self.strikes.reinstate_strike(appeal.strike_id)

        logger.info(
            "Appeal %s %s by %s", appeal_id, new_status.value, reviewer_id
        )
        await notices.appeal_result(
            self.notifier, appeal.driver_id, appeal.id, decision, resolution
        )
        return appeal

    async def get_driver_appeals(self, driver_id: int) -> list[AppealModel]:
        return await self.appeals.list_for_driver(driver_id)

    async def list_pending_appeals(self) -> list[AppealModel]:
        return await self.appeals.list_pending()

    async def _apply_approval(self, appeal: AppealModel, resolution: str) -> None:
        reason = f"Appeal approved: {resolution}"
        if appeal.strike_id is not None:
            await self.strikes.remove_strike(appeal.strike_id, reason)

        if appeal.suspension_id is not None:
            suspension = await self.suspension_repo.get_by_id(appeal.suspension_id)
            if suspension is not None and suspension.status is SuspensionStatus.ACTIVE:
                await self.suspensions.lift_suspension(suspension.id, reason)
            else:
                logger.info(
                    "Suspension %s no longer active; nothing to lift for appeal %s",
                    appeal.suspension_id,
                    appeal.id,
                )
