"""Driver-facing notices for strike, suspension and appeal outcomes.

All sends go through ``dispatch`` which never raises: a failed notice is
logged and the governing state change stands.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from src.domain.enums import AppealDecision, SuspensionType
from src.infrastructure.models import StrikeModel, SuspensionModel
from src.infrastructure.notifications import Notifier

logger = logging.getLogger(__name__)


async def dispatch(
    notifier: Optional[Notifier],
    driver_id: int,
    kind: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> None:
    if notifier is None:
        return
    try:
        await notifier.notify(driver_id, kind, title, message, data)
    except Exception:
        logger.exception("Dropped %s notice for driver %s", kind, driver_id)


async def strike_issued(notifier: Optional[Notifier], strike: StrikeModel) -> None:
    await dispatch(
        notifier,
        strike.driver_id,
        "safety_strike",
        "Safety Strike Issued",
        f"You have received a safety strike: {strike.reason}",
        {
            "strike_id": strike.id,
            "type": strike.type.value,
            "severity": strike.severity.value,
        },
    )


async def suspension_issued(
    notifier: Optional[Notifier], suspension: SuspensionModel, temp_days: int
) -> None:
    if suspension.type is SuspensionType.PERMANENT:
        title = "Account Permanently Suspended"
        message = (
            "Your driver account has been permanently suspended due to "
            "safety violations."
        )
    else:
        title = "Account Temporarily Suspended"
        message = (
            f"Your driver account has been suspended for {temp_days} days "
            "due to safety violations."
        )
    await dispatch(
        notifier,
        suspension.driver_id,
        "suspension",
        title,
        message,
        {
            "suspension_id": suspension.id,
            "type": suspension.type.value,
            "expires_at": suspension.expires_at.isoformat()
            if suspension.expires_at
            else None,
        },
    )


async def suspension_lifted(
    notifier: Optional[Notifier], driver_id: int, message: str
) -> None:
    await dispatch(
        notifier, driver_id, "suspension_lifted", "Suspension Lifted", message
    )


async def appeal_result(
    notifier: Optional[Notifier],
    driver_id: int,
    appeal_id: int,
    decision: AppealDecision,
    resolution: str,
) -> None:
    title = "Appeal Approved" if decision is AppealDecision.APPROVED else "Appeal Denied"
    await dispatch(
        notifier,
        driver_id,
        "appeal_result",
        title,
        resolution,
        {"appeal_id": appeal_id, "decision": decision.value},
    )
