"""Builds the safety services for one unit of work (one ``AsyncSession``)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.policy import utcnow
from src.infrastructure.notifications import Notifier
from src.services.appeals import AppealsWorkflow
from src.services.safety_profile import SafetyProfileAggregator
from src.services.strikes import StrikeLedger
from src.services.suspensions import SuspensionController
from src.services.violations import ViolationRecorder


@dataclass
class SafetyServices:
    profiles: SafetyProfileAggregator
    suspensions: SuspensionController
    strikes: StrikeLedger
    appeals: AppealsWorkflow
    violations: ViolationRecorder


def build_safety_services(
    session: AsyncSession,
    notifier: Optional[Notifier] = None,
    clock: Callable[[], datetime] = utcnow,
) -> SafetyServices:
    profiles = SafetyProfileAggregator(session, clock=clock)
    suspensions = SuspensionController(session, profiles, notifier, clock)
    strikes = StrikeLedger(session, profiles, suspensions, notifier, clock)
    return SafetyServices(
        profiles=profiles,
        suspensions=suspensions,
        strikes=strikes,
        appeals=AppealsWorkflow(session, strikes, suspensions, notifier, clock),
        violations=ViolationRecorder(session, strikes),
    )
