"""
In-process registry of per-trip speed monitors.

Monitors outlive a single request, so batch hand-offs open their own
session from ``session_factory`` and commit independently of whatever
request delivered the reading that filled the batch.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain.entities import SpeedReading
from src.domain.monitor import SpeedLimitLookup, SpeedMonitor
from src.domain.policy import utcnow
from src.infrastructure.notifications import Notifier, OutboxNotifier
from src.services.wiring import build_safety_services

logger = logging.getLogger(__name__)


class MonitorRegistry:
    def __init__(
        self,
        limit_lookup: SpeedLimitLookup,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.limit_lookup = limit_lookup
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock
        self._monitors: dict[int, SpeedMonitor] = {}

    def start(self, trip_id: int, driver_id: int) -> SpeedMonitor:
        """Begin monitoring a trip; restarting an existing trip resets it."""
        monitor = self._monitors.get(trip_id)
        if monitor is not None and monitor.driver_id == driver_id:
            monitor.reset()
            return monitor

        monitor = SpeedMonitor(
            trip_id,
            driver_id,
            self.limit_lookup,
            self.record_batch,
            warning_threshold=settings.speed_warning_threshold_mph,
            danger_threshold=settings.speed_danger_threshold_mph,
            smoothing_window=settings.speed_smoothing_window,
            batch_size=settings.violation_batch_size,
            suppression_seconds=settings.warning_suppression_seconds,
            auto_clear_seconds=settings.warning_auto_clear_seconds,
            clock=self.clock,
        )
        self._monitors[trip_id] = monitor
        logger.info("Speed monitoring started: trip=%s driver=%s", trip_id, driver_id)
        return monitor

    def get(self, trip_id: int) -> Optional[SpeedMonitor]:
        return self._monitors.get(trip_id)

    def stop(self, trip_id: int) -> bool:
        monitor = self._monitors.pop(trip_id, None)
        if monitor is None:
            return False
        monitor.reset()
        logger.info("Speed monitoring stopped: trip=%s", trip_id)
        return True

    def __len__(self) -> int:
        return len(self._monitors)

    async def record_batch(
        self, readings: list[SpeedReading], trip_id: int, driver_id: int
    ) -> None:
        outbox = OutboxNotifier(self.notifier) if self.notifier else None
        async with self.session_factory() as session:
            try:
                services = build_safety_services(session, outbox, self.clock)
                await services.violations.record_batch(readings, trip_id, driver_id)
                await session.commit()
            except Exception:
                await session.rollback()
                if outbox is not None:
                    outbox.discard()
                raise
        if outbox is not None:
            await outbox.flush()
