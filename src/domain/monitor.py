"""
Per-trip speed monitor.

One ``SpeedMonitor`` lives for exactly one trip.  Each GPS sample goes
through:

1. m/s -> mph conversion and weighted-average smoothing.
2. Posted-limit lookup (cache-backed, may fail -> alert level ``normal``).
3. Alert classification on ``excess = smoothed - limit``.
4. Danger handling (excess >= danger threshold):

   * The driver-facing warning is raised at most once per warning episode.
     An episode starts on the first over-threshold reading and ends when
     speed drops back under the threshold, or when the driver dismisses
     the warning.
   * A dismissal suppresses any new trigger for ``suppression_seconds``,
     even if the driver is still over the threshold.
   * The visible warning clears itself once the driver has stayed under
     the threshold for ``auto_clear_seconds``.

5. Over-threshold readings accumulate; every ``batch_size`` readings the
   batch is handed to the violation handler and the buffer is emptied.
   Dropping under the threshold discards the buffer.

State is in-memory and single-threaded; ``reset`` wipes it between trips.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from .entities import SpeedReading
from .enums import SpeedAlertLevel
from .policy import as_utc, utcnow
from .speed import (
    DANGER_THRESHOLD_MPH,
    WARNING_THRESHOLD_MPH,
    SpeedSmoother,
    classify_alert_level,
    mps_to_mph,
)

logger = logging.getLogger(__name__)

SpeedLimitLookup = Callable[[float, float], Awaitable[Optional[float]]]
BatchHandler = Callable[[list[SpeedReading], int, int], Awaitable[None]]


@dataclass
class MonitorState:
    trip_id: int
    driver_id: int
    current_speed_mph: float = 0.0
    speed_limit_mph: Optional[float] = None
    alert_level: SpeedAlertLevel = SpeedAlertLevel.NORMAL
    excess_mph: float = 0.0
    is_over_limit: bool = False
    show_warning: bool = False
    warning_triggered: bool = False  # True only on the reading that raised it
    pending_readings: int = 0
    batches_handed_off: int = 0


class SpeedMonitor:
    def __init__(
        self,
        trip_id: int,
        driver_id: int,
        limit_lookup: SpeedLimitLookup,
        on_batch: BatchHandler,
        *,
        warning_threshold: float = WARNING_THRESHOLD_MPH,
        danger_threshold: float = DANGER_THRESHOLD_MPH,
        smoothing_window: int = 5,
        batch_size: int = 10,
        suppression_seconds: float = 30,
        auto_clear_seconds: float = 5,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.trip_id = trip_id
        self.driver_id = driver_id
        self._lookup = limit_lookup
        self._on_batch = on_batch
        self.warning_threshold = warning_threshold
        self.danger_threshold = danger_threshold
        self.batch_size = batch_size
        self.suppression = timedelta(seconds=suppression_seconds)
        self.auto_clear = timedelta(seconds=auto_clear_seconds)
        self._clock = clock
        self._smoother = SpeedSmoother(smoothing_window)
        self.reset()

    # ── Public API ────────────────────────────────────────────────────

    async def update_speed(
        self,
        speed_mps: float,
        latitude: float,
        longitude: float,
        timestamp: Optional[datetime] = None,
    ) -> MonitorState:
        now = as_utc(timestamp) if timestamp else self._clock()
        self._last_seen_at = now
        smoothed = self._smoother.update(mps_to_mph(speed_mps))
        self._state.current_speed_mph = round(smoothed, 1)
        self._state.warning_triggered = False

        limit = await self._lookup_limit(latitude, longitude)
        self._state.speed_limit_mph = limit
        if limit is None:
            # No limit known: report normal, leave episode state untouched.
            self._state.alert_level = SpeedAlertLevel.NORMAL
            self._state.excess_mph = 0.0
            self._state.is_over_limit = False
            return self.state

        excess = smoothed - limit
        self._state.excess_mph = round(excess, 1)
        self._state.is_over_limit = excess > 0
        self._state.alert_level = classify_alert_level(
            excess, self.warning_threshold, self.danger_threshold
        )

        if excess >= self.danger_threshold:
            await self._handle_over_threshold(
                SpeedReading(smoothed, limit, latitude, longitude, now)
            )
        else:
            self._handle_under_threshold(now)

        self._state.pending_readings = len(self._buffer)
        return self.state

    def dismiss_warning(self, now: Optional[datetime] = None) -> MonitorState:
        """Driver acknowledged the warning; hold off new triggers for a while.

        The suppression window is measured on the readings' own time base:
        without an explicit ``now`` it starts at the latest reading.
        """
        if now is not None:
            now = as_utc(now)
        else:
            now = self._last_seen_at or self._clock()
        self._state.show_warning = False
        self._suppressed_until = now + self.suppression
        self._episode_warned = False
        return self.state

    def reset(self) -> None:
        self._smoother.reset()
        self._buffer: list[SpeedReading] = []
        self._in_excess = False
        self._episode_warned = False
        self._suppressed_until: Optional[datetime] = None
        self._last_over_at: Optional[datetime] = None
        self._last_seen_at: Optional[datetime] = None
        self._state = MonitorState(trip_id=self.trip_id, driver_id=self.driver_id)

    @property
    def state(self) -> MonitorState:
        return MonitorState(**vars(self._state))

    @property
    def pending_readings(self) -> list[SpeedReading]:
        return list(self._buffer)

    # ── Internals ─────────────────────────────────────────────────────

    async def _lookup_limit(self, latitude: float, longitude: float) -> Optional[float]:
        try:
            return await self._lookup(latitude, longitude)
        except Exception:
            logger.exception(
                "Speed-limit lookup failed for trip %s; treating limit as unknown",
                self.trip_id,
            )
            return None

    async def _handle_over_threshold(self, reading: SpeedReading) -> None:
        now = reading.timestamp
        self._last_over_at = now
        self._in_excess = True

        if not self._episode_warned and not self._is_suppressed(now):
            self._episode_warned = True
            if not self._state.show_warning:
                self._state.show_warning = True
                self._state.warning_triggered = True

        self._buffer.append(reading)
        if len(self._buffer) >= self.batch_size:
            batch, self._buffer = self._buffer, []
            self._state.batches_handed_off += 1
            try:
                await self._on_batch(batch, self.trip_id, self.driver_id)
            except Exception:
                logger.exception(
                    "Violation hand-off failed for trip %s (%d readings dropped)",
                    self.trip_id,
                    len(batch),
                )

    def _handle_under_threshold(self, now: datetime) -> None:
        if self._in_excess:
            self._in_excess = False
            self._episode_warned = False
            self._buffer = []

        if self._last_over_at is not None and now - self._last_over_at >= self.auto_clear:
            self._state.show_warning = False
            self._last_over_at = None

    def _is_suppressed(self, now: datetime) -> bool:
        return self._suppressed_until is not None and now < self._suppressed_until
