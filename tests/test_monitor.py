"""
Speed monitor behaviour: warning episodes, dismissal suppression,
auto-clear and batch hand-off to the violation handler.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.domain.enums import SpeedAlertLevel
from src.domain.monitor import SpeedMonitor
from src.domain.speed import MPS_TO_MPH

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
LIMIT = 30.0
LAT, LNG = 37.7749, -122.4194


def mps(mph: float) -> float:
    return mph / MPS_TO_MPH


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def make_monitor(lookup=None, on_batch=None, **kwargs) -> SpeedMonitor:
    kwargs.setdefault("smoothing_window", 1)
    kwargs.setdefault("clock", lambda: T0)
    return SpeedMonitor(
        trip_id=7,
        driver_id=3,
        limit_lookup=lookup or AsyncMock(return_value=LIMIT),
        on_batch=on_batch or AsyncMock(),
        **kwargs,
    )


async def feed(monitor: SpeedMonitor, mph: float, seconds: float):
    return await monitor.update_speed(mps(mph), LAT, LNG, at(seconds))


class TestClassification:
    @pytest.mark.asyncio
    async def test_under_limit_is_normal(self):
        state = await feed(make_monitor(), 28, 0)
        assert state.alert_level is SpeedAlertLevel.NORMAL
        assert not state.is_over_limit

    @pytest.mark.asyncio
    async def test_levels_follow_excess(self):
        monitor = make_monitor()
        assert (await feed(monitor, 32, 0)).alert_level is SpeedAlertLevel.CAUTION
        assert (await feed(monitor, 34, 1)).alert_level is SpeedAlertLevel.WARNING
        state = await feed(monitor, 40, 2)
        assert state.alert_level is SpeedAlertLevel.DANGER
        assert state.excess_mph == pytest.approx(10.0, abs=0.1)

    @pytest.mark.asyncio
    async def test_unknown_limit_reports_normal(self):
        monitor = make_monitor(lookup=AsyncMock(return_value=None))
        state = await feed(monitor, 90, 0)
        assert state.alert_level is SpeedAlertLevel.NORMAL
        assert state.speed_limit_mph is None
        assert not state.show_warning

    @pytest.mark.asyncio
    async def test_failing_lookup_is_treated_as_unknown(self):
        monitor = make_monitor(lookup=AsyncMock(side_effect=RuntimeError("boom")))
        state = await feed(monitor, 90, 0)
        assert state.alert_level is SpeedAlertLevel.NORMAL

    @pytest.mark.asyncio
    async def test_unknown_limit_keeps_buffered_readings(self):
        lookup = AsyncMock(side_effect=[LIMIT, LIMIT, None, LIMIT])
        monitor = make_monitor(lookup=lookup)
        await feed(monitor, 40, 0)
        await feed(monitor, 40, 1)
        await feed(monitor, 40, 2)
        state = await feed(monitor, 40, 3)
        assert state.pending_readings == 3


class TestWarningEpisodes:
    @pytest.mark.asyncio
    async def test_twelve_readings_trigger_once_and_hand_off_once(self):
        on_batch = AsyncMock()
        monitor = make_monitor(on_batch=on_batch)

        triggers = 0
        for i in range(12):
            state = await feed(monitor, 40, i)
            triggers += state.warning_triggered

        assert triggers == 1
        assert state.show_warning
        on_batch.assert_awaited_once()
        batch, trip_id, driver_id = on_batch.await_args.args
        assert len(batch) == 10
        assert (trip_id, driver_id) == (7, 3)
        assert state.pending_readings == 2
        assert state.batches_handed_off == 1

    @pytest.mark.asyncio
    async def test_dropping_under_threshold_discards_buffer_and_ends_episode(self):
        on_batch = AsyncMock()
        monitor = make_monitor(on_batch=on_batch)
        for i in range(5):
            await feed(monitor, 40, i)

        state = await feed(monitor, 30, 5)
        assert state.pending_readings == 0

        for i in range(6, 16):
            state = await feed(monitor, 40, i)
        assert state.show_warning
        on_batch.assert_awaited_once()
        assert len(on_batch.await_args.args[0]) == 10

    @pytest.mark.asyncio
    async def test_new_episode_after_clear_warns_again(self):
        monitor = make_monitor()
        first = await feed(monitor, 40, 0)
        await feed(monitor, 30, 1)
        await feed(monitor, 30, 7)  # auto-cleared after 5 s under
        second = await feed(monitor, 40, 8)
        assert first.warning_triggered and second.warning_triggered

    @pytest.mark.asyncio
    async def test_dismissal_suppresses_for_thirty_seconds(self):
        monitor = make_monitor()
        await feed(monitor, 40, 0)

        state = monitor.dismiss_warning(now=at(1))
        assert not state.show_warning

        state = await feed(monitor, 40, 20)
        assert not state.show_warning
        assert not state.warning_triggered

        state = await feed(monitor, 40, 31)
        assert state.show_warning
        assert state.warning_triggered

    @pytest.mark.asyncio
    async def test_warning_auto_clears_after_five_seconds_under(self):
        monitor = make_monitor()
        await feed(monitor, 40, 0)

        state = await feed(monitor, 30, 2)
        assert state.show_warning

        state = await feed(monitor, 30, 5)
        assert not state.show_warning

    @pytest.mark.asyncio
    async def test_failing_batch_handler_does_not_stop_monitoring(self):
        on_batch = AsyncMock(side_effect=RuntimeError("db down"))
        monitor = make_monitor(on_batch=on_batch)
        for i in range(10):
            state = await feed(monitor, 40, i)
        assert state.batches_handed_off == 1
        assert state.pending_readings == 0

        state = await feed(monitor, 40, 10)
        assert state.pending_readings == 1

    @pytest.mark.asyncio
    async def test_reset_wipes_state(self):
        monitor = make_monitor()
        for i in range(4):
            await feed(monitor, 40, i)
        monitor.reset()
        assert monitor.state.pending_readings == 0
        assert not monitor.state.show_warning
        assert monitor.pending_readings == []


class TestTimeBase:
    @pytest.mark.asyncio
    async def test_naive_and_aware_timestamps_mix(self):
        monitor = make_monitor()
        naive = at(0).replace(tzinfo=None)
        state = await monitor.update_speed(mps(40), LAT, LNG, naive)
        assert state.show_warning

        monitor.dismiss_warning()
        state = await monitor.update_speed(mps(40), LAT, LNG)  # falls back to clock
        assert not state.warning_triggered

        state = await monitor.update_speed(
            mps(40), LAT, LNG, (at(31)).replace(tzinfo=None)
        )
        assert state.warning_triggered

    @pytest.mark.asyncio
    async def test_dismissal_window_uses_reading_time_not_server_time(self):
        # Server clock is an hour ahead of the device.
        monitor = make_monitor(clock=lambda: T0 + timedelta(hours=1))
        await feed(monitor, 40, 0)
        monitor.dismiss_warning()

        assert not (await feed(monitor, 40, 10)).warning_triggered
        assert (await feed(monitor, 40, 31)).warning_triggered
