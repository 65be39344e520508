"""Violation recording, the per-trip speeding strike and the monitor registry hand-off."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from src.domain.entities import SpeedReading
from src.domain.enums import Severity, StrikeType
from src.domain.speed import MPS_TO_MPH
from src.infrastructure.models import SpeedViolationModel, StrikeModel, TripModel
from src.services.monitoring import MonitorRegistry


def _batch(clock, excess=8.0, n=10, limit=30.0):
    start = clock()
    return [
        SpeedReading(limit + excess, limit, 37.77, -122.41, start + timedelta(seconds=i))
        for i in range(n)
    ]


class TestViolationRecorder:
    @pytest.mark.asyncio
    async def test_small_batch_is_ignored(self, services, make_driver, make_trip, clock):
        driver = await make_driver()
        trip = await make_trip(driver.id)
        row = await services.violations.record_batch(_batch(clock, n=4), trip.id, driver.id)
        assert row is None

    @pytest.mark.asyncio
    async def test_batch_is_recorded_and_counted_on_trip(
        self, services, make_driver, make_trip, clock
    ):
        driver = await make_driver()
        trip = await make_trip(driver.id)

        row = await services.violations.record_batch(
            _batch(clock, excess=14.0), trip.id, driver.id
        )

        assert row.id is not None
        assert row.sample_count == 10
        assert row.severity is Severity.MEDIUM
        assert row.h3_cell
        assert trip.speed_violation_count == 1

    @pytest.mark.asyncio
    async def test_third_violation_issues_one_strike_per_trip(
        self, services, make_driver, make_trip, clock, db_session
    ):
        driver = await make_driver()
        trip = await make_trip(driver.id)

        rows = []
        for _ in range(4):
            rows.append(
                await services.violations.record_batch(_batch(clock), trip.id, driver.id)
            )
            clock.advance(minutes=1)

        strikes = (
            await db_session.execute(
                select(StrikeModel).where(StrikeModel.trip_id == trip.id)
            )
        ).scalars().all()
        assert len(strikes) == 1
        assert strikes[0].type is StrikeType.SPEED_VIOLATION
        assert strikes[0].violation_id == rows[2].id
        assert trip.speed_violation_count == 4

    @pytest.mark.asyncio
    async def test_violation_lowers_speed_compliance(
        self, services, make_driver, make_trip, clock
    ):
        driver = await make_driver()
        await make_trip(driver.id, completed_at=clock.now - timedelta(days=1))
        trip = await make_trip(driver.id)

        await services.violations.record_batch(_batch(clock), trip.id, driver.id)
        profile = await services.profiles.update_driver_safety_profile(driver.id)

        assert profile.speed_compliance_score == 50
        assert profile.safe_trips_streak == 0
        assert profile.last_violation_at == trip.completed_at


class TestMonitorRegistry:
    @pytest.mark.asyncio
    async def test_full_batch_is_persisted_in_its_own_session(
        self, session_factory, make_driver, make_trip, db_session, clock, notifier
    ):
        driver = await make_driver()
        trip = await make_trip(driver.id)
        await db_session.commit()

        registry = MonitorRegistry(
            AsyncMock(return_value=30.0), session_factory, notifier, clock
        )
        monitor = registry.start(trip.id, driver.id)
        for i in range(10):
            state = await monitor.update_speed(
                40 / MPS_TO_MPH, 37.77, -122.41, clock.now + timedelta(seconds=i)
            )
        assert state.batches_handed_off == 1

        async with session_factory() as check:
            count = (
                await check.execute(select(func.count()).select_from(SpeedViolationModel))
            ).scalar()
            stored_trip = await check.get(TripModel, trip.id)
        assert count == 1
        assert stored_trip.speed_violation_count == 1

    @pytest.mark.asyncio
    async def test_start_get_stop(self, session_factory, clock):
        registry = MonitorRegistry(AsyncMock(return_value=None), session_factory, clock=clock)
        first = registry.start(5, 9)
        assert registry.get(5) is first
        assert registry.start(5, 9) is first
        assert len(registry) == 1

        assert registry.stop(5) is True
        assert registry.stop(5) is False
        assert registry.get(5) is None

    @pytest.mark.asyncio
    async def test_strike_notice_follows_the_commit(
        self, session_factory, make_driver, make_trip, db_session, clock, notifier
    ):
        driver = await make_driver()
        trip = await make_trip(driver.id)
        await db_session.commit()

        registry = MonitorRegistry(
            AsyncMock(return_value=30.0), session_factory, notifier, clock
        )
        for _ in range(2):
            await registry.record_batch(_batch(clock), trip.id, driver.id)
            assert notifier.sent == []

        await registry.record_batch(_batch(clock), trip.id, driver.id)
        assert notifier.kinds() == ["safety_strike"]

    @pytest.mark.asyncio
    async def test_no_notice_when_the_batch_rolls_back(
        self, session_factory, make_driver, make_trip, db_session, clock, notifier
    ):
        driver = await make_driver()
        trip = await make_trip(driver.id)
        await db_session.commit()

        opened = []

        def flaky_factory():
            session = session_factory()
            opened.append(session)
            if len(opened) == 3:
                session.commit = AsyncMock(
                    side_effect=OperationalError("COMMIT", {}, Exception("disk full"))
                )
            return session

        registry = MonitorRegistry(
            AsyncMock(return_value=30.0), flaky_factory, notifier, clock
        )
        for _ in range(2):
            await registry.record_batch(_batch(clock), trip.id, driver.id)
        with pytest.raises(OperationalError):
            await registry.record_batch(_batch(clock), trip.id, driver.id)

        assert notifier.sent == []
        async with session_factory() as check:
            strikes = (
                await check.execute(select(func.count()).select_from(StrikeModel))
            ).scalar()
        assert strikes == 0
