"""
Concurrency safety tests.

Demonstrates:
1. Distributed lock prevents simultaneous acquire.
2. A sweep cycle is skipped when another worker holds the lock.
3. A sweep cycle that holds the lock expires lapsed strikes and
   suspensions, and a second run is a no-op.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.domain.enums import (
    Severity,
    StrikeStatus,
    StrikeType,
    SuspensionStatus,
    SuspensionType,
)
from src.domain.policy import utcnow
from src.infrastructure.locks import DistributedLock
from src.infrastructure.models import StrikeModel, SuspensionModel
from src.workers import sweeper


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "sweep", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with("lock:sweep", lock.token, nx=True, ex=10)

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=None)

        lock = DistributedLock(mock_redis, "sweep", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_only_deletes_own_token(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "sweep", ttl_seconds=10)
        await lock.acquire()
        await lock.release()

        args = mock_redis.eval.await_args.args
        assert args[1:] == (1, "lock:sweep", lock.token)

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "sweep", ttl_seconds=10)
        with pytest.raises(RuntimeError, match="Could not acquire lock"):
            async with lock:
                pass


class TestSweepCycle:
    @pytest.mark.asyncio
    async def test_cycle_skipped_when_lock_is_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        with patch("src.workers.sweeper.get_redis", AsyncMock(return_value=mock_redis)):
            result = await sweeper.run_sweep_cycle()

        assert result.skipped
        mock_redis.eval.assert_not_called()

    @pytest.mark.asyncio
    async def test_cycle_expires_lapsed_records_once(
        self, session_factory, db_session, make_driver, make_trip
    ):
        now = utcnow()
        driver = await make_driver()
        trip = await make_trip(driver.id)
        db_session.add_all(
            [
                StrikeModel(
                    driver_id=driver.id,
                    trip_id=trip.id,
                    type=StrikeType.RIDER_REPORT,
                    reason="old",
                    severity=Severity.LOW,
                    issued_at=now - timedelta(days=40),
                    expires_at=now - timedelta(days=10),
                    status=StrikeStatus.ACTIVE,
                ),
                StrikeModel(
                    driver_id=driver.id,
                    trip_id=trip.id,
                    type=StrikeType.RIDER_REPORT,
                    reason="recent",
                    severity=Severity.LOW,
                    issued_at=now - timedelta(days=2),
                    expires_at=now + timedelta(days=28),
                    status=StrikeStatus.ACTIVE,
                ),
                SuspensionModel(
                    driver_id=driver.id,
                    type=SuspensionType.TEMPORARY,
                    reason="two strikes",
                    strike_ids=[],
                    started_at=now - timedelta(days=8),
                    expires_at=now - timedelta(days=1),
                    status=SuspensionStatus.ACTIVE,
                ),
            ]
        )
        await db_session.commit()

        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        with (
            patch("src.workers.sweeper.get_redis", AsyncMock(return_value=mock_redis)),
            patch("src.workers.sweeper.async_session_factory", session_factory),
        ):
            first = await sweeper.run_sweep_cycle()
            second = await sweeper.run_sweep_cycle()

        assert (first.strikes_expired, first.suspensions_expired) == (1, 1)
        assert (second.strikes_expired, second.suspensions_expired) == (0, 0)
        assert mock_redis.eval.await_count == 2
        mock_redis.publish.assert_awaited()
