"""Suspension controller: lift, expiry sweep, acknowledgment and the online gate."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from src.domain.enums import DriverStanding, SuspensionStatus, SuspensionType
from src.services.errors import ConflictError, NotFoundError
from src.services.suspensions import EXPIRED_REASON


class TestOnlineGate:
    @pytest.mark.asyncio
    async def test_clean_driver_may_go_online(self, services, make_driver):
        driver = await make_driver()
        result = await services.suspensions.can_driver_go_online(driver.id)
        assert result.allowed
        assert result.suspension is None

    @pytest.mark.asyncio
    async def test_temporary_suspension_blocks_with_end_date(
        self, services, make_driver, clock
    ):
        driver = await make_driver()
        suspension = await services.suspensions.issue_suspension(
            driver.id, SuspensionType.TEMPORARY, "Two strikes"
        )

        result = await services.suspensions.can_driver_go_online(driver.id)

        assert not result.allowed
        assert result.suspension.id == suspension.id
        assert (clock.now + timedelta(days=7)).strftime("%Y-%m-%d") in result.reason

    @pytest.mark.asyncio
    async def test_permanent_suspension_blocks(self, services, make_driver):
        driver = await make_driver()
        await services.suspensions.issue_suspension(
            driver.id, SuspensionType.PERMANENT, "Three strikes"
        )
        result = await services.suspensions.can_driver_go_online(driver.id)
        assert not result.allowed
        assert "permanently" in result.reason

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            OperationalError("SELECT", {}, Exception("connection reset")),
            ConnectionRefusedError(111, "Connect call failed"),
            OSError("network unreachable"),
        ],
    )
    async def test_lookup_failure_fails_open(self, services, make_driver, error):
        driver = await make_driver()
        await services.suspensions.issue_suspension(
            driver.id, SuspensionType.PERMANENT, "Three strikes"
        )
        services.suspensions.suspensions.get_active_for_driver = AsyncMock(
            side_effect=error
        )

        result = await services.suspensions.can_driver_go_online(driver.id)
        assert result.allowed
        assert result.suspension is None


class TestIssue:
    @pytest.mark.asyncio
    async def test_issue_forces_driver_offline(self, services, make_driver, notifier):
        driver = await make_driver(is_online=True)
        suspension = await services.suspensions.issue_suspension(
            driver.id, SuspensionType.TEMPORARY, "Manual review", [11, 12]
        )
        assert driver.is_online is False
        assert suspension.strike_ids == [11, 12]
        assert suspension.acknowledgment_required is True
        assert notifier.sent[-1]["title"] == "Account Temporarily Suspended"

    @pytest.mark.asyncio
    async def test_unknown_driver(self, services):
        with pytest.raises(NotFoundError):
            await services.suspensions.issue_suspension(
                12345, SuspensionType.TEMPORARY, "nobody"
            )


class TestLift:
    @pytest.mark.asyncio
    async def test_lift_clears_standing_but_keeps_driver_offline(
        self, services, make_driver, clock, notifier
    ):
        driver = await make_driver(is_online=True)
        suspension = await services.suspensions.issue_suspension(
            driver.id, SuspensionType.TEMPORARY, "Two strikes"
        )
        clock.advance(hours=3)

        await services.suspensions.lift_suspension(suspension.id, "Reviewed by ops")

        assert suspension.status is SuspensionStatus.LIFTED
        assert suspension.lifted_at == clock.now
        assert suspension.lifted_reason == "Reviewed by ops"
        assert driver.is_online is False
        assert driver.suspension_status is DriverStanding.ACTIVE
        assert driver.current_suspension_id is None
        assert (await services.suspensions.can_driver_go_online(driver.id)).allowed
        assert notifier.kinds()[-1] == "suspension_lifted"

    @pytest.mark.asyncio
    async def test_lift_twice_is_conflict(self, services, make_driver):
        driver = await make_driver()
        suspension = await services.suspensions.issue_suspension(
            driver.id, SuspensionType.PERMANENT, "x"
        )
        await services.suspensions.lift_suspension(suspension.id, "first")
        with pytest.raises(ConflictError):
            await services.suspensions.lift_suspension(suspension.id, "second")

    @pytest.mark.asyncio
    async def test_lift_unknown(self, services):
        with pytest.raises(NotFoundError) as exc:
            await services.suspensions.lift_suspension(77, "x")
        assert exc.value.code == "SUSPENSION_NOT_FOUND"


class TestExpirySweep:
    @pytest.mark.asyncio
    async def test_temporary_suspension_expires_after_seven_days(
        self, services, make_driver, clock
    ):
        driver = await make_driver()
        suspension = await services.suspensions.issue_suspension(
            driver.id, SuspensionType.TEMPORARY, "Two strikes"
        )

        clock.advance(days=6, hours=23)
        assert await services.suspensions.check_expired_suspensions() == 0

        clock.advance(hours=1)
        assert await services.suspensions.check_expired_suspensions() == 1
        assert await services.suspensions.check_expired_suspensions() == 0

        assert suspension.status is SuspensionStatus.EXPIRED
        assert suspension.lifted_reason == EXPIRED_REASON
        assert driver.suspension_status is DriverStanding.ACTIVE
        assert (await services.suspensions.can_driver_go_online(driver.id)).allowed

    @pytest.mark.asyncio
    async def test_permanent_suspension_never_expires(
        self, services, make_driver, clock
    ):
        driver = await make_driver()
        await services.suspensions.issue_suspension(
            driver.id, SuspensionType.PERMANENT, "Three strikes"
        )
        clock.advance(days=3650)
        assert await services.suspensions.check_expired_suspensions() == 0


class TestAcknowledge:
    @pytest.mark.asyncio
    async def test_acknowledgment_is_recorded_once(self, services, make_driver, clock):
        driver = await make_driver()
        suspension = await services.suspensions.issue_suspension(
            driver.id, SuspensionType.TEMPORARY, "Two strikes"
        )
        clock.advance(minutes=5)
        first_seen = clock.now
        await services.suspensions.acknowledge_suspension(suspension.id)
        clock.advance(minutes=5)
        await services.suspensions.acknowledge_suspension(suspension.id)

        assert suspension.acknowledged_at == first_seen
