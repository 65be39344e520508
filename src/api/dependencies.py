"""FastAPI dependency injection helpers."""

from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.policy import utcnow
from src.infrastructure.database import async_session_factory
from src.infrastructure.notifications import Notifier, OutboxNotifier, RedisNotifier
from src.infrastructure.redis_client import get_redis
from src.infrastructure.speed_limits import SpeedLimitClient
from src.services.monitoring import MonitorRegistry
from src.services.wiring import SafetyServices, build_safety_services

_speed_limits: Optional[SpeedLimitClient] = None
_registry: Optional[MonitorRegistry] = None


async def get_notifier() -> OutboxNotifier:
    """Per-request outbox; shared with ``get_db`` through dependency caching."""
    return OutboxNotifier(RedisNotifier(await get_redis()))


async def get_db(
    outbox: OutboxNotifier = Depends(get_notifier),
) -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error.

    Notifications queued during the request go out only after the commit.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            outbox.discard()
            raise
    await outbox.flush()


def get_clock() -> Callable[[], datetime]:
    return utcnow


async def get_services(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SafetyServices:
    return build_safety_services(db, notifier, clock)


async def get_monitor_registry() -> MonitorRegistry:
    """Process-wide registry; monitors must survive across requests."""
    global _speed_limits, _registry
    if _registry is None:
        redis = await get_redis()
        _speed_limits = SpeedLimitClient.from_settings(redis)
        _registry = MonitorRegistry(
            _speed_limits.lookup_mph,
            async_session_factory,
            RedisNotifier(redis),
        )
    return _registry


async def close_monitor_registry() -> None:
    global _speed_limits, _registry
    if _speed_limits is not None:
        await _speed_limits.aclose()
    _speed_limits = None
    _registry = None
