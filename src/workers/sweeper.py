"""
Background Expiry Sweeper
=========================

Runs every ``SWEEP_INTERVAL_SECONDS`` (default 1 h).

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance sweeps at a time
  across multiple API processes.
* Both sweeps are idempotent, so a cycle that dies half-way is simply
  finished by the next one.

Per cycle
---------
1. Flip active strikes past ``expires_at`` to ``expired``.
2. Close temporary suspensions past ``expires_at`` (status ``expired``),
   clear the driver's standing and notify the driver.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from src.config import settings
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import DistributedLock
from src.infrastructure.notifications import OutboxNotifier, RedisNotifier
from src.infrastructure.redis_client import get_redis
from src.services.wiring import build_safety_services

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


@dataclass
class SweepResult:
    strikes_expired: int = 0
    suspensions_expired: int = 0
    skipped: bool = False


# ── Public API ────────────────────────────────────────────────────────


async def start_sweep_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info("Expiry sweeper started (interval=%ds)", settings.sweep_interval_seconds)


async def stop_sweep_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Expiry sweeper stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_sweep_cycle()
        except Exception:
            logger.exception("Unhandled error in sweep cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.sweep_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass


async def run_sweep_cycle() -> SweepResult:
    """Run both expiry sweeps once under the cluster-wide lock."""
    redis = await get_redis()
    lock = DistributedLock(redis, "safety_expiry_sweep", ttl_seconds=300)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping sweep")
        return SweepResult(skipped=True)

    result = SweepResult()
    try:
        outbox = OutboxNotifier(RedisNotifier(redis))
        async with async_session_factory() as session:
            services = build_safety_services(session, outbox)
            result.strikes_expired = await services.strikes.expire_old_strikes()
            result.suspensions_expired = (
                await services.suspensions.check_expired_suspensions()
            )
            await session.commit()
        await outbox.flush()
        if result.strikes_expired or result.suspensions_expired:
            logger.info(
                "Sweep cycle: %d strikes, %d suspensions expired",
                result.strikes_expired,
                result.suspensions_expired,
            )
    except Exception:
        logger.exception("Error in sweep cycle")
    finally:
        await lock.release()

    return result
