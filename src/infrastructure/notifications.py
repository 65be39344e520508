"""
Driver notification dispatch (fire-and-forget).

Each notification is published on ``notifications:<driver_id>`` for live
listeners and pushed onto a capped per-driver inbox list.  Dispatch
failures are logged and swallowed: the strike / suspension / appeal
change that triggered the notification is authoritative regardless.

Services write through an ``OutboxNotifier`` so nothing is sent for a
change whose transaction never commits.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

INBOX_MAX_LENGTH = 200


class Notifier(Protocol):
    async def notify(
        self,
        driver_id: int,
        kind: str,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> None: ...


class RedisNotifier:
    def __init__(self, redis: aioredis.Redis):
        self.redis = redis

    async def notify(
        self,
        driver_id: int,
        kind: str,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        payload = json.dumps(
            {
                "user_id": driver_id,
                "type": kind,
                "title": title,
                "message": message,
                "data": data or {},
                "read": False,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            default=str,
        )
        try:
            await self.redis.publish(f"notifications:{driver_id}", payload)
            inbox = f"inbox:{driver_id}"
            await self.redis.lpush(inbox, payload)
            await self.redis.ltrim(inbox, 0, INBOX_MAX_LENGTH - 1)
        except Exception:
            logger.exception(
                "Failed to deliver %s notification to driver %s", kind, driver_id
            )


class OutboxNotifier:
    """Holds notifications until the surrounding transaction has committed.

    ``flush`` hands them to the wrapped notifier in order; ``discard`` drops
    them when the transaction rolls back.
    """

    def __init__(self, inner: Notifier):
        self.inner = inner
        self._pending: list[tuple[int, str, str, str, Optional[dict[str, Any]]]] = []

    async def notify(
        self,
        driver_id: int,
        kind: str,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        self._pending.append((driver_id, kind, title, message, data))

    def __len__(self) -> int:
        return len(self._pending)

    def discard(self) -> None:
        if self._pending:
            logger.info("Discarded %d notifications after rollback", len(self._pending))
        self._pending = []

    async def flush(self) -> None:
        pending, self._pending = self._pending, []
        for driver_id, kind, title, message, data in pending:
            try:
                await self.inner.notify(driver_id, kind, title, message, data)
            except Exception:
                logger.exception(
                    "Failed to deliver %s notification to driver %s", kind, driver_id
                )
