"""
Posted speed-limit lookup (Google Roads ``speedLimits`` API).

* Results are cached in Redis per H3 cell (resolution 10, ~65 m edge) so
  neighbouring GPS fixes share one upstream call; limits rarely change,
  so the TTL is generous (15 min by default).
* The lookup never raises and never blocks past ``timeout_seconds``:
  HTTP errors, timeouts, malformed payloads and cache outages all
  degrade to ``None`` ("no limit known").
* With no API key configured the configured default limit is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.config import settings
from src.domain.speed import kmh_to_mph, location_cell

logger = logging.getLogger(__name__)

ROADS_SPEED_LIMITS_URL = "https://roads.googleapis.com/v1/speedLimits"


@dataclass(frozen=True)
class SpeedLimitResult:
    limit_mph: float
    source: str  # "google_roads" | "cached" | "default"
    place_id: Optional[str] = None


class SpeedLimitClient:
    def __init__(
        self,
        redis: Optional[aioredis.Redis],
        http: Optional[httpx.AsyncClient] = None,
        *,
        api_key: Optional[str] = None,
        default_limit_mph: float = 40,
        timeout_seconds: float = 5.0,
        cache_ttl_seconds: int = 900,
        h3_resolution: int = 10,
    ):
        self.redis = redis
        self.http = http or httpx.AsyncClient(timeout=timeout_seconds)
        self.api_key = api_key
        self.default_limit_mph = default_limit_mph
        self.cache_ttl = cache_ttl_seconds
        self.h3_resolution = h3_resolution

    @classmethod
    def from_settings(cls, redis: Optional[aioredis.Redis]) -> "SpeedLimitClient":
        return cls(
            redis,
            api_key=settings.google_roads_api_key,
            default_limit_mph=settings.default_speed_limit_mph,
            timeout_seconds=settings.speed_limit_timeout_seconds,
            cache_ttl_seconds=settings.speed_limit_cache_ttl_seconds,
            h3_resolution=settings.speed_limit_h3_resolution,
        )

    async def get_speed_limit(
        self, latitude: float, longitude: float
    ) -> Optional[SpeedLimitResult]:
        if not self.api_key:
            return SpeedLimitResult(self.default_limit_mph, "default")

        key = f"speedlimit:{location_cell(latitude, longitude, self.h3_resolution)}"
        cached = await self._cache_get(key)
        if cached is not None:
            return SpeedLimitResult(cached, "cached")

        result = await self._fetch(latitude, longitude)
        if result is not None:
            await self._cache_set(key, result.limit_mph)
        return result

    async def lookup_mph(self, latitude: float, longitude: float) -> Optional[float]:
        """Adapter matching the speed monitor's lookup signature."""
        result = await self.get_speed_limit(latitude, longitude)
        return result.limit_mph if result else None

    async def aclose(self) -> None:
        await self.http.aclose()

    # ── Internals ─────────────────────────────────────────────────────

    async def _fetch(
        self, latitude: float, longitude: float
    ) -> Optional[SpeedLimitResult]:
        try:
            resp = await self.http.get(
                ROADS_SPEED_LIMITS_URL,
                params={"path": f"{latitude},{longitude}", "key": self.api_key},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError):
            logger.warning(
                "Speed-limit lookup failed at (%.5f, %.5f)",
                latitude,
                longitude,
                exc_info=True,
            )
            return None

        if "error" in data:
            logger.warning("Roads API error: %s", data["error"].get("message"))
            return None

        limits = data.get("speedLimits") or []
        if not limits:
            return None

        entry = limits[0]
        raw = entry.get("speedLimit")
        if raw is None:
            return None
        limit_mph = raw if entry.get("units") == "MPH" else kmh_to_mph(raw)
        return SpeedLimitResult(
            float(round(limit_mph)), "google_roads", entry.get("placeId")
        )

    async def _cache_get(self, key: str) -> Optional[float]:
        if self.redis is None:
            return None
        try:
            value = await self.redis.get(key)
        except RedisError:
            logger.warning("Speed-limit cache read failed for %s", key, exc_info=True)
            return None
        return float(value) if value is not None else None

    async def _cache_set(self, key: str, limit_mph: float) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(key, limit_mph, ex=self.cache_ttl)
        except RedisError:
            logger.warning("Speed-limit cache write failed for %s", key, exc_info=True)
