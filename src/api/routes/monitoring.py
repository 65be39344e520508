"""
Live speed-monitoring endpoints
===============================

POST   /api/v1/trips/{trip_id}/monitor           -- start monitoring a trip
POST   /api/v1/trips/{trip_id}/monitor/speed     -- push one GPS speed sample
POST   /api/v1/trips/{trip_id}/monitor/dismiss   -- driver dismissed the warning
DELETE /api/v1/trips/{trip_id}/monitor           -- stop monitoring
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from src.api.dependencies import get_monitor_registry
from src.api.middleware import limiter
from src.api.schemas import (
    MonitorDismissRequest,
    MonitorStartRequest,
    MonitorStateResponse,
    SpeedSampleRequest,
)
from src.domain.monitor import SpeedMonitor
from src.services.monitoring import MonitorRegistry

router = APIRouter(prefix="/trips", tags=["monitoring"])


def _require(registry: MonitorRegistry, trip_id: int) -> SpeedMonitor:
    monitor = registry.get(trip_id)
    if monitor is None:
        raise HTTPException(status_code=404, detail="Trip is not being monitored")
    return monitor


@router.post("/{trip_id}/monitor", status_code=201, response_model=MonitorStateResponse)
@limiter.limit("60/minute")
async def start_monitoring(
    request: Request,
    trip_id: int,
    body: MonitorStartRequest,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    return registry.start(trip_id, body.driver_id).state


@router.post("/{trip_id}/monitor/speed", response_model=MonitorStateResponse)
@limiter.limit("600/minute")
async def update_speed(
    request: Request,
    trip_id: int,
    body: SpeedSampleRequest,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    monitor = _require(registry, trip_id)
    return await monitor.update_speed(
        body.speed_mps, body.latitude, body.longitude, body.timestamp
    )


@router.post("/{trip_id}/monitor/dismiss", response_model=MonitorStateResponse)
@limiter.limit("60/minute")
async def dismiss_warning(
    request: Request,
    trip_id: int,
    body: Optional[MonitorDismissRequest] = None,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    return _require(registry, trip_id).dismiss_warning(body.timestamp if body else None)


@router.delete("/{trip_id}/monitor", status_code=204)
@limiter.limit("60/minute")
async def stop_monitoring(
    request: Request,
    trip_id: int,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    if not registry.stop(trip_id):
        raise HTTPException(status_code=404, detail="Trip is not being monitored")
    return Response(status_code=204)
