"""
Suspension endpoints
====================

POST /api/v1/suspensions                          -- issue a suspension (admin)
GET  /api/v1/suspensions/active                   -- all active suspensions
POST /api/v1/suspensions/{suspension_id}/lift     -- lift (driver stays offline)
POST /api/v1/suspensions/{suspension_id}/acknowledge
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_services
from src.api.middleware import limiter
from src.api.schemas import (
    SuspensionCreateRequest,
    SuspensionLiftRequest,
    SuspensionResponse,
)
from src.services.wiring import SafetyServices

router = APIRouter(prefix="/suspensions", tags=["suspensions"])


@router.post("", status_code=201, response_model=SuspensionResponse)
@limiter.limit("30/minute")
async def issue_suspension(
    request: Request,
    body: SuspensionCreateRequest,
    services: SafetyServices = Depends(get_services),
):
    return await services.suspensions.issue_suspension(
        body.driver_id, body.type, body.reason, body.strike_ids
    )


@router.get("/active", response_model=list[SuspensionResponse])
@limiter.limit("100/minute")
async def list_active_suspensions(
    request: Request,
    services: SafetyServices = Depends(get_services),
):
    return await services.suspensions.list_active_suspensions()


@router.post("/{suspension_id}/lift", response_model=SuspensionResponse)
@limiter.limit("30/minute")
async def lift_suspension(
    request: Request,
    suspension_id: int,
    body: SuspensionLiftRequest,
    services: SafetyServices = Depends(get_services),
):
    return await services.suspensions.lift_suspension(suspension_id, body.reason)


@router.post("/{suspension_id}/acknowledge", response_model=SuspensionResponse)
@limiter.limit("30/minute")
async def acknowledge_suspension(
    request: Request,
    suspension_id: int,
    services: SafetyServices = Depends(get_services),
):
    return await services.suspensions.acknowledge_suspension(suspension_id)
