"""
Strike endpoints (admin)
========================

POST /api/v1/strikes                      -- issue a strike (may escalate)
GET  /api/v1/strikes?status=              -- list strikes, newest first
GET  /api/v1/strikes/{strike_id}          -- single strike
POST /api/v1/strikes/{strike_id}/remove   -- remove a strike outside the appeal flow
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_services
from src.api.middleware import limiter
from src.api.schemas import StrikeCreateRequest, StrikeRemoveRequest, StrikeResponse
from src.domain.enums import StrikeStatus
from src.services.wiring import SafetyServices

router = APIRouter(prefix="/strikes", tags=["strikes"])


@router.post(
    "",
    status_code=201,
    response_model=StrikeResponse,
    summary="Issue a safety strike",
)
@limiter.limit("60/minute")
async def issue_strike(
    request: Request,
    body: StrikeCreateRequest,
    services: SafetyServices = Depends(get_services),
):
    return await services.strikes.issue_strike(
        body.driver_id,
        body.trip_id,
        body.type,
        body.reason,
        body.severity,
        violation_id=body.violation_id,
    )


@router.get("", response_model=list[StrikeResponse], summary="List strikes")
@limiter.limit("100/minute")
async def list_strikes(
    request: Request,
    status: Optional[StrikeStatus] = None,
    limit: int = Query(100, ge=1, le=500),
    services: SafetyServices = Depends(get_services),
):
    return await services.strikes.list_strikes(status, limit)


@router.get("/{strike_id}", response_model=StrikeResponse, summary="Get a strike")
@limiter.limit("100/minute")
async def get_strike(
    request: Request,
    strike_id: int,
    services: SafetyServices = Depends(get_services),
):
    return await services.strikes.get_strike(strike_id)


@router.post(
    "/{strike_id}/remove",
    response_model=StrikeResponse,
    summary="Remove a strike",
)
@limiter.limit("60/minute")
async def remove_strike(
    request: Request,
    strike_id: int,
    body: StrikeRemoveRequest,
    services: SafetyServices = Depends(get_services),
):
    return await services.strikes.remove_strike(strike_id, body.reason)
