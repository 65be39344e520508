"""
Driver-scoped safety endpoints
==============================

GET  /api/v1/drivers/{driver_id}/strikes?include_expired=
GET  /api/v1/drivers/{driver_id}/strikes/active-count
GET  /api/v1/drivers/{driver_id}/eligibility              -- may the driver go online?
GET  /api/v1/drivers/{driver_id}/safety-profile
POST /api/v1/drivers/{driver_id}/safety-profile/refresh
GET  /api/v1/drivers/{driver_id}/suspensions
GET  /api/v1/drivers/{driver_id}/appeals
GET  /api/v1/drivers/{driver_id}/speed-violations         -- recorded speeding, newest first
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_services
from src.api.middleware import limiter
from src.api.schemas import (
    ActiveStrikeCountResponse,
    AppealResponse,
    EligibilityResponse,
    SafetyProfileResponse,
    SpeedViolationResponse,
    StrikeResponse,
    SuspensionResponse,
)
from src.services.wiring import SafetyServices

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("/{driver_id}/strikes", response_model=list[StrikeResponse])
@limiter.limit("100/minute")
async def get_driver_strikes(
    request: Request,
    driver_id: int,
    include_expired: bool = False,
    services: SafetyServices = Depends(get_services),
):
    return await services.strikes.get_driver_strikes(driver_id, include_expired)


@router.get(
    "/{driver_id}/strikes/active-count", response_model=ActiveStrikeCountResponse
)
@limiter.limit("100/minute")
async def get_active_strikes_count(
    request: Request,
    driver_id: int,
    services: SafetyServices = Depends(get_services),
):
    count = await services.strikes.get_active_strikes_count(driver_id)
    return ActiveStrikeCountResponse(driver_id=driver_id, active_strikes=count)


@router.get(
    "/{driver_id}/eligibility",
    response_model=EligibilityResponse,
    summary="Check whether the driver may go online",
)
@limiter.limit("300/minute")
async def can_driver_go_online(
    request: Request,
    driver_id: int,
    services: SafetyServices = Depends(get_services),
):
    result = await services.suspensions.can_driver_go_online(driver_id)
    return EligibilityResponse(
        driver_id=driver_id,
        allowed=result.allowed,
        reason=result.reason,
        suspension=SuspensionResponse.model_validate(result.suspension)
        if result.suspension
        else None,
    )


@router.get("/{driver_id}/safety-profile", response_model=SafetyProfileResponse)
@limiter.limit("100/minute")
async def get_safety_profile(
    request: Request,
    driver_id: int,
    services: SafetyServices = Depends(get_services),
):
    return await services.profiles.get_driver_safety_profile(driver_id)


@router.post(
    "/{driver_id}/safety-profile/refresh", response_model=SafetyProfileResponse
)
@limiter.limit("30/minute")
async def refresh_safety_profile(
    request: Request,
    driver_id: int,
    services: SafetyServices = Depends(get_services),
):
    return await services.profiles.update_driver_safety_profile(driver_id)


@router.get("/{driver_id}/suspensions", response_model=list[SuspensionResponse])
@limiter.limit("100/minute")
async def get_driver_suspensions(
    request: Request,
    driver_id: int,
    services: SafetyServices = Depends(get_services),
):
    return await services.suspensions.get_driver_suspensions(driver_id)


@router.get("/{driver_id}/appeals", response_model=list[AppealResponse])
@limiter.limit("100/minute")
async def get_driver_appeals(
    request: Request,
    driver_id: int,
    services: SafetyServices = Depends(get_services),
):
    return await services.appeals.get_driver_appeals(driver_id)


@router.get(
    "/{driver_id}/speed-violations", response_model=list[SpeedViolationResponse]
)
@limiter.limit("100/minute")
async def get_driver_speed_violations(
    request: Request,
    driver_id: int,
    limit: int = Query(100, ge=1, le=500),
    services: SafetyServices = Depends(get_services),
):
    return await services.violations.get_driver_violations(driver_id, limit)
