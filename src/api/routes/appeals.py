"""
Appeal endpoints
================

POST /api/v1/appeals                       -- driver submits an appeal
GET  /api/v1/appeals/pending               -- review queue, oldest first
POST /api/v1/appeals/{appeal_id}/review    -- approve / deny (one-shot)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_services
from src.api.middleware import limiter
from src.api.schemas import AppealCreateRequest, AppealResponse, AppealReviewRequest
from src.domain.entities import EvidenceItem
from src.services.wiring import SafetyServices

router = APIRouter(prefix="/appeals", tags=["appeals"])


@router.post("", status_code=201, response_model=AppealResponse)
@limiter.limit("10/minute")
async def submit_appeal(
    request: Request,
    body: AppealCreateRequest,
    services: SafetyServices = Depends(get_services),
):
    return await services.appeals.submit_appeal(
        body.driver_id,
        body.reason,
        strike_id=body.strike_id,
        suspension_id=body.suspension_id,
        evidence=[
            EvidenceItem(url=e.url, kind=e.type, description=e.description)
            for e in body.evidence
        ],
    )


@router.get("/pending", response_model=list[AppealResponse])
@limiter.limit("100/minute")
async def list_pending_appeals(
    request: Request,
    services: SafetyServices = Depends(get_services),
):
    return await services.appeals.list_pending_appeals()


@router.post("/{appeal_id}/review", response_model=AppealResponse)
@limiter.limit("30/minute")
async def review_appeal(
    request: Request,
    appeal_id: int,
    body: AppealReviewRequest,
    services: SafetyServices = Depends(get_services),
):
    return await services.appeals.review_appeal(
        appeal_id, body.reviewer_id, body.decision, body.resolution
    )
