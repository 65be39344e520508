"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/health      -- simple health check
POST /api/v1/admin/sweeps/run  -- run the strike + suspension expiry sweeps now
"""

from fastapi import APIRouter, Request

from src.api.middleware import limiter
from src.api.schemas import HealthResponse, SweepResponse
from src.workers import sweeper

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/sweeps/run",
    response_model=SweepResponse,
    summary="Run the expiry sweeps immediately",
)
@limiter.limit("5/minute")
async def run_sweeps(request: Request):
    result = await sweeper.run_sweep_cycle()
    return SweepResponse(
        strikes_expired=result.strikes_expired,
        suspensions_expired=result.suspensions_expired,
        skipped=result.skipped,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
