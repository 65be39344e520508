"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from src.domain.enums import (
    AppealDecision,
    AppealStatus,
    DriverStanding,
    Severity,
    SpeedAlertLevel,
    StrikeStatus,
    StrikeType,
    SuspensionStatus,
    SuspensionType,
)
from src.domain.policy import as_utc


# ── Requests ──────────────────────────────────────────────────────────


class StrikeCreateRequest(BaseModel):
    driver_id: int
    trip_id: int
    type: StrikeType
    reason: str = Field(..., min_length=1, max_length=500)
    severity: Severity
    violation_id: Optional[int] = None


class StrikeRemoveRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class SuspensionCreateRequest(BaseModel):
    driver_id: int
    type: SuspensionType
    reason: str = Field(..., min_length=1, max_length=500)
    strike_ids: list[int] = []


class SuspensionLiftRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class EvidenceSchema(BaseModel):
    url: str = Field(..., max_length=2048)
    type: str = Field("photo", max_length=32)
    description: Optional[str] = Field(None, max_length=500)


class AppealCreateRequest(BaseModel):
    driver_id: int
    reason: str = Field(..., min_length=1, max_length=2000)
    strike_id: Optional[int] = None
    suspension_id: Optional[int] = None
    evidence: list[EvidenceSchema] = Field(default_factory=list, max_length=10)


class AppealReviewRequest(BaseModel):
    reviewer_id: str = Field(..., min_length=1, max_length=64)
    decision: AppealDecision
    resolution: str = Field(..., min_length=1, max_length=2000)


class MonitorStartRequest(BaseModel):
    driver_id: int


class SpeedSampleRequest(BaseModel):
    speed_mps: float = Field(..., ge=0, description="GPS speed in metres per second.")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None


class MonitorDismissRequest(BaseModel):
    timestamp: Optional[datetime] = Field(
        None, description="Client time of the dismissal; defaults to the latest sample."
    )

    @field_validator("timestamp")
    @classmethod
    def timestamp_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None


# ── Responses ─────────────────────────────────────────────────────────


class StrikeResponse(BaseModel):
    id: int
    driver_id: int
    trip_id: int
    type: StrikeType
    reason: str
    severity: Severity
    violation_id: Optional[int] = None
    issued_at: datetime
    expires_at: datetime
    status: StrikeStatus
    appeal_id: Optional[int] = None
    removed_at: Optional[datetime] = None
    removed_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class SuspensionResponse(BaseModel):
    id: int
    driver_id: int
    type: SuspensionType
    reason: str
    strike_ids: list[int] = []
    started_at: datetime
    expires_at: Optional[datetime] = None
    status: SuspensionStatus
    acknowledgment_required: bool
    acknowledged_at: Optional[datetime] = None
    lifted_at: Optional[datetime] = None
    lifted_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class AppealResponse(BaseModel):
    id: int
    driver_id: int
    strike_id: Optional[int] = None
    suspension_id: Optional[int] = None
    reason: str
    evidence: list[dict] = []
    submitted_at: datetime
    status: AppealStatus
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    resolution: Optional[str] = None

    model_config = {"from_attributes": True}


class SpeedViolationResponse(BaseModel):
    id: int
    trip_id: int
    driver_id: int
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    sample_count: int
    max_speed_mph: float
    limit_mph: float
    max_excess_mph: float
    average_excess_mph: float
    latitude: float
    longitude: float
    h3_cell: Optional[str] = None
    severity: Severity

    model_config = {"from_attributes": True}


class ActiveStrikeCountResponse(BaseModel):
    driver_id: int
    active_strikes: int


class EligibilityResponse(BaseModel):
    driver_id: int
    allowed: bool
    reason: Optional[str] = None
    suspension: Optional[SuspensionResponse] = None


class SafetyProfileResponse(BaseModel):
    driver_id: int
    safety_rating: float
    total_safety_ratings: int
    rating_distribution: dict[int, int]
    route_adherence_score: int
    speed_compliance_score: int
    active_strikes: int
    suspension_status: DriverStanding
    current_suspension_id: Optional[int] = None
    safe_trips_streak: int
    last_violation_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MonitorStateResponse(BaseModel):
    trip_id: int
    driver_id: int
    current_speed_mph: float
    speed_limit_mph: Optional[float] = None
    alert_level: SpeedAlertLevel
    excess_mph: float
    is_over_limit: bool
    show_warning: bool
    warning_triggered: bool
    pending_readings: int
    batches_handed_off: int

    model_config = {"from_attributes": True}


class SweepResponse(BaseModel):
    strikes_expired: int
    suspensions_expired: int
    skipped: bool = False


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
