"""
Strike / suspension / appeal policy rules.

Pure functions only -- no I/O.  The services layer feeds them the values
from ``settings``; the defaults below mirror the production policy.

Rules
-----
* A strike lives for ``STRIKE_EXPIRATION_DAYS`` from issuance and only
  counts while ``status == active`` **and** ``expires_at > now``.
* Post-strike active count of exactly 2 -> temporary (7 day) suspension;
  3 or more -> permanent suspension; otherwise nothing.
* A strike may be appealed while its age is at most ``APPEAL_WINDOW_DAYS``
  (inclusive boundary: exactly 7 days old is still inside the window).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from .enums import StrikeStatus, SuspensionType

STRIKE_EXPIRATION_DAYS = 30
TEMP_SUSPENSION_DAYS = 7
TEMP_SUSPENSION_STRIKE_COUNT = 2
PERMANENT_SUSPENSION_STRIKE_COUNT = 3
APPEAL_WINDOW_DAYS = 7


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive values are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def strike_expiry(
    issued_at: datetime, days: int = STRIKE_EXPIRATION_DAYS
) -> datetime:
    return issued_at + timedelta(days=days)


def suspension_expiry(
    started_at: datetime,
    suspension_type: SuspensionType,
    days: int = TEMP_SUSPENSION_DAYS,
) -> Optional[datetime]:
    """Temporary suspensions end after *days*; permanent ones never do."""
    if suspension_type is SuspensionType.PERMANENT:
        return None
    return started_at + timedelta(days=days)


def strike_counts_as_active(
    status: StrikeStatus, expires_at: datetime, now: datetime
) -> bool:
    return status == StrikeStatus.ACTIVE and expires_at > now


def escalation_for_count(
    active_count: int,
    temporary_at: int = TEMP_SUSPENSION_STRIKE_COUNT,
    permanent_at: int = PERMANENT_SUSPENSION_STRIKE_COUNT,
) -> Optional[SuspensionType]:
    """Map a post-strike active count to the suspension it triggers."""
    if active_count >= permanent_at:
        return SuspensionType.PERMANENT
    if active_count == temporary_at:
        return SuspensionType.TEMPORARY
    return None


def appeal_window_open(
    issued_at: datetime, now: datetime, days: int = APPEAL_WINDOW_DAYS
) -> bool:
    return now - issued_at <= timedelta(days=days)
