"""Domain enumerations and state-transition rules."""

import enum


class StrikeType(str, enum.Enum):
    SPEED_VIOLATION = "speed_violation"
    ROUTE_DEVIATION = "route_deviation"
    EARLY_COMPLETION = "early_completion"
    RIDER_REPORT = "rider_report"
    NO_RESPONSE = "no_response"


class Severity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StrikeStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REMOVED = "removed"
    APPEALED = "appealed"


# Strikes are never deleted; only these status changes are legal.
STRIKE_TRANSITIONS: dict[StrikeStatus, set[StrikeStatus]] = {
    StrikeStatus.ACTIVE: {
        StrikeStatus.EXPIRED,
        StrikeStatus.REMOVED,
        StrikeStatus.APPEALED,
    },
    StrikeStatus.APPEALED: {StrikeStatus.ACTIVE, StrikeStatus.REMOVED},
    StrikeStatus.EXPIRED: set(),
    StrikeStatus.REMOVED: set(),
}


class SuspensionType(str, enum.Enum):
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class SuspensionStatus(str, enum.Enum):
    ACTIVE = "active"
    LIFTED = "lifted"
    EXPIRED = "expired"


SUSPENSION_TRANSITIONS: dict[SuspensionStatus, set[SuspensionStatus]] = {
    SuspensionStatus.ACTIVE: {SuspensionStatus.LIFTED, SuspensionStatus.EXPIRED},
    SuspensionStatus.LIFTED: set(),
    SuspensionStatus.EXPIRED: set(),
}


class AppealStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


APPEAL_TRANSITIONS: dict[AppealStatus, set[AppealStatus]] = {
    AppealStatus.PENDING: {AppealStatus.APPROVED, AppealStatus.DENIED},
    AppealStatus.APPROVED: set(),
    AppealStatus.DENIED: set(),
}


class AppealDecision(str, enum.Enum):
    APPROVED = "approved"
    DENIED = "denied"


class DriverStanding(str, enum.Enum):
    """Suspension status as surfaced on the driver and the safety profile."""

    ACTIVE = "active"
    SUSPENDED_TEMP = "suspended_temp"
    SUSPENDED_PERM = "suspended_perm"


class SpeedAlertLevel(str, enum.Enum):
    NORMAL = "normal"
    CAUTION = "caution"
    WARNING = "warning"
    DANGER = "danger"


class TripStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
