"""Structured failures raised by the safety services.

Every error carries a stable machine-readable ``code`` so callers (and
the API layer) can tell, e.g., an expired appeal window apart from a
generic persistence failure.
"""

from __future__ import annotations


class SafetyServiceError(Exception):
    code = "SAFETY_SERVICE_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(SafetyServiceError):
    code = "NOT_FOUND"


class ValidationFailed(SafetyServiceError):
    code = "INVALID_REQUEST"


class ConflictError(SafetyServiceError):
    """The record exists but is not in a state that allows the operation."""

    code = "INVALID_TRANSITION"


class AppealWindowExpired(SafetyServiceError):
    code = "APPEAL_WINDOW_EXPIRED"


class PersistenceError(SafetyServiceError):
    """The store rejected a write.  Not retried here; the caller decides."""

    code = "PERSISTENCE_FAILED"
