"""Typed failures raised by the assessment session engine.

Each error carries a stable ``code`` and the HTTP status the API layer
renders it with. Eligibility failures additionally carry a reason so the
caller can tell "wait", "give up" and "pay" apart.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, Optional


class IneligibleReason(str, enum.Enum):
    NOT_YET_OPEN = "not_yet_open"
    CLOSED = "closed"
    INACTIVE = "inactive"
    UNENTITLED = "unentitled"
    ENTITLEMENT_EXPIRED = "entitlement_expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"


INELIGIBLE_MESSAGES = {
    IneligibleReason.NOT_YET_OPEN: "The exam window has not opened yet.",
    IneligibleReason.CLOSED: "The exam window has closed.",
    IneligibleReason.INACTIVE: "This assessment is not currently active.",
    IneligibleReason.UNENTITLED: "You need to purchase access to take this exam.",
    IneligibleReason.ENTITLEMENT_EXPIRED: "Your access to this exam has expired.",
    IneligibleReason.ATTEMPTS_EXHAUSTED: "You have used all attempts for this assessment.",
}


class SessionError(Exception):
    code = "SESSION_ERROR"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotEligible(SessionError):
    code = "NOT_ELIGIBLE"
    status_code = 403

    def __init__(self, reason: IneligibleReason, message: str = ""):
        super().__init__(message or INELIGIBLE_MESSAGES[reason])
        self.reason = reason

    def to_detail(self) -> Dict[str, Any]:
        return {**super().to_detail(), "reason": self.reason.value}


class InvalidIndex(SessionError):
    code = "INVALID_INDEX"
    status_code = 422


class InvalidAssessment(SessionError):
    code = "INVALID_ASSESSMENT"
    status_code = 422


class NotFound(SessionError):
    code = "NOT_FOUND"
    status_code = 404


class AccessDenied(SessionError):
    code = "ACCESS_DENIED"
    status_code = 403


class AttemptSealed(SessionError):
    code = "ATTEMPT_SEALED"
    status_code = 409


class ReviewUnavailable(SessionError):
    code = "REVIEW_UNAVAILABLE"
    status_code = 409


class StaleWrite(SessionError):
    code = "STALE_WRITE"
    status_code = 409


class PersistenceError(SessionError):
    code = "PERSISTENCE_ERROR"
    status_code = 503


class DeadlinePassed(SessionError):
    """Raised after an overdue attempt has been sealed from its stored snapshot."""

    code = "DEADLINE_PASSED"
    status_code = 409

    def __init__(self, attempt_id: str, message: str = "", attempt: Optional[Any] = None):
        super().__init__(message or "Exam time expired and the attempt was auto-submitted")
        self.attempt_id = attempt_id
        self.attempt = attempt

    def to_detail(self) -> Dict[str, Any]:
        return {**super().to_detail(), "attempt_id": self.attempt_id}
