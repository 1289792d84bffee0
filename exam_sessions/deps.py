"""
Shared dependencies: identity, clock and the wired session service.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .components.assessments.entitlements import EntitlementRouter, MaxAttemptsPolicy
from .components.assessments.repository import SqlAssessmentRepository, SqlAttemptStore, SqlQuestionSource
from .components.assessments.service import AssessmentSessionService
from .platform.clock import Clock, SystemClock
from .platform.config import settings
from .platform.database import get_db
from .platform.security import CurrentUser, get_current_admin, get_current_user

_system_clock = SystemClock()


def get_clock() -> Clock:
    """Overridden in tests with a frozen clock."""
    return _system_clock


def build_session_service(db: Session, clock: Clock) -> AssessmentSessionService:
    return AssessmentSessionService(
        store=SqlAttemptStore(db),
        assessments=SqlAssessmentRepository(db),
        questions=SqlQuestionSource(db),
        entitlement=EntitlementRouter(db),
        clock=clock,
        retake_policy=MaxAttemptsPolicy(settings.MAX_ATTEMPTS_PER_ASSESSMENT),
        timings=settings.session_timings,
    )


def get_session_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AssessmentSessionService:
    return build_session_service(db, clock)


__all__ = [
    "CurrentUser",
    "get_clock",
    "get_current_admin",
    "get_current_user",
    "get_session_service",
    "build_session_service",
]
