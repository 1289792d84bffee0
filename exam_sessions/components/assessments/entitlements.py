"""Access collaborators: who may start an assessment, and how often."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ...models.access_grant import AccessGrant
from ...models.assessment import Assessment
from ...platform.clock import ensure_utc, utcnow


class EntitlementCheck(Protocol):
    def is_entitled(self, user_id: str, assessment_id: str) -> bool: ...

    def expires_at(self, user_id: str, assessment_id: str) -> Optional[datetime]: ...


class AlwaysEntitled:
    """Free assessments: everyone may start, access never expires."""

    def is_entitled(self, user_id: str, assessment_id: str) -> bool:
        return True

    def expires_at(self, user_id: str, assessment_id: str) -> Optional[datetime]:
        return None


class AccessGrantEntitlement:
    """Paid exams: entitlement comes from grants recorded by the payment subsystem."""

    def __init__(self, db: Session):
        self.db = db

    def _latest_grant(self, user_id: str, assessment_id: str) -> Optional[AccessGrant]:
        return (
            self.db.query(AccessGrant)
            .filter(AccessGrant.user_id == user_id, AccessGrant.assessment_id == assessment_id)
            .order_by(AccessGrant.granted_at.desc(), AccessGrant.id.desc())
            .first()
        )

    def is_entitled(self, user_id: str, assessment_id: str) -> bool:
        return self._latest_grant(user_id, assessment_id) is not None

    def expires_at(self, user_id: str, assessment_id: str) -> Optional[datetime]:
        grant = self._latest_grant(user_id, assessment_id)
        return ensure_utc(grant.expires_at) if grant else None


class EntitlementRouter:
    """Pick the entitlement rule per assessment: paid exams check grants, the rest are free."""

    def __init__(self, db: Session, paid: Optional[EntitlementCheck] = None, free: Optional[EntitlementCheck] = None):
        self.db = db
        self.paid = paid or AccessGrantEntitlement(db)
        self.free = free or AlwaysEntitled()

    def _rule(self, assessment_id: str) -> EntitlementCheck:
        assessment = self.db.get(Assessment, assessment_id)
        if assessment is not None and assessment.requires_entitlement:
            return self.paid
        return self.free

    def is_entitled(self, user_id: str, assessment_id: str) -> bool:
        return self._rule(assessment_id).is_entitled(user_id, assessment_id)

    def expires_at(self, user_id: str, assessment_id: str) -> Optional[datetime]:
        return self._rule(assessment_id).expires_at(user_id, assessment_id)


def grant_access(
    db: Session,
    user_id: str,
    assessment_id: str,
    payment_reference: str = "",
    expires_at: Optional[datetime] = None,
) -> AccessGrant:
    grant = AccessGrant(
        user_id=user_id,
        assessment_id=assessment_id,
        payment_reference=payment_reference,
        granted_at=utcnow(),
        expires_at=expires_at,
    )
    db.add(grant)
    db.commit()
    db.refresh(grant)
    return grant


class RetakePolicy(Protocol):
    def allows_new_attempt(self, user_id: str, assessment_id: str, completed_attempts: int) -> bool: ...


class MaxAttemptsPolicy:
    """Cap completed attempts per (user, assessment); ``0`` means unlimited."""

    def __init__(self, max_attempts: int = 0):
        self.max_attempts = max(0, int(max_attempts or 0))

    def allows_new_attempt(self, user_id: str, assessment_id: str, completed_attempts: int) -> bool:
        if not self.max_attempts:
            return True
        return completed_attempts < self.max_attempts
