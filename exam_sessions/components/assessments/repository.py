"""Persistence adapters for assessments, attempts and question content."""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.assessment import Assessment, AssessmentKind
from ...models.attempt import Attempt
from ...platform.clock import utcnow
from .errors import AttemptSealed, NotFound, PersistenceError, StaleWrite

logger = logging.getLogger(__name__)

# Fields that may still be written once an attempt is sealed.
POST_COMPLETION_FIELDS = frozenset({"reviewed_questions"})


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------

class AttemptStore(Protocol):
    def create(self, attempt: Attempt) -> Attempt: ...

    def get_by_id(self, attempt_id: str) -> Optional[Attempt]: ...

    def get_open_attempt(self, user_id: str, assessment_id: str) -> Optional[Attempt]: ...

    def update(
        self,
        attempt_id: str,
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Attempt: ...

    def count_completed(self, user_id: str, assessment_id: str) -> int: ...

    def list_for_user(self, user_id: str) -> List[Attempt]: ...

    def list_completed(self, assessment_id: str) -> List[Attempt]: ...


class QuestionSource(Protocol):
    def draw(self, assessment_id: str) -> List[Dict[str, Any]]: ...

    def for_attempt(self, attempt: Attempt) -> List[Dict[str, Any]]: ...


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------

class SqlAttemptStore:
    """Attempt store over a SQLAlchemy session.

    Every write is a single conditional UPDATE: it never touches a completed
    attempt (apart from review bookkeeping) and, when ``expected_version`` is
    given, only applies if nobody else wrote in between.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, attempt: Attempt) -> Attempt:
        try:
            self.db.add(attempt)
            self.db.commit()
            self.db.refresh(attempt)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to create attempt", extra={"attempt_id": attempt.id})
            raise PersistenceError("Failed to create attempt") from exc
        return attempt

    def get_by_id(self, attempt_id: str) -> Optional[Attempt]:
        try:
            return self.db.get(Attempt, attempt_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Failed to load attempt") from exc

    def get_open_attempt(self, user_id: str, assessment_id: str) -> Optional[Attempt]:
        try:
            return (
                self.db.query(Attempt)
                .filter(
                    Attempt.user_id == user_id,
                    Attempt.assessment_id == assessment_id,
                    Attempt.is_completed == False,  # noqa: E712
                )
                .order_by(Attempt.started_at.desc())
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Failed to load open attempt") from exc

    def update(
        self,
        attempt_id: str,
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Attempt:
        values = dict(fields)
        stmt = update(Attempt).where(Attempt.id == attempt_id)
        touches_exam_state = bool(set(values) - POST_COMPLETION_FIELDS)
        if touches_exam_state:
            stmt = stmt.where(Attempt.is_completed == False)  # noqa: E712
        if expected_version is not None:
            stmt = stmt.where(Attempt.version == expected_version)
        stmt = stmt.values(**values, version=Attempt.version + 1, updated_at=utcnow())

        try:
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            if result.rowcount == 0:
                self.db.rollback()
                current = self.db.get(Attempt, attempt_id, populate_existing=True)
                if current is None:
                    raise NotFound(f"Attempt {attempt_id} not found")
                if touches_exam_state and current.is_completed:
                    raise AttemptSealed(f"Attempt {attempt_id} is already completed")
                raise StaleWrite(
                    f"Attempt {attempt_id} was modified concurrently "
                    f"(expected version {expected_version}, found {current.version})"
                )
            self.db.commit()
            return self.db.get(Attempt, attempt_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to update attempt", extra={"attempt_id": attempt_id})
            raise PersistenceError("Failed to update attempt") from exc

    def count_completed(self, user_id: str, assessment_id: str) -> int:
        try:
            return (
                self.db.query(func.count(Attempt.id))
                .filter(
                    Attempt.user_id == user_id,
                    Attempt.assessment_id == assessment_id,
                    Attempt.is_completed == True,  # noqa: E712
                )
                .scalar()
                or 0
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Failed to count attempts") from exc

    def list_for_user(self, user_id: str) -> List[Attempt]:
        return (
            self.db.query(Attempt)
            .filter(Attempt.user_id == user_id)
            .order_by(Attempt.started_at.desc())
            .all()
        )

    def list_completed(self, assessment_id: str) -> List[Attempt]:
        return (
            self.db.query(Attempt)
            .filter(
                Attempt.assessment_id == assessment_id,
                Attempt.is_completed == True,  # noqa: E712
            )
            .all()
        )


# ---------------------------------------------------------------------------
# Assessments and questions
# ---------------------------------------------------------------------------

class SqlAssessmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, assessment_id: str) -> Optional[Assessment]:
        return self.db.get(Assessment, assessment_id, populate_existing=True)

    def require(self, assessment_id: str) -> Assessment:
        assessment = self.get(assessment_id)
        if assessment is None:
            raise NotFound(f"Assessment {assessment_id} not found")
        return assessment

    def list(self, kind: Optional[AssessmentKind] = None) -> List[Assessment]:
        query = self.db.query(Assessment)
        if kind is not None:
            query = query.filter(Assessment.kind == kind)
        return query.order_by(Assessment.created_at.desc()).all()

    def get_active(self, kind: AssessmentKind) -> Optional[Assessment]:
        return (
            self.db.query(Assessment)
            .filter(Assessment.kind == kind, Assessment.is_active == True)  # noqa: E712
            .first()
        )

    def deactivate_active(self, kind: AssessmentKind, except_id: Optional[str] = None) -> List[str]:
        """Flag every active assessment of ``kind`` inactive (not committed)."""
        query = self.db.query(Assessment).filter(
            Assessment.kind == kind,
            Assessment.is_active == True,  # noqa: E712
        )
        if except_id is not None:
            query = query.filter(Assessment.id != except_id)
        deactivated = []
        for assessment in query.all():
            assessment.is_active = False
            deactivated.append(assessment.id)
        return deactivated

    def add(self, assessment: Assessment) -> None:
        self.db.add(assessment)

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to save assessment changes")
            raise PersistenceError("Failed to save assessment") from exc


class SqlQuestionSource:
    """Question content for attempts.

    ``draw`` picks the questions for a new attempt: the first
    ``total_questions`` of the pool, or a random sample of that size when the
    assessment shuffles. The drawn ids are stored on the attempt and
    ``for_attempt`` maps them back onto the pool, so scoring and review see
    exactly the questions the user was shown even if the pool is edited later.
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng or random.SystemRandom()

    def _assessment(self, assessment_id: str) -> Assessment:
        assessment = self.db.get(Assessment, assessment_id)
        if assessment is None:
            raise NotFound(f"Assessment {assessment_id} not found")
        return assessment

    def draw(self, assessment_id: str) -> List[Dict[str, Any]]:
        assessment = self._assessment(assessment_id)
        pool = list(assessment.questions or [])
        size = min(assessment.total_questions or len(pool), len(pool))
        if assessment.shuffle_questions:
            return self.rng.sample(pool, size)
        return pool[:size]

    def for_attempt(self, attempt: Attempt) -> List[Dict[str, Any]]:
        assessment = self._assessment(attempt.assessment_id)
        pool = list(assessment.questions or [])
        if not attempt.question_ids:
            return pool[: len(attempt.answers or [])]
        by_id = {str(question.get("id")): question for question in pool}
        drawn = []
        for question_id in attempt.question_ids:
            question = by_id.get(str(question_id))
            if question is None:
                # Removed from the pool after the draw: unanswerable, scored as missed.
                logger.warning(
                    "Question %s no longer in pool", question_id,
                    extra={"attempt_id": attempt.id, "assessment_id": attempt.assessment_id},
                )
                question = {"id": str(question_id), "text": "", "options": [], "correct_option_index": None}
            drawn.append(question)
        return drawn
