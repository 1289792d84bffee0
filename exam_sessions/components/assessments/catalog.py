"""Assessment catalog administration: authoring, activation and scheduling."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ...models.assessment import Assessment, AssessmentKind
from ...platform.clock import ensure_utc
from ...platform.config import settings
from .errors import InvalidAssessment
from .repository import SqlAssessmentRepository

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (title or "").lower()).strip("-")
    return slug[:40] or "assessment"


def normalize_question(raw: Dict[str, Any], position: int) -> Dict[str, Any]:
    """Validate one authored question and return its stored form."""
    if not isinstance(raw, dict):
        raise InvalidAssessment(f"Question {position} must be an object")
    text = str(raw.get("text") or raw.get("question") or "").strip()
    if not text:
        raise InvalidAssessment(f"Question {position} has no text")
    options = raw.get("options")
    if not isinstance(options, list) or len(options) < 2:
        raise InvalidAssessment(f"Question {position} needs at least two options")
    correct = raw.get("correct_option_index", raw.get("correct"))
    if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < len(options):
        raise InvalidAssessment(f"Question {position} has an out-of-range correct option")

    question = {
        "id": str(raw.get("id") or f"q{position + 1}"),
        "text": text,
        "options": [str(option) for option in options],
        "correct_option_index": correct,
    }
    if raw.get("explanation"):
        question["explanation"] = str(raw["explanation"])
    return question


def _validate_timing(exam_duration_minutes: int, window_duration_minutes: Optional[int]) -> None:
    if exam_duration_minutes <= 0:
        raise InvalidAssessment("Exam duration must be positive")
    if window_duration_minutes is not None and window_duration_minutes < exam_duration_minutes:
        raise InvalidAssessment("Entry window must be at least as long as the exam duration")


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def create_assessment(
    db: Session,
    *,
    title: str,
    questions: Sequence[Dict[str, Any]],
    kind: AssessmentKind = AssessmentKind.WEEKLY,
    description: str = "",
    exam_duration_minutes: Optional[int] = None,
    total_questions: Optional[int] = None,
    window_opens_at: Optional[datetime] = None,
    window_duration_minutes: Optional[int] = None,
    requires_entitlement: Optional[bool] = None,
    passing_percentage: Optional[int] = None,
    shuffle_questions: bool = False,
    activate: bool = False,
    created_by: Optional[str] = None,
    assessment_id: Optional[str] = None,
) -> Assessment:
    normalized = [normalize_question(raw, index) for index, raw in enumerate(questions or [])]
    if not normalized:
        raise InvalidAssessment("An assessment needs at least one question")
    seen = set()
    for question in normalized:
        if question["id"] in seen:
            raise InvalidAssessment(f"Duplicate question id {question['id']}")
        seen.add(question["id"])

    cap = min(len(normalized), settings.MAX_QUESTIONS_PER_ASSESSMENT)
    if total_questions is None:
        total_questions = cap
    if not 0 < total_questions <= cap:
        raise InvalidAssessment(f"total_questions must be between 1 and {cap}")

    duration = exam_duration_minutes or settings.DEFAULT_EXAM_DURATION_MINUTES
    if window_opens_at is not None and window_duration_minutes is None:
        window_duration_minutes = settings.DEFAULT_WINDOW_MINUTES
    _validate_timing(duration, window_duration_minutes)

    if passing_percentage is None:
        passing_percentage = settings.DEFAULT_PASSING_PERCENTAGE
    if not 0 <= passing_percentage <= 100:
        raise InvalidAssessment("passing_percentage must be between 0 and 100")

    repo = SqlAssessmentRepository(db)
    assessment = Assessment(
        id=assessment_id or f"{_slugify(title)}-{uuid.uuid4().hex[:8]}",
        kind=kind,
        title=title,
        description=description or "",
        questions=normalized,
        exam_duration_minutes=duration,
        total_questions=total_questions,
        shuffle_questions=bool(shuffle_questions),
        window_opens_at=ensure_utc(window_opens_at),
        window_duration_minutes=window_duration_minutes,
        is_active=False,
        master_enabled=True,
        requires_entitlement=(
            requires_entitlement if requires_entitlement is not None else kind == AssessmentKind.PAID_EXAM
        ),
        passing_percentage=passing_percentage,
        created_by=created_by,
    )
    if activate:
        repo.deactivate_active(kind)
        assessment.is_active = True
    repo.add(assessment)
    repo.commit()
    db.refresh(assessment)
    logger.info(
        "Created assessment %s (%s, %d of %d questions, shuffle=%s, active=%s)",
        assessment.id, kind.value, total_questions, len(normalized), assessment.shuffle_questions, assessment.is_active,
        extra={"assessment_id": assessment.id},
    )
    return assessment


def activate_assessment(db: Session, assessment_id: str) -> Assessment:
    """Make ``assessment_id`` the single active assessment of its kind."""
    repo = SqlAssessmentRepository(db)
    assessment = repo.require(assessment_id)
    deactivated = repo.deactivate_active(assessment.kind, except_id=assessment.id)
    assessment.is_active = True
    repo.commit()
    db.refresh(assessment)
    if deactivated:
        logger.info("Deactivated %s", ", ".join(deactivated), extra={"assessment_id": assessment.id})
    return assessment


def set_master_enabled(db: Session, assessment_id: str, enabled: bool) -> Assessment:
    repo = SqlAssessmentRepository(db)
    assessment = repo.require(assessment_id)
    assessment.master_enabled = bool(enabled)
    repo.commit()
    db.refresh(assessment)
    logger.info("Master switch set to %s", enabled, extra={"assessment_id": assessment.id})
    return assessment


def update_schedule(
    db: Session,
    assessment_id: str,
    window_opens_at: Optional[datetime],
    window_duration_minutes: Optional[int] = None,
    exam_duration_minutes: Optional[int] = None,
) -> Assessment:
    """Reschedule (or unschedule, with ``window_opens_at=None``) an assessment.

    Attempts already in progress keep the deadline they were started with.
    """
    repo = SqlAssessmentRepository(db)
    assessment = repo.require(assessment_id)
    duration = exam_duration_minutes or assessment.exam_duration_minutes
    if window_opens_at is not None and window_duration_minutes is None:
        window_duration_minutes = assessment.window_duration_minutes or settings.DEFAULT_WINDOW_MINUTES
    if window_opens_at is None:
        window_duration_minutes = None
    _validate_timing(duration, window_duration_minutes)

    assessment.window_opens_at = ensure_utc(window_opens_at)
    assessment.window_duration_minutes = window_duration_minutes
    assessment.exam_duration_minutes = duration
    repo.commit()
    db.refresh(assessment)
    return assessment


def list_assessments(db: Session, kind: Optional[AssessmentKind] = None) -> List[Assessment]:
    return SqlAssessmentRepository(db).list(kind)
