"""Read-only views over sealed attempts: leaderboard, statistics, history."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ...models.attempt import Attempt
from ...platform.config import settings
from .repository import SqlAssessmentRepository, SqlAttemptStore


def leaderboard(db: Session, assessment_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Completed attempts ranked by percentage, ties broken by faster time."""
    SqlAssessmentRepository(db).require(assessment_id)
    limit = limit or settings.LEADERBOARD_DEFAULT_LIMIT
    rows = (
        db.query(Attempt)
        .filter(
            Attempt.assessment_id == assessment_id,
            Attempt.is_completed == True,  # noqa: E712
        )
        .order_by(Attempt.percentage.desc(), Attempt.time_spent_seconds.asc(), Attempt.completed_at.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "rank": position,
            "user_id": row.user_id,
            "user_name": row.user_name or "",
            "percentage": row.percentage or 0,
            "correct_count": row.correct_count or 0,
            "time_spent_seconds": row.time_spent_seconds or 0,
            "completed_at": row.completed_at,
        }
        for position, row in enumerate(rows, start=1)
    ]


def assessment_statistics(db: Session, assessment_id: str) -> Dict[str, Any]:
    assessment = SqlAssessmentRepository(db).require(assessment_id)
    total_attempts = db.query(Attempt).filter(Attempt.assessment_id == assessment_id).count()
    completed = SqlAttemptStore(db).list_completed(assessment_id)

    if not completed:
        return {
            "assessment_id": assessment_id,
            "total_attempts": total_attempts,
            "completed_attempts": 0,
            "average_percentage": 0.0,
            "average_time_minutes": 0.0,
            "top_percentage": 0,
            "pass_rate": 0.0,
        }

    percentages = [row.percentage or 0 for row in completed]
    times = [row.time_spent_seconds or 0 for row in completed]
    passed = sum(1 for value in percentages if value >= assessment.passing_percentage)
    return {
        "assessment_id": assessment_id,
        "total_attempts": total_attempts,
        "completed_attempts": len(completed),
        "average_percentage": round(sum(percentages) / len(percentages), 1),
        "average_time_minutes": round(sum(times) / len(times) / 60, 1),
        "top_percentage": max(percentages),
        "pass_rate": round(passed / len(completed) * 100, 1),
    }


def user_history(db: Session, user_id: str) -> List[Attempt]:
    return SqlAttemptStore(db).list_for_user(user_id)
