"""Candidate-facing assessment routes: window status, start/resume, leaderboard."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...components.assessments.reporting import leaderboard
from ...components.assessments.service import AssessmentSessionService
from ...components.assessments.window import describe_window
from ...deps import CurrentUser, get_current_user, get_session_service
from ...platform.database import get_db
from ...schemas.assessment import LeaderboardEntry, WindowResponse
from ...schemas.attempt import AttemptResponse, QuestionView, StartResponse

router = APIRouter(prefix="/assessments", tags=["Assessments"])


@router.get("/{assessment_id}/window", response_model=WindowResponse)
def get_window(
    assessment_id: str,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Whether the assessment can be entered right now, and for how long."""
    evaluation = service.evaluate_window(assessment_id)
    return WindowResponse(
        assessment_id=assessment_id,
        **evaluation.to_dict(),
        **describe_window(evaluation),
    )


@router.post("/{assessment_id}/attempts", response_model=StartResponse, status_code=status.HTTP_200_OK)
def start_attempt(
    assessment_id: str,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Start a new attempt, or resume the caller's open one."""
    started = service.start_or_resume(
        current_user.id,
        assessment_id,
        user_email=current_user.email,
        user_name=current_user.name,
    )
    questions = service.questions_for(started.attempt)
    return StartResponse(
        attempt=AttemptResponse.model_validate(started.attempt),
        remaining_seconds=started.remaining_seconds,
        resumed=started.resumed,
        questions=[
            QuestionView(id=str(q.get("id", index)), text=q.get("text", ""), options=list(q.get("options") or []))
            for index, q in enumerate(questions)
        ],
        window=started.window.to_dict() if started.window else None,
        entitlement_expires_at=started.entitlement_expires_at,
    )


@router.get("/{assessment_id}/leaderboard", response_model=List[LeaderboardEntry])
def get_leaderboard(
    assessment_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return leaderboard(db, assessment_id, limit=limit)
